"""
Owner-chain resolution: NodePool -> MachinePool -> Cluster -> infrastructure
cluster.

Every lookup returns ``None`` when the dependency is not linked or not created
yet; only unexpected failures and malformed references raise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from elasticpool.core.context import ReconcileContext
from elasticpool.core.entities.cluster import (
    Cluster,
    InfraCluster,
    Machine,
    MachinePool,
    ManagedControlPlane,
)
from elasticpool.core.entities.node_pool import NodePool
from elasticpool.core.entities.types import (
    CLUSTER_API_GROUP,
    CLUSTER_NAME_LABEL,
    MANAGED_CONTROL_PLANE_KIND,
    ObjectMeta,
    parse_group_version,
)
from elasticpool.core.errors import NotFoundError
from elasticpool.core.scope import ClusterScope, InfraScope, ManagedControlPlaneScope
from elasticpool.core.services import ObjectStore
from elasticpool.core.utils.logging import KeyValueLoggerAdapter

# Per-pass context logger shared by the driver and the scopes.
reconcile_logger = logging.getLogger("elasticpool.core.reconcile")


@dataclass
class ResolvedScope:
    machine_pool: MachinePool
    cluster: Cluster
    infra_scope: InfraScope
    log: KeyValueLoggerAdapter


def _get_or_none(store: ObjectStore, ctx: ReconcileContext, kind, namespace: str, name: str):
    try:
        return store.get(ctx, kind, namespace, name)
    except NotFoundError:
        return None


def _owner_of_kind(store: ObjectStore, ctx: ReconcileContext, meta: ObjectMeta, kind):
    for ref in meta.owner_references:
        if ref.kind != kind.KIND:
            continue
        group, _ = parse_group_version(ref.api_version)
        if group == CLUSTER_API_GROUP:
            return _get_or_none(store, ctx, kind, meta.namespace, ref.name)
    return None


def get_owner_machine_pool(store: ObjectStore, ctx: ReconcileContext, meta: ObjectMeta) -> Optional[MachinePool]:
    """MachinePool referenced by ``meta``'s owner references, if any."""
    return _owner_of_kind(store, ctx, meta, MachinePool)


def get_owner_machine(store: ObjectStore, ctx: ReconcileContext, meta: ObjectMeta) -> Optional[Machine]:
    """Logical Machine owning a child instance resource, if any."""
    return _owner_of_kind(store, ctx, meta, Machine)


def get_cluster_from_metadata(store: ObjectStore, ctx: ReconcileContext, meta: ObjectMeta) -> Optional[Cluster]:
    cluster_name = meta.labels.get(CLUSTER_NAME_LABEL)
    if not cluster_name:
        return None
    return _get_or_none(store, ctx, Cluster, meta.namespace, cluster_name)


class ScopeResolver:
    """Resolve the objects a NodePool reconciliation depends on."""

    def __init__(self, store: ObjectStore, *, tag_unmanaged_network_resources: bool = True):
        self.store = store
        self.tag_unmanaged_network_resources = tag_unmanaged_network_resources

    def resolve(self, ctx: ReconcileContext, node_pool: NodePool) -> Optional[ResolvedScope]:
        log = KeyValueLoggerAdapter(reconcile_logger, {"node_pool": node_pool.metadata.key})

        machine_pool = get_owner_machine_pool(self.store, ctx, node_pool.metadata)
        if machine_pool is None:
            log.info("MachinePool Controller has not yet set OwnerRef")
            return None
        log = log.with_values(machine_pool=machine_pool.metadata.key)

        cluster = get_cluster_from_metadata(self.store, ctx, machine_pool.metadata)
        if cluster is None:
            log.info("MachinePool is missing cluster label or cluster does not exist")
            return None
        log = log.with_values(cluster=cluster.metadata.key)

        infra_scope = self.infra_cluster_scope(ctx, cluster, node_pool, log)
        if infra_scope is None:
            log.info("AWSCluster or AWSManagedControlPlane is not ready yet")
            return None

        return ResolvedScope(machine_pool=machine_pool, cluster=cluster, infra_scope=infra_scope, log=log)

    def infra_cluster_scope(
        self,
        ctx: ReconcileContext,
        cluster: Cluster,
        node_pool: NodePool,
        log: KeyValueLoggerAdapter,
    ) -> Optional[InfraScope]:
        namespace = node_pool.metadata.namespace
        control_plane_ref = cluster.spec.control_plane_ref
        if control_plane_ref is not None and control_plane_ref.kind == MANAGED_CONTROL_PLANE_KIND:
            control_plane = _get_or_none(self.store, ctx, ManagedControlPlane, namespace, control_plane_ref.name)
            if control_plane is None:
                return None
            return ManagedControlPlaneScope(
                cluster,
                control_plane,
                tag_unmanaged_network_resources=self.tag_unmanaged_network_resources,
                log=log,
            )

        infrastructure_ref = cluster.spec.infrastructure_ref
        if infrastructure_ref is None:
            return None
        infra_cluster = _get_or_none(self.store, ctx, InfraCluster, namespace, infrastructure_ref.name)
        if infra_cluster is None:
            return None
        return ClusterScope(
            cluster,
            infra_cluster,
            tag_unmanaged_network_resources=self.tag_unmanaged_network_resources,
            log=log,
        )
