"""
Reconcile scopes.

``MachinePoolScope`` bundles the objects one reconciliation works on and
guarantees a single summarize-and-persist of the NodePool when it is closed.
``InfraClusterScope`` is a closed union of exactly two variants, the
self-managed cluster and the managed control plane.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Union

from elasticpool.core import conditions
from elasticpool.core.context import ReconcileContext
from elasticpool.core.entities.asg import Instance
from elasticpool.core.entities.cluster import Cluster, InfraCluster, MachinePool, ManagedControlPlane
from elasticpool.core.entities.node_pool import InstanceStatus, NodePool
from elasticpool.core.entities.types import ASGStatus, ConditionType
from elasticpool.core.errors import MalformedInputError
from elasticpool.core.services import ObjectStore
from elasticpool.core.utils.logging import KeyValueLoggerAdapter

logger = logging.getLogger(__name__)

SUMMARY_CONDITIONS = (ConditionType.ASG_READY, ConditionType.LAUNCH_TEMPLATE_READY)


class InfraClusterScope(ABC):
    """Capabilities shared by both infrastructure cluster variants."""

    controller_name: str = ""

    def __init__(
        self,
        cluster: Cluster,
        *,
        tag_unmanaged_network_resources: bool = True,
        log: Optional[KeyValueLoggerAdapter] = None,
    ):
        if cluster is None:
            raise MalformedInputError("cluster is required when creating an infrastructure cluster scope")
        self.cluster = cluster
        self.tag_unmanaged_network_resources = tag_unmanaged_network_resources
        self.log = log or KeyValueLoggerAdapter(logger)

    @property
    def name(self) -> str:
        return self.cluster.metadata.name

    @property
    def namespace(self) -> str:
        return self.cluster.metadata.namespace

    @property
    @abstractmethod
    def region(self) -> str:
        ...

    @abstractmethod
    def additional_tags(self) -> Dict[str, str]:
        ...

    def info(self, msg: str, *args) -> None:
        self.log.info(msg, *args)

    def debug(self, msg: str, *args) -> None:
        self.log.debug(msg, *args)


class ClusterScope(InfraClusterScope):
    """Self-managed infrastructure cluster."""

    controller_name = "awsmachine"

    def __init__(self, cluster: Cluster, infra_cluster: InfraCluster, **kwargs):
        if infra_cluster is None:
            raise MalformedInputError("infrastructure cluster is required when creating a ClusterScope")
        super().__init__(cluster, **kwargs)
        self.infra_cluster = infra_cluster

    @property
    def region(self) -> str:
        return self.infra_cluster.region

    def additional_tags(self) -> Dict[str, str]:
        return dict(self.infra_cluster.additional_tags)


class ManagedControlPlaneScope(InfraClusterScope):
    """Managed control plane acting as the infrastructure cluster."""

    controller_name = "awsManagedControlPlane"

    def __init__(self, cluster: Cluster, control_plane: ManagedControlPlane, **kwargs):
        if control_plane is None:
            raise MalformedInputError("control plane is required when creating a ManagedControlPlaneScope")
        super().__init__(cluster, **kwargs)
        self.control_plane = control_plane

    @property
    def region(self) -> str:
        return self.control_plane.region

    def additional_tags(self) -> Dict[str, str]:
        return dict(self.control_plane.additional_tags)


InfraScope = Union[ClusterScope, ManagedControlPlaneScope]


class MachinePoolScope:
    """
    Working set of one reconciliation.

    Use as a context manager: on exit the ``Ready`` summary is recomputed and
    the NodePool is patched exactly once, whether the pass succeeded or not.
    A persistence failure is raised only when no other error is in flight.
    """

    def __init__(
        self,
        *,
        store: ObjectStore,
        ctx: ReconcileContext,
        cluster: Cluster,
        machine_pool: MachinePool,
        infra_scope: InfraClusterScope,
        node_pool: NodePool,
        log: Optional[KeyValueLoggerAdapter] = None,
    ):
        if store is None:
            raise MalformedInputError("object store is required when creating a MachinePoolScope")
        if machine_pool is None:
            raise MalformedInputError("machine pool is required when creating a MachinePoolScope")
        if cluster is None:
            raise MalformedInputError("cluster is required when creating a MachinePoolScope")
        if node_pool is None:
            raise MalformedInputError("node pool is required when creating a MachinePoolScope")
        self.store = store
        self.ctx = ctx
        self.cluster = cluster
        self.machine_pool = machine_pool
        self.infra_scope = infra_scope
        self.node_pool = node_pool
        self.log = log or KeyValueLoggerAdapter(logger)

    # ------------------------------------------------------------------
    # Identity

    @property
    def name(self) -> str:
        """Name of the NodePool, which is also the autoscaling group name."""
        return self.node_pool.metadata.name

    @property
    def namespace(self) -> str:
        return self.node_pool.metadata.namespace

    def launch_template_name(self) -> str:
        return self.node_pool.spec.launch_template.name or self.name

    # ------------------------------------------------------------------
    # Status helpers

    def has_failed(self) -> bool:
        status = self.node_pool.status
        return bool(status.failure_reason) or bool(status.failure_message)

    def set_not_ready(self) -> None:
        self.node_pool.status.ready = False

    def set_asg_status(self, status: ASGStatus) -> None:
        self.node_pool.status.asg_status = status

    def set_launch_template_id_status(self, launch_template_id: str) -> None:
        self.node_pool.status.launch_template_id = launch_template_id

    def get_launch_template_id_status(self) -> str:
        return self.node_pool.status.launch_template_id

    def set_launch_template_version_status(self, version: Optional[str]) -> None:
        self.node_pool.status.launch_template_version = version

    def set_annotation(self, key: str, value: str) -> None:
        self.node_pool.metadata.annotations[key] = value

    def update_instance_statuses(self, instances: List[Instance]) -> None:
        statuses: List[InstanceStatus] = []
        for instance in instances:
            if not instance.id:
                raise MalformedInputError("instance without an id cannot be tracked in status")
            statuses.append(InstanceStatus(instance_id=instance.id, version=instance.launch_template_version))
        self.node_pool.status.instances = statuses

    # ------------------------------------------------------------------
    # Persistence

    def patch_object(self) -> None:
        self.store.patch(self.ctx, self.node_pool)

    def patch_machine_pool_object(self) -> None:
        self.store.patch(self.ctx, self.machine_pool)

    def close(self) -> None:
        conditions.set_summary(self.node_pool, SUMMARY_CONDITIONS)
        self.patch_object()

    def __enter__(self) -> "MachinePoolScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            self.close()
        except Exception:
            if exc_type is None:
                raise
            self.log.exception("failed to persist NodePool while handling %s", exc_type.__name__)
        return False

    # ------------------------------------------------------------------
    # Logging

    def info(self, msg: str, *args) -> None:
        self.log.info(msg, *args)

    def debug(self, msg: str, *args) -> None:
        self.log.debug(msg, *args)

    def warn(self, msg: str, *args) -> None:
        self.log.warning(msg, *args)

    def error(self, msg: str, *args) -> None:
        self.log.error(msg, *args)
