"""
Per-instance child resource synchronisation.

Child resources (``InstanceMachine``) are correlated with autoscaling group
members by ProviderID. Missing children are created from instance detail;
children whose instance left the group are removed through their owning
Machine so the platform can drain them.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Set

from elasticpool.core.context import ReconcileContext
from elasticpool.core.entities.asg import AutoScalingGroup, Instance
from elasticpool.core.entities.cluster import InstanceMachine, InstanceMachineSpec, MachinePool
from elasticpool.core.entities.node_pool import NodePool
from elasticpool.core.entities.types import (
    CLUSTER_NAME_LABEL,
    MACHINE_POOL_NAME_LABEL,
    ObjectMeta,
    OwnerReference,
)
from elasticpool.core.errors import InstanceNotFoundError, ReconcileError
from elasticpool.core.reconcile.scope_resolver import get_owner_machine
from elasticpool.core.services import InstanceService, ObjectStore
from elasticpool.core.utils.logging import KeyValueLoggerAdapter

logger = logging.getLogger(__name__)


def machine_pool_labels(machine_pool: MachinePool) -> dict:
    return {
        MACHINE_POOL_NAME_LABEL: machine_pool.metadata.name,
        CLUSTER_NAME_LABEL: machine_pool.spec.cluster_name,
    }


def build_instance_machine(
    instance: Instance,
    provider_id: str,
    instance_id: str,
    machine_pool: MachinePool,
    node_pool: NodePool,
    asg_name: str,
) -> InstanceMachine:
    """Child resource describing ``instance``, owned by ``node_pool``."""
    return InstanceMachine(
        metadata=ObjectMeta(
            namespace=machine_pool.metadata.namespace,
            generate_name=f"{asg_name}-",
            labels=machine_pool_labels(machine_pool),
            owner_references=[
                OwnerReference(
                    api_version=NodePool.API_VERSION,
                    kind=NodePool.KIND,
                    name=node_pool.metadata.name,
                    uid=node_pool.metadata.uid,
                    block_owner_deletion=True,
                )
            ],
        ),
        spec=InstanceMachineSpec(
            provider_id=provider_id,
            instance_id=instance_id,
            # Informational copies of the instance attributes.
            ami_id=instance.image_id,
            instance_type=instance.type,
            public_ip=instance.public_ip is not None,
            ssh_key_name=instance.ssh_key_name,
            instance_metadata_options=instance.instance_metadata_options,
            iam_instance_profile=instance.iam_profile,
            additional_security_groups=list(instance.security_group_ids),
            subnet_id=instance.subnet_id,
            root_volume=instance.root_volume,
            non_root_volumes=list(instance.non_root_volumes),
            network_interfaces=list(instance.network_interfaces),
            spot_market_options=instance.spot_market_options,
            tenancy=instance.tenancy,
        ),
    )


def _provider_id(machine: InstanceMachine) -> str:
    return machine.spec.provider_id or ""


class MemberInstanceSynchronizer:
    """Keeps child resources in 1:1 correspondence with group membership."""

    def __init__(self, store: ObjectStore, log: Optional[KeyValueLoggerAdapter] = None):
        self.store = store
        self.log = log.bind(logger) if log is not None else KeyValueLoggerAdapter(logger)

    def list_members(self, ctx: ReconcileContext, machine_pool: MachinePool) -> List[InstanceMachine]:
        return list(
            self.store.list(ctx, InstanceMachine, machine_pool.metadata.namespace, machine_pool_labels(machine_pool))
        )

    def create_missing(
        self,
        ctx: ReconcileContext,
        children: List[InstanceMachine],
        machine_pool: MachinePool,
        node_pool: NodePool,
        asg: AutoScalingGroup,
        instance_service: InstanceService,
    ) -> List[InstanceMachine]:
        """Create a child for every member without one; return what was created."""
        self.log.debug("Creating missing AWSMachines")
        known: Set[str] = {_provider_id(child) for child in children if _provider_id(child)}

        created: List[InstanceMachine] = []
        for member in asg.instances:
            provider_id = member.provider_id
            log = self.log.with_values(provider_id=provider_id, instance_id=member.id, asg=asg.name)
            log.debug("Checking if machine pool AWSMachine is up to date")
            if provider_id in known:
                continue

            try:
                instance = instance_service.instance_if_exists(ctx, member.id)
            except InstanceNotFoundError:
                log.debug("Instance not found, it may have already been deleted")
                continue
            except Exception as exc:
                raise ReconcileError(f"failed to look up EC2 instance {member.id!r}: {exc}") from exc

            machine = build_instance_machine(instance, provider_id, member.id, machine_pool, node_pool, asg.name)
            log.debug("Creating AWSMachine")
            try:
                stored = self.store.create(ctx, machine)
            except Exception as exc:
                raise ReconcileError(f"failed to create AWSMachine: {exc}") from exc
            known.add(provider_id)
            created.append(stored if stored is not None else machine)
        return created

    def delete_orphaned(
        self,
        ctx: ReconcileContext,
        children: List[InstanceMachine],
        asg: AutoScalingGroup,
    ) -> List[InstanceMachine]:
        """Remove children whose instance left the group; return the orphans handled."""
        self.log.debug("Deleting orphaned AWSMachines")
        members: Set[str] = set(asg.provider_ids())

        orphans: List[InstanceMachine] = []
        for child in children:
            provider_id = _provider_id(child)
            if not provider_id or provider_id in members:
                continue

            meta = child.metadata
            try:
                machine = get_owner_machine(self.store, ctx, meta)
            except Exception as exc:
                raise ReconcileError(f"failed to get owner Machine for {meta.namespace}/{meta.name}: {exc}") from exc

            log = self.log.with_values(aws_machine=meta.key, provider_id=provider_id)
            if machine is None:
                log.info("No machine owner found for AWSMachine, deleting AWSMachine anyway.")
                try:
                    self.store.delete(ctx, child)
                except Exception as exc:
                    raise ReconcileError(
                        f"failed to delete orphan AWSMachine {meta.namespace}/{meta.name}: {exc}"
                    ) from exc
                log.debug("Deleted AWSMachine")
            else:
                log = log.with_values(machine=machine.metadata.key)
                log.debug("Deleting orphaned Machine")
                try:
                    self.store.delete(ctx, machine)
                except Exception as exc:
                    raise ReconcileError(
                        f"failed to delete orphan Machine {machine.metadata.namespace}/{machine.metadata.name}: {exc}"
                    ) from exc
                log.debug("Deleted Machine")
            orphans.append(child)
        return orphans
