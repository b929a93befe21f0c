"""
Teardown of a NodePool that is being deleted.

Order: machines of terminating children, then the autoscaling group, then
the launch template. The finalizer is removed only once both cloud resources
are confirmed gone in the same pass.
"""

from __future__ import annotations

import logging
from enum import Enum

from elasticpool.core import conditions
from elasticpool.core.context import ReconcileContext
from elasticpool.core.entities.asg import AutoScalingGroup
from elasticpool.core.entities.cluster import InstanceMachine, MachinePool
from elasticpool.core.entities.types import (
    ASGStatus,
    ConditionReason,
    ConditionSeverity,
    ConditionType,
    EventType,
)
from elasticpool.core.errors import ReconcileCancelledError, ReconcileError
from elasticpool.core.reconcile.asg_engine import ASGConvergenceEngine
from elasticpool.core.reconcile.member_sync import machine_pool_labels
from elasticpool.core.reconcile.scope_resolver import get_owner_machine
from elasticpool.core.scope import MachinePoolScope
from elasticpool.core.services import ASGService, EventRecorder, InstanceService, ObjectStore

logger = logging.getLogger(__name__)


class DeletionPhase(str, Enum):
    """Where a deletion pass stopped."""

    MACHINES_DELETING = "MachinesDeleting"
    ASG_DELETING = "ASGDeleting"
    LAUNCH_TEMPLATE_DELETING = "LaunchTemplateDeleting"
    FINALIZER_REMOVED = "FinalizerRemoved"


class DeletionOrchestrator:
    def __init__(self, store: ObjectStore, recorder: EventRecorder, finalizer: str):
        self.store = store
        self.recorder = recorder
        self.finalizer = finalizer

    def delete_terminating_machines(self, ctx: ReconcileContext, machine_pool: MachinePool) -> int:
        """
        Delete the owner Machine of every child already marked for deletion.

        Per-machine failures are logged and skipped; the next pass retries.
        Returns the number of Machines deleted.
        """
        children = self.store.list(
            ctx, InstanceMachine, machine_pool.metadata.namespace, machine_pool_labels(machine_pool)
        )
        deleted = 0
        for child in children:
            if not child.metadata.is_deleting:
                continue
            try:
                machine = get_owner_machine(self.store, ctx, child.metadata)
            except Exception as exc:
                logger.debug("Failed to get owner Machine for %s: %s", child.metadata.key, exc)
                continue
            if machine is None:
                logger.debug("No owner Machine for %s", child.metadata.key)
                continue
            try:
                self.store.delete(ctx, machine)
            except Exception as exc:
                logger.debug("Failed to delete owner Machine %s: %s", machine.metadata.key, exc)
                continue
            deleted += 1
        return deleted

    def reconcile_delete(
        self,
        ctx: ReconcileContext,
        scope: MachinePoolScope,
        asg_service: ASGService,
        instance_service: InstanceService,
    ) -> DeletionPhase:
        scope.infra_scope.info("Handling deleted AWSMachinePool")
        node_pool = scope.node_pool

        self.delete_terminating_machines(ctx, scope.machine_pool)
        ctx.check()

        asg = ASGConvergenceEngine(scope, asg_service, self.recorder).find()
        if asg is None:
            scope.warn("Unable to locate ASG")
            self.recorder.event(
                node_pool, EventType.NORMAL, ConditionReason.ASG_NOT_FOUND.value, "Unable to find matching ASG"
            )
        elif self._delete_asg(scope, asg_service, asg):
            return DeletionPhase.ASG_DELETING
        ctx.check()

        try:
            launch_template = instance_service.get_launch_template(ctx, scope.launch_template_name())
        except Exception as exc:
            raise ReconcileError(f"failed to look up launch template: {exc}") from exc

        if launch_template is None:
            scope.debug("Unable to locate launch template")
            self.recorder.event(
                node_pool, EventType.NORMAL, ConditionReason.ASG_NOT_FOUND.value, "Unable to find matching ASG"
            )
            node_pool.metadata.remove_finalizer(self.finalizer)
            return DeletionPhase.FINALIZER_REMOVED

        launch_template_id = scope.get_launch_template_id_status() or launch_template.id
        scope.info("deleting launch template %s", launch_template.name)
        try:
            instance_service.delete_launch_template(ctx, launch_template_id)
        except Exception as exc:
            self.recorder.event(
                node_pool,
                EventType.WARNING,
                "FailedDelete",
                f"Failed to delete launch template {launch_template.name!r}: {exc}",
            )
            raise ReconcileError(f"failed to delete launch template: {exc}") from exc

        scope.info("successfully deleted AutoScalingGroup and Launch Template")
        node_pool.metadata.remove_finalizer(self.finalizer)
        return DeletionPhase.FINALIZER_REMOVED

    def _delete_asg(
        self,
        scope: MachinePoolScope,
        asg_service: ASGService,
        asg: AutoScalingGroup,
    ) -> bool:
        """Delete the group; return ``True`` while an earlier deletion is still running."""
        scope.set_asg_status(asg.status)
        if asg.status == ASGStatus.DELETE_IN_PROGRESS:
            scope.set_not_ready()
            conditions.mark_false(
                scope.node_pool,
                ConditionType.ASG_READY,
                ConditionReason.ASG_DELETION_IN_PROGRESS,
                ConditionSeverity.WARNING,
            )
            self.recorder.event(
                scope.node_pool, EventType.WARNING, "DeletionInProgress", f"ASG deletion in progress: {asg.name!r}"
            )
            scope.info("ASG is already deleting: %s", asg.name)
            return True

        scope.info("Deleting ASG %s (status=%r)", asg.name, asg.status.value)
        try:
            asg_service.delete_asg_and_wait(scope.ctx, asg.name)
        except ReconcileCancelledError:
            raise
        except Exception as exc:
            self.recorder.event(
                scope.node_pool, EventType.WARNING, "FailedDelete", f"Failed to delete ASG {asg.name!r}: {exc}"
            )
            raise ReconcileError(f"failed to delete ASG: {exc}") from exc
        return False
