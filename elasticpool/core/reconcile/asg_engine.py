"""
Autoscaling group convergence: find, diff, create and update the group, and
decide when a launch template change has to roll the instances.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from elasticpool.core.entities.asg import AutoScalingGroup
from elasticpool.core.entities.types import EventType
from elasticpool.core.errors import ReconcileError
from elasticpool.core.reconcile.process_diff import ProcessDiff, diff_processes
from elasticpool.core.scope import MachinePoolScope
from elasticpool.core.services import ASGService, EventRecorder, InstanceService, ReconcileService
from elasticpool.core.utils.diff import diff_objects

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LaunchTemplatePolicy:
    """
    Policy handed to the launch template reconciler.

    ``can_update`` gates publishing a new template version, ``post_update``
    runs after a non-userdata-only version was published.
    """

    can_update: Callable[[], bool]
    post_update: Callable[[], None]


def build_launch_template_policy(
    scope: MachinePoolScope,
    asg_service: ASGService,
    asg: Optional[AutoScalingGroup],
) -> LaunchTemplatePolicy:
    def can_update() -> bool:
        # Without a group there is no refresh to wait for, and a broken
        # template may be what blocks the group from being created.
        if asg is None:
            return True
        # Only one instance refresh can be in progress at a time.
        return asg_service.can_start_asg_instance_refresh(scope)

    def post_update() -> None:
        if asg is None:
            scope.debug("ASG does not exist yet, skipping instance refresh")
            return
        if scope.node_pool.spec.instance_refresh_disabled:
            scope.debug("instance refresh disabled, skipping instance refresh")
            return
        # TODO: if the controller stops between publishing the version and
        # starting the refresh, a later userdata-only diff will not retry it
        # even though instances may still run an older non-userdata version.
        scope.info("starting instance refresh for %s replicas", scope.machine_pool.spec.replicas)
        asg_service.start_asg_instance_refresh(scope)

    return LaunchTemplatePolicy(can_update=can_update, post_update=post_update)


def diff_asg(scope: MachinePoolScope, existing: AutoScalingGroup) -> str:
    """
    Compare the desired specs against what the group reports.

    A "detected" copy of each spec is built by overlaying the observed
    fields; any structural difference between desired and detected is drift.
    """
    machine_pool = scope.machine_pool
    detected_machine_pool_spec = copy.deepcopy(machine_pool.spec)
    if not machine_pool.replicas_managed_by_external_autoscaler():
        detected_machine_pool_spec.replicas = existing.desired_capacity
    lines = diff_objects(machine_pool.spec, detected_machine_pool_spec, "machinePool.spec")
    if lines:
        return "\n".join(lines)

    spec = scope.node_pool.spec
    detected = copy.deepcopy(spec)
    detected.max_size = existing.max_size
    detected.min_size = existing.min_size
    detected.capacity_rebalance = existing.capacity_rebalance

    mixed_instances_policy = spec.mixed_instances_policy
    existing_policy = existing.mixed_instances_policy
    # The instances distribution defaults come from the cloud provider and are
    # never set on the desired spec; compare against the provider's values.
    if mixed_instances_policy is not None and mixed_instances_policy.instances_distribution is None:
        mixed_instances_policy = copy.deepcopy(mixed_instances_policy)
        mixed_instances_policy.instances_distribution = copy.deepcopy(
            existing_policy.instances_distribution if existing_policy is not None else None
        )
    if mixed_instances_policy != existing_policy:
        detected.mixed_instances_policy = copy.deepcopy(existing_policy)

    return "\n".join(diff_objects(spec, detected, "nodePool.spec"))


def subnets_differ(desired: list, existing: list) -> bool:
    return sorted(desired) != sorted(existing)


class ASGConvergenceEngine:
    """Drives one autoscaling group toward the pool's desired state."""

    def __init__(self, scope: MachinePoolScope, asg_service: ASGService, recorder: EventRecorder):
        self.scope = scope
        self.asg_service = asg_service
        self.recorder = recorder

    def find(self) -> Optional[AutoScalingGroup]:
        try:
            return self.asg_service.get_asg_by_name(self.scope)
        except Exception as exc:
            raise ReconcileError(f"failed to query NodePool by name: {exc}") from exc

    def reconcile_launch_template(
        self,
        reconcile_service: ReconcileService,
        instance_service: InstanceService,
        asg: Optional[AutoScalingGroup],
    ) -> None:
        policy = build_launch_template_policy(self.scope, self.asg_service, asg)
        try:
            reconcile_service.reconcile_launch_template(self.scope, instance_service, policy)
        except Exception as exc:
            self.recorder.event(
                self.scope.node_pool,
                EventType.WARNING,
                "FailedLaunchTemplateReconcile",
                f"Failed to reconcile launch template: {exc}",
            )
            self.scope.error("failed to reconcile launch template: %s", exc)
            raise ReconcileError(f"failed to reconcile launch template: {exc}") from exc

    def create(self) -> AutoScalingGroup:
        self.scope.info("Creating Autoscaling Group")
        try:
            return self.asg_service.create_asg(self.scope)
        except Exception as exc:
            raise ReconcileError(f"failed to create NodePool: {exc}") from exc

    def update(self, existing: AutoScalingGroup) -> bool:
        """Apply drift and process changes; return ``True`` if the group was updated."""
        try:
            subnet_ids = self.asg_service.subnet_ids(self.scope)
        except Exception as exc:
            raise ReconcileError(f"fail to get subnets for ASG: {exc}") from exc

        self.scope.debug(
            "determining if subnets changed: desired=%s existing=%s", subnet_ids, existing.subnets
        )
        subnet_diff = subnets_differ(subnet_ids, existing.subnets)
        if subnet_diff:
            self.scope.debug("asg subnet diff detected")

        asg_diff = diff_asg(self.scope, existing)
        if asg_diff:
            self.scope.debug("asg diff detected:\n%s", asg_diff)

        updated = False
        if asg_diff or subnet_diff:
            self.scope.info("updating AutoScalingGroup")
            try:
                self.asg_service.update_asg(self.scope)
            except Exception as exc:
                self.recorder.event(
                    self.scope.node_pool, EventType.WARNING, "FailedUpdate", f"Failed to update ASG: {exc}"
                )
                raise ReconcileError(f"unable to update ASG: {exc}") from exc
            updated = True

        self.reconcile_suspended_processes(existing)
        return updated

    def reconcile_suspended_processes(self, existing: AutoScalingGroup) -> ProcessDiff:
        desired = self.scope.node_pool.spec.desired_suspended_processes()
        diff = diff_processes(existing.currently_suspended_processes, desired)
        if not diff:
            return diff

        self.scope.info("reconciling processes, suspend-processes=%s", desired)
        if diff.to_suspend:
            self.scope.info("suspending processes %s", diff.to_suspend)
            try:
                self.asg_service.suspend_processes(self.scope.ctx, existing.name, diff.to_suspend)
            except Exception as exc:
                raise ReconcileError(f"failed to suspend processes while trying update pool: {exc}") from exc
        if diff.to_resume:
            self.scope.info("resuming processes %s", diff.to_resume)
            try:
                self.asg_service.resume_processes(self.scope.ctx, existing.name, diff.to_resume)
            except Exception as exc:
                raise ReconcileError(f"failed to resume processes while trying update pool: {exc}") from exc
        return diff
