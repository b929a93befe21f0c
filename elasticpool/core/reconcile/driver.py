"""
Top-level NodePool reconciliation.

``NodePoolReconciler.reconcile`` runs one pass for one pool: resolve its
owners, open a ``MachinePoolScope`` and walk either the deletion path or the
normal path. Every unmet precondition ends the pass without error; every
failure is recorded as a condition on the pool and raised to the caller,
which schedules the retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from elasticpool.core import conditions
from elasticpool.core.config import ControllerConfig, get_controller_config
from elasticpool.core.context import ReconcileContext
from elasticpool.core.entities.asg import AutoScalingGroup
from elasticpool.core.entities.node_pool import NodePool
from elasticpool.core.entities.types import (
    INFRASTRUCTURE_MACHINE_KIND,
    PROVIDER_ANNOTATION,
    ConditionReason,
    ConditionSeverity,
    ConditionType,
    ObjectKey,
)
from elasticpool.core.errors import MalformedInputError, NotFoundError, ReconcileError
from elasticpool.core.reconcile.asg_engine import ASGConvergenceEngine
from elasticpool.core.reconcile.deletion import DeletionOrchestrator
from elasticpool.core.reconcile.member_sync import MemberInstanceSynchronizer
from elasticpool.core.reconcile.predicates import should_reconcile
from elasticpool.core.reconcile.scope_resolver import ScopeResolver
from elasticpool.core.scope import ClusterScope, MachinePoolScope, ManagedControlPlaneScope
from elasticpool.core.services import (
    EventRecorder,
    LoggingEventRecorder,
    ObjectStore,
    ResourceServiceToUpdate,
    ServiceFactories,
)

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of a successful pass; ``requeue_after`` is in seconds."""

    requeue_after: Optional[float] = None

    @property
    def requeue(self) -> bool:
        return self.requeue_after is not None


class NodePoolReconciler:
    def __init__(
        self,
        store: ObjectStore,
        services: ServiceFactories,
        *,
        recorder: Optional[EventRecorder] = None,
        config: Optional[ControllerConfig] = None,
    ):
        self.store = store
        self.services = services
        self.recorder = recorder or LoggingEventRecorder()
        self.config = config or get_controller_config()
        self.resolver = ScopeResolver(
            store, tag_unmanaged_network_resources=self.config.tag_unmanaged_network_resources
        )
        self.deletion = DeletionOrchestrator(store, self.recorder, self.config.finalizer)

    def reconcile(self, key: ObjectKey, ctx: Optional[ReconcileContext] = None) -> ReconcileResult:
        ctx = ctx or ReconcileContext.with_timeout(self.config.reconcile_timeout_seconds)

        try:
            node_pool = self.store.get(ctx, NodePool, key.namespace, key.name)
        except NotFoundError:
            logger.debug("NodePool %s not found, nothing to do", key)
            return ReconcileResult()

        if not should_reconcile(node_pool, self.config.watch_filter_value):
            return ReconcileResult()

        resolved = self.resolver.resolve(ctx, node_pool)
        if resolved is None:
            return ReconcileResult()

        try:
            scope = MachinePoolScope(
                store=self.store,
                ctx=ctx,
                cluster=resolved.cluster,
                machine_pool=resolved.machine_pool,
                infra_scope=resolved.infra_scope,
                node_pool=node_pool,
                log=resolved.log,
            )
        except MalformedInputError as exc:
            resolved.log.error("failed to create scope: %s", exc)
            raise

        with scope:
            if not node_pool.status.infrastructure_machine_kind:
                node_pool.status.infrastructure_machine_kind = INFRASTRUCTURE_MACHINE_KIND
                try:
                    scope.patch_object()
                except Exception as exc:
                    raise ReconcileError(f"failed to patch NodePool status: {exc}") from exc

            infra_scope = resolved.infra_scope
            if not isinstance(infra_scope, (ManagedControlPlaneScope, ClusterScope)):
                raise MalformedInputError("infra cluster has unknown type")

            if node_pool.metadata.is_deleting:
                return self.reconcile_delete(ctx, scope)
            return self.reconcile_normal(ctx, scope)

    def reconcile_delete(self, ctx: ReconcileContext, scope: MachinePoolScope) -> ReconcileResult:
        infra_scope = scope.infra_scope
        phase = self.deletion.reconcile_delete(
            ctx,
            scope,
            self.services.asg(infra_scope),
            self.services.instances(infra_scope),
        )
        scope.debug("deletion pass finished in phase %s", phase.value)
        return ReconcileResult()

    def reconcile_normal(self, ctx: ReconcileContext, scope: MachinePoolScope) -> ReconcileResult:
        node_pool = scope.node_pool
        machine_pool = scope.machine_pool
        infra_scope = scope.infra_scope
        infra_scope.info("Reconciling AWSMachinePool")

        if scope.has_failed():
            scope.info("Error state detected, skipping reconciliation")
            return ReconcileResult()

        # Persisted before any cloud call so created resources are always tracked.
        if node_pool.metadata.add_finalizer(self.config.finalizer):
            scope.patch_object()

        if not scope.cluster.status.infrastructure_ready:
            infra_scope.info("Cluster infrastructure is not ready yet")
            conditions.mark_false(
                node_pool,
                ConditionType.ASG_READY,
                ConditionReason.WAITING_FOR_CLUSTER_INFRASTRUCTURE,
                ConditionSeverity.INFO,
            )
            return ReconcileResult()

        if not machine_pool.spec.bootstrap.data_secret_name:
            infra_scope.info("Bootstrap data secret reference is not yet available")
            conditions.mark_false(
                node_pool,
                ConditionType.ASG_READY,
                ConditionReason.WAITING_FOR_BOOTSTRAP_DATA,
                ConditionSeverity.INFO,
            )
            return ReconcileResult()

        ctx.check()
        asg_service = self.services.asg(infra_scope)
        instance_service = self.services.instances(infra_scope)
        reconcile_service = self.services.reconcile(infra_scope)
        engine = ASGConvergenceEngine(scope, asg_service, self.recorder)

        try:
            asg = engine.find()
        except ReconcileError as exc:
            scope.set_not_ready()
            conditions.mark_unknown(node_pool, ConditionType.ASG_READY, ConditionReason.ASG_NOT_FOUND, str(exc))
            raise

        try:
            engine.reconcile_launch_template(reconcile_service, instance_service, asg)
        except ReconcileError as exc:
            scope.set_not_ready()
            conditions.mark_false(
                node_pool,
                ConditionType.LAUNCH_TEMPLATE_READY,
                ConditionReason.LAUNCH_TEMPLATE_RECONCILE_FAILED,
                ConditionSeverity.ERROR,
                str(exc),
            )
            raise
        conditions.mark_true(node_pool, ConditionType.LAUNCH_TEMPLATE_READY)

        if asg is None:
            try:
                engine.create()
            except ReconcileError as exc:
                scope.set_not_ready()
                conditions.mark_false(
                    node_pool,
                    ConditionType.ASG_READY,
                    ConditionReason.ASG_PROVISION_FAILED,
                    ConditionSeverity.ERROR,
                    str(exc),
                )
                raise
            scope.info("Created ASG, requeueing until its instances can be queried")
            return ReconcileResult(requeue_after=self.config.requeue_after_create_seconds)

        ctx.check()
        self._sync_members(ctx, scope, asg, instance_service)

        if machine_pool.replicas_managed_by_external_autoscaler() and machine_pool.spec.replicas != asg.desired_capacity:
            scope.info(
                "Setting MachinePool replicas to ASG DesiredCapacity: local=%s cloud=%s",
                machine_pool.spec.replicas,
                asg.desired_capacity,
            )
            machine_pool.spec.replicas = asg.desired_capacity
            try:
                scope.patch_machine_pool_object()
            except Exception as exc:
                self._mark_asg_failed(scope, ConditionReason.ASG_UPDATE_FAILED, exc)
                raise ReconcileError(f"failed to patch MachinePool replicas: {exc}") from exc

        try:
            engine.update(asg)
        except ReconcileError as exc:
            self._mark_asg_failed(scope, ConditionReason.ASG_UPDATE_FAILED, exc)
            raise

        launch_template_id = scope.get_launch_template_id_status()
        try:
            reconcile_service.reconcile_tags(
                scope,
                [
                    ResourceServiceToUpdate(resource_id=launch_template_id, resource_service=instance_service),
                    ResourceServiceToUpdate(resource_id=asg.name, resource_service=asg_service),
                ],
            )
        except Exception as exc:
            self._mark_asg_failed(scope, ConditionReason.TAGS_UPDATE_FAILED, exc)
            raise ReconcileError(f"error updating tags: {exc}") from exc

        node_pool.spec.provider_id = asg.id
        node_pool.spec.provider_id_list = asg.provider_ids()
        scope.set_annotation(PROVIDER_ANNOTATION, "true")
        node_pool.status.replicas = len(node_pool.spec.provider_id_list)
        node_pool.status.ready = True
        conditions.mark_true(node_pool, ConditionType.ASG_READY)

        try:
            scope.update_instance_statuses(asg.instances)
        except MalformedInputError as exc:
            scope.error("failed updating instance statuses: %s", exc)

        return ReconcileResult(requeue_after=self.config.requeue_steady_state_seconds)

    def _sync_members(
        self,
        ctx: ReconcileContext,
        scope: MachinePoolScope,
        asg: AutoScalingGroup,
        instance_service,
    ) -> None:
        synchronizer = MemberInstanceSynchronizer(self.store, scope.log)
        children = synchronizer.list_members(ctx, scope.machine_pool)

        try:
            synchronizer.create_missing(ctx, children, scope.machine_pool, scope.node_pool, asg, instance_service)
        except ReconcileError as exc:
            scope.set_not_ready()
            conditions.mark_false(
                scope.node_pool,
                ConditionType.READY,
                ConditionReason.MACHINE_CREATION_FAILED,
                ConditionSeverity.WARNING,
                str(exc),
            )
            raise

        try:
            synchronizer.delete_orphaned(ctx, children, asg)
        except ReconcileError as exc:
            scope.set_not_ready()
            conditions.mark_false(
                scope.node_pool,
                ConditionType.READY,
                ConditionReason.MACHINE_DELETION_FAILED,
                ConditionSeverity.WARNING,
                str(exc),
            )
            raise

    @staticmethod
    def _mark_asg_failed(scope: MachinePoolScope, reason: ConditionReason, exc: Exception) -> None:
        scope.set_not_ready()
        conditions.mark_false(scope.node_pool, ConditionType.ASG_READY, reason, ConditionSeverity.ERROR, str(exc))
