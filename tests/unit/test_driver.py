import logging
from datetime import datetime, timezone

import pytest

from elasticpool.core import conditions
from elasticpool.core.context import ReconcileContext
from elasticpool.core.entities import InstanceMachine, LaunchTemplate, MachinePool, NodePool
from elasticpool.core.entities.types import (
    INFRASTRUCTURE_MACHINE_KIND,
    PAUSED_ANNOTATION,
    PROVIDER_ANNOTATION,
    REPLICAS_MANAGED_BY_ANNOTATION,
    WATCH_FILTER_LABEL,
    ConditionStatus,
    ConditionType,
    ObjectKey,
)
from elasticpool.core.errors import ReconcileCancelledError, ReconcileError
from elasticpool.core.reconcile import asg_engine
from elasticpool.core.reconcile.driver import NodePoolReconciler, ReconcileResult
from tests.fakes import make_asg, make_child, make_instance, make_world

KEY = ObjectKey("default", "pool-a")


def _reconciler(world, config):
    return NodePoolReconciler(world.store, world.services, recorder=world.recorder, config=config)


def _steady_world(**kwargs):
    instance = make_instance("i-1", "us-east-1a")
    kwargs.setdefault("asg", make_asg(instances=[instance]))
    kwargs.setdefault("instances", [instance])
    kwargs.setdefault("templates", [LaunchTemplate(id="lt-1", name="pool-a", version="1")])
    return make_world(**kwargs)


def test_missing_pool_is_not_an_error(controller_config):
    world = make_world()
    del world.store.objects[(NodePool.KIND, "default", "pool-a")]

    result = _reconciler(world, controller_config).reconcile(KEY)

    assert result == ReconcileResult()
    assert not result.requeue


def test_absent_group_is_created_once_and_requeued(controller_config):
    world = make_world()

    result = _reconciler(world, controller_config).reconcile(KEY)

    assert result.requeue_after == pytest.approx(15.0)
    assert world.asg_service.mutations == [("create_asg", "pool-a")]
    assert world.instance_service.called("instance_if_exists") == []
    assert not any(call[0] == "list" for call in world.store.calls)

    stored = world.stored_node_pool()
    assert controller_config.finalizer in stored.metadata.finalizers
    assert stored.status.infrastructure_machine_kind == INFRASTRUCTURE_MACHINE_KIND
    assert conditions.is_true(stored, ConditionType.LAUNCH_TEMPLATE_READY)
    assert conditions.is_true(stored, ConditionType.READY)


def test_steady_state_pass(controller_config):
    world = _steady_world()

    result = _reconciler(world, controller_config).reconcile(KEY)

    assert result.requeue_after == pytest.approx(180.0)
    children = world.children()
    assert [child.spec.provider_id for child in children] == ["aws:///us-east-1a/i-1"]

    stored = world.stored_node_pool()
    assert stored.status.ready is True
    assert stored.status.replicas == 1
    assert stored.spec.provider_id == "arn:aws:autoscaling:asg/pool-a"
    assert stored.spec.provider_id_list == ["aws:///us-east-1a/i-1"]
    assert stored.metadata.annotations[PROVIDER_ANNOTATION] == "true"
    assert [status.instance_id for status in stored.status.instances] == ["i-1"]
    assert conditions.is_true(stored, ConditionType.ASG_READY)
    assert conditions.is_true(stored, ConditionType.READY)
    assert world.reconcile_service.called("reconcile_tags") == [["lt-1", "pool-a"]]


def test_second_pass_is_idempotent(controller_config):
    world = _steady_world()
    reconciler = _reconciler(world, controller_config)
    reconciler.reconcile(KEY)
    asg_mutations = list(world.asg_service.mutations)
    store_mutations = list(world.store.mutations)

    reconciler.reconcile(KEY)

    assert world.asg_service.mutations == asg_mutations
    assert world.store.mutations == store_mutations


def test_external_autoscaler_replicas_are_adopted(controller_config, monkeypatch):
    world = _steady_world(replicas=3, asg=make_asg(desired_capacity=5))
    world.store.fetch(MachinePool, "default", "pool-a-mp").metadata.annotations[
        REPLICAS_MANAGED_BY_ANNOTATION
    ] = "cluster-autoscaler"
    real_diff = asg_engine.diff_asg
    seen = []

    def spy(scope, existing):
        seen.append((scope.machine_pool.spec.replicas, world.stored_machine_pool().spec.replicas))
        return real_diff(scope, existing)

    monkeypatch.setattr(asg_engine, "diff_asg", spy)

    _reconciler(world, controller_config).reconcile(KEY)

    assert seen == [(5, 5)]
    assert world.asg_service.called("update_asg") == []


def test_orphaned_children_are_removed(controller_config):
    world = _steady_world()
    world.store.add(make_child(world.machine_pool, "aws:///us-east-1b/i-gone", "pool-a-stale"))

    _reconciler(world, controller_config).reconcile(KEY)

    assert ("delete", "AWSMachine", "default/pool-a-stale") in world.store.mutations
    assert [child.spec.provider_id for child in world.children()] == ["aws:///us-east-1a/i-1"]


def test_waits_for_cluster_infrastructure(controller_config):
    world = make_world(infrastructure_ready=False)

    result = _reconciler(world, controller_config).reconcile(KEY)

    assert result == ReconcileResult()
    assert world.asg_service.calls == []
    stored = world.stored_node_pool()
    assert controller_config.finalizer in stored.metadata.finalizers
    asg_ready = conditions.get(stored, ConditionType.ASG_READY)
    assert asg_ready.status == ConditionStatus.FALSE
    assert asg_ready.reason == "WaitingForClusterInfrastructure"
    assert conditions.get(stored, ConditionType.READY).message == "0 of 2 completed"


def test_waits_for_bootstrap_data(controller_config):
    world = make_world(bootstrap_ready=False)

    _reconciler(world, controller_config).reconcile(KEY)

    assert world.asg_service.calls == []
    assert conditions.get(world.stored_node_pool(), ConditionType.ASG_READY).reason == "WaitingForBootstrapData"


def test_failed_pool_is_left_alone(controller_config):
    world = make_world()
    world.store.fetch(NodePool, "default", "pool-a").status.failure_reason = "InvalidConfiguration"

    result = _reconciler(world, controller_config).reconcile(KEY)

    assert result == ReconcileResult()
    assert world.asg_service.calls == []
    assert controller_config.finalizer not in world.stored_node_pool().metadata.finalizers


def test_paused_pool_is_skipped(controller_config):
    world = make_world()
    world.store.fetch(NodePool, "default", "pool-a").metadata.annotations[PAUSED_ANNOTATION] = "true"

    _reconciler(world, controller_config).reconcile(KEY)

    assert world.store.calls == [("get", "AWSMachinePool", "default/pool-a")]


def test_watch_filter_mismatch_is_skipped(controller_config):
    controller_config.watch_filter_value = "team-a"
    world = make_world()
    world.store.fetch(NodePool, "default", "pool-a").metadata.labels[WATCH_FILTER_LABEL] = "team-b"

    _reconciler(world, controller_config).reconcile(KEY)

    assert world.asg_service.calls == []


def test_create_failure_is_recorded(controller_config):
    world = make_world()
    world.asg_service.failures["create_asg"] = RuntimeError("capacity")

    with pytest.raises(ReconcileError):
        _reconciler(world, controller_config).reconcile(KEY)

    stored = world.stored_node_pool()
    asg_ready = conditions.get(stored, ConditionType.ASG_READY)
    assert asg_ready.status == ConditionStatus.FALSE
    assert asg_ready.reason == "ASGProvisionFailed"
    assert conditions.get(stored, ConditionType.READY).reason == "ASGProvisionFailed"


def test_lookup_failure_marks_group_unknown(controller_config):
    world = make_world()
    world.asg_service.failures["get_asg_by_name"] = RuntimeError("throttled")

    with pytest.raises(ReconcileError):
        _reconciler(world, controller_config).reconcile(KEY)

    asg_ready = conditions.get(world.stored_node_pool(), ConditionType.ASG_READY)
    assert asg_ready.status == ConditionStatus.UNKNOWN
    assert asg_ready.reason == "ASGNotFound"


def test_child_creation_failure_marks_not_ready(controller_config):
    world = _steady_world()
    world.store.fail("create", InstanceMachine, RuntimeError("quota"))

    with pytest.raises(ReconcileError):
        _reconciler(world, controller_config).reconcile(KEY)

    stored = world.stored_node_pool()
    assert stored.status.ready is False
    assert world.asg_service.called("update_asg") == []


def test_tag_failure_is_wrapped(controller_config):
    world = _steady_world()
    world.reconcile_service.failures["reconcile_tags"] = RuntimeError("denied")

    with pytest.raises(ReconcileError, match="error updating tags"):
        _reconciler(world, controller_config).reconcile(KEY)

    stored = world.stored_node_pool()
    asg_ready = conditions.get(stored, ConditionType.ASG_READY)
    assert asg_ready.status == ConditionStatus.FALSE
    assert asg_ready.reason == "TagsUpdateFailed"
    assert stored.status.ready is False


def test_launch_template_failure_after_healthy_pass(controller_config):
    world = _steady_world()
    reconciler = _reconciler(world, controller_config)
    reconciler.reconcile(KEY)
    assert world.stored_node_pool().status.ready is True
    world.reconcile_service.failures["reconcile_launch_template"] = RuntimeError("invalid image")

    with pytest.raises(ReconcileError, match="failed to reconcile launch template"):
        reconciler.reconcile(KEY)

    stored = world.stored_node_pool()
    launch_template_ready = conditions.get(stored, ConditionType.LAUNCH_TEMPLATE_READY)
    assert launch_template_ready.status == ConditionStatus.FALSE
    assert launch_template_ready.reason == "LaunchTemplateReconcileFailed"
    assert launch_template_ready.message.endswith("invalid image")
    ready = conditions.get(stored, ConditionType.READY)
    assert ready.status == ConditionStatus.FALSE
    assert ready.reason == "LaunchTemplateReconcileFailed"
    assert stored.status.ready is False


def test_update_failure_after_healthy_pass(controller_config):
    world = _steady_world()
    reconciler = _reconciler(world, controller_config)
    reconciler.reconcile(KEY)
    world.store.fetch(NodePool, "default", "pool-a").spec.max_size = 5
    world.asg_service.failures["update_asg"] = RuntimeError("throttled")

    with pytest.raises(ReconcileError, match="unable to update ASG"):
        reconciler.reconcile(KEY)

    stored = world.stored_node_pool()
    asg_ready = conditions.get(stored, ConditionType.ASG_READY)
    assert asg_ready.status == ConditionStatus.FALSE
    assert asg_ready.reason == "ASGUpdateFailed"
    assert conditions.get(stored, ConditionType.READY).status == ConditionStatus.FALSE
    assert stored.status.ready is False


def test_cancelled_pass_still_persists_status(controller_config):
    world = make_world()
    ctx = ReconcileContext()
    ctx.cancel()

    with pytest.raises(ReconcileCancelledError):
        _reconciler(world, controller_config).reconcile(KEY, ctx)

    assert world.asg_service.calls == []
    assert controller_config.finalizer in world.stored_node_pool().metadata.finalizers


def test_deleting_pool_is_torn_down(controller_config):
    world = _steady_world(finalizers=["awsmachinepool.infrastructure.cluster.x-k8s.io"])
    world.store.fetch(NodePool, "default", "pool-a").metadata.deletion_timestamp = datetime.now(timezone.utc)

    result = _reconciler(world, controller_config).reconcile(KEY)

    assert result == ReconcileResult()
    assert world.asg_service.called("delete_asg_and_wait") == ["pool-a"]
    assert world.instance_service.called("delete_launch_template") == ["lt-1"]
    assert world.stored_node_pool().metadata.finalizers == []


def test_pass_logs_keep_their_module_loggers(controller_config, caplog):
    caplog.set_level(logging.DEBUG, logger="elasticpool")
    world = _steady_world()

    _reconciler(world, controller_config).reconcile(KEY)

    names = {record.name for record in caplog.records if "node_pool=default/pool-a" in record.getMessage()}
    assert "elasticpool.core.reconcile" in names
    assert "elasticpool.core.reconcile.member_sync" in names
    assert "elasticpool.core.reconcile.scope_resolver" not in names
