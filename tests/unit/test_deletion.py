from datetime import datetime, timezone

import pytest

from elasticpool.core import conditions
from elasticpool.core.context import ReconcileContext
from elasticpool.core.entities import LaunchTemplate, Machine
from elasticpool.core.entities.types import ASGStatus, ConditionType, ObjectMeta
from elasticpool.core.errors import ReconcileCancelledError, ReconcileError
from elasticpool.core.reconcile.deletion import DeletionOrchestrator, DeletionPhase
from tests.fakes import make_asg, make_child, make_scope, make_world

FINALIZER = "awsmachinepool.infrastructure.cluster.x-k8s.io"


def _deleting_world(**kwargs):
    world = make_world(finalizers=[FINALIZER], **kwargs)
    world.node_pool.metadata.deletion_timestamp = datetime.now(timezone.utc)
    return world


def _run(world):
    orchestrator = DeletionOrchestrator(world.store, world.recorder, FINALIZER)
    scope = make_scope(world)
    return orchestrator.reconcile_delete(ReconcileContext(), scope, world.asg_service, world.instance_service)


def test_full_teardown_removes_finalizer_last():
    world = _deleting_world(
        asg=make_asg(),
        templates=[LaunchTemplate(id="lt-1", name="pool-a", version="3")],
    )

    phase = _run(world)

    assert phase == DeletionPhase.FINALIZER_REMOVED
    assert world.asg_service.called("delete_asg_and_wait") == ["pool-a"]
    assert world.instance_service.called("delete_launch_template") == ["lt-1"]
    assert FINALIZER not in world.node_pool.metadata.finalizers


def test_launch_template_deleted_by_status_id():
    world = _deleting_world(templates=[LaunchTemplate(id="lt-1", name="pool-a")])
    world.node_pool.status.launch_template_id = "lt-from-status"

    _run(world)

    assert world.instance_service.called("delete_launch_template") == ["lt-from-status"]


def test_asg_mid_deletion_keeps_finalizer():
    world = _deleting_world(
        asg=make_asg(status=ASGStatus.DELETE_IN_PROGRESS),
        templates=[LaunchTemplate(id="lt-1", name="pool-a")],
    )

    phase = _run(world)

    assert phase == DeletionPhase.ASG_DELETING
    assert FINALIZER in world.node_pool.metadata.finalizers
    assert world.node_pool.status.ready is False
    assert not conditions.is_true(world.node_pool, ConditionType.ASG_READY)
    assert world.asg_service.mutations == []
    assert world.instance_service.called("delete_launch_template") == []
    assert "DeletionInProgress" in world.recorder.reasons()


def test_asg_delete_failure_keeps_finalizer():
    world = _deleting_world(asg=make_asg(), templates=[LaunchTemplate(id="lt-1", name="pool-a")])
    world.asg_service.failures["delete_asg_and_wait"] = RuntimeError("in use")

    with pytest.raises(ReconcileError):
        _run(world)

    assert FINALIZER in world.node_pool.metadata.finalizers
    assert world.instance_service.called("delete_launch_template") == []
    assert "FailedDelete" in world.recorder.reasons()


def test_cloud_calls_receive_the_pass_context():
    world = _deleting_world(asg=make_asg(), templates=[LaunchTemplate(id="lt-1", name="pool-a")])
    ctx = ReconcileContext()
    orchestrator = DeletionOrchestrator(world.store, world.recorder, FINALIZER)

    orchestrator.reconcile_delete(ctx, make_scope(world, ctx), world.asg_service, world.instance_service)

    assert world.asg_service.contexts["delete_asg_and_wait"] is ctx
    assert world.instance_service.contexts["get_launch_template"] is ctx
    assert world.instance_service.contexts["delete_launch_template"] is ctx


def test_cancellation_during_asg_wait_keeps_finalizer():
    world = _deleting_world(asg=make_asg(), templates=[LaunchTemplate(id="lt-1", name="pool-a")])
    ctx = ReconcileContext()
    world.asg_service.wait_hook = ctx.cancel
    orchestrator = DeletionOrchestrator(world.store, world.recorder, FINALIZER)

    with pytest.raises(ReconcileCancelledError):
        orchestrator.reconcile_delete(ctx, make_scope(world, ctx), world.asg_service, world.instance_service)

    assert "pool-a" in world.asg_service.groups
    assert FINALIZER in world.node_pool.metadata.finalizers
    assert world.instance_service.called("get_launch_template") == []
    assert "FailedDelete" not in world.recorder.reasons()


def test_launch_template_delete_failure_keeps_finalizer():
    world = _deleting_world(templates=[LaunchTemplate(id="lt-1", name="pool-a")])
    world.instance_service.failures["delete_launch_template"] = RuntimeError("throttled")

    with pytest.raises(ReconcileError):
        _run(world)

    assert FINALIZER in world.node_pool.metadata.finalizers


def test_nothing_left_removes_finalizer():
    world = _deleting_world()

    phase = _run(world)

    assert phase == DeletionPhase.FINALIZER_REMOVED
    assert FINALIZER not in world.node_pool.metadata.finalizers
    assert "ASGNotFound" in world.recorder.reasons()


def test_terminating_machines_deleted_best_effort():
    world = _deleting_world()
    mp = world.machine_pool
    world.store.add(
        Machine(metadata=ObjectMeta(name="m-1")),
        make_child(mp, "aws:///us-east-1a/i-1", "child-1", owner_machine="m-1", deleting=True),
        make_child(mp, "aws:///us-east-1a/i-2", "child-2", owner_machine="m-missing", deleting=True),
        make_child(mp, "aws:///us-east-1a/i-3", "child-3", owner_machine="m-3"),
        Machine(metadata=ObjectMeta(name="m-3")),
    )
    orchestrator = DeletionOrchestrator(world.store, world.recorder, FINALIZER)

    deleted = orchestrator.delete_terminating_machines(ReconcileContext(), mp)

    assert deleted == 1
    assert world.store.mutations == [("delete", "Machine", "default/m-1")]


def test_machine_delete_failure_does_not_abort_teardown():
    world = _deleting_world(asg=make_asg())
    world.store.add(
        Machine(metadata=ObjectMeta(name="m-1")),
        make_child(world.machine_pool, "aws:///us-east-1a/i-1", "child-1", owner_machine="m-1", deleting=True),
    )
    world.store.fail("delete", Machine, RuntimeError("conflict"))

    phase = _run(world)

    assert phase == DeletionPhase.FINALIZER_REMOVED
    assert world.asg_service.called("delete_asg_and_wait") == ["pool-a"]
