"""
Integration tests driving the reconciler actor through NodePoolController.
"""

from __future__ import annotations

import uuid

import pytest

from elasticpool.core.config import ControllerConfig
from elasticpool.core.controllers import NodePoolController
from elasticpool.core.entities.types import PAUSED_ANNOTATION
from tests.fakes import make_asg, make_instance, make_world


def _controller(world, **kwargs) -> NodePoolController:
    return NodePoolController(
        world.store,
        world.services,
        name=f"test-controller-{uuid.uuid4().hex[:8]}",
        recorder=world.recorder,
        config=ControllerConfig(),
        **kwargs,
    )


@pytest.fixture
def steady_world():
    instance = make_instance("i-1", "us-east-1a")
    return make_world(asg=make_asg(instances=[instance]), instances=[instance])


def test_reconcile_round_trip(ray_runtime, steady_world):
    controller = _controller(steady_world)
    try:
        response = controller.reconcile("default", "pool-a")
        assert response["success"] is True
        assert response["error"] is None
        assert response["requeue_after"] == pytest.approx(180.0)

        state = controller.snapshot_state()
        entry = state["pools"]["default/pool-a"]
        assert entry["reconciles"] == 1
        assert entry["failures"] == 0
        assert entry["last_result"]["success"] is True
    finally:
        controller.shutdown()


def test_absent_group_requests_quick_requeue(ray_runtime):
    controller = _controller(make_world())
    try:
        response = controller.reconcile("default", "pool-a")
        assert response["success"] is True
        assert response["requeue_after"] == pytest.approx(15.0)
    finally:
        controller.shutdown()


def test_failures_are_reported_as_values(ray_runtime):
    world = make_world()
    world.asg_service.failures["get_asg_by_name"] = RuntimeError("throttled")
    controller = _controller(world)
    try:
        response = controller.reconcile("default", "pool-a")
        assert response["success"] is False
        assert "throttled" in response["error"]
        assert controller.snapshot_state()["pools"]["default/pool-a"]["failures"] == 1
    finally:
        controller.shutdown()


def test_unknown_pool_is_a_noop(ray_runtime):
    controller = _controller(make_world())
    try:
        response = controller.reconcile("default", "does-not-exist")
        assert response == {"success": True, "requeue_after": None, "error": None}
    finally:
        controller.shutdown()


def test_paused_event_is_filtered(ray_runtime, steady_world):
    controller = _controller(steady_world)
    try:
        pool = steady_world.node_pool
        pool.metadata.annotations[PAUSED_ANNOTATION] = "true"
        response = controller.handle_event(pool)
        assert response["skipped"] is True
        assert controller.snapshot_state()["pools"] == {}
    finally:
        controller.shutdown()


def test_shutdown_is_idempotent(ray_runtime):
    controller = _controller(make_world())
    controller.shutdown()
    controller.shutdown()

    with pytest.raises(RuntimeError):
        controller.reconcile("default", "pool-a")
