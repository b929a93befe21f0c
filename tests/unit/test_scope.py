import pytest

from elasticpool.core import conditions
from elasticpool.core.entities import NodePool
from elasticpool.core.entities.asg import Instance
from elasticpool.core.entities.types import PAUSED_ANNOTATION, WATCH_FILTER_LABEL, ConditionType
from elasticpool.core.errors import MalformedInputError
from elasticpool.core.reconcile.predicates import should_reconcile
from elasticpool.core.scope import MachinePoolScope
from tests.fakes import make_scope, make_world


def test_close_summarizes_and_patches_once():
    world = make_world()
    scope = make_scope(world)
    conditions.mark_true(world.node_pool, ConditionType.ASG_READY)
    conditions.mark_true(world.node_pool, ConditionType.LAUNCH_TEMPLATE_READY)

    with scope:
        pass

    patches = [call for call in world.store.calls if call[0] == "patch"]
    assert patches == [("patch", "AWSMachinePool", "default/pool-a")]
    assert conditions.is_true(world.stored_node_pool(), ConditionType.READY)


def test_close_runs_when_body_raises():
    world = make_world()
    scope = make_scope(world)

    with pytest.raises(RuntimeError):
        with scope:
            world.node_pool.status.launch_template_id = "lt-9"
            raise RuntimeError("stage failed")

    assert world.stored_node_pool().status.launch_template_id == "lt-9"


def test_patch_failure_surfaces_without_other_error():
    world = make_world()
    world.store.fail("patch", NodePool, RuntimeError("conflict"))

    with pytest.raises(RuntimeError, match="conflict"):
        with make_scope(world):
            pass


def test_patch_failure_does_not_mask_stage_error():
    world = make_world()
    world.store.fail("patch", NodePool, RuntimeError("conflict"))

    with pytest.raises(ValueError, match="stage"):
        with make_scope(world):
            raise ValueError("stage")


def test_missing_node_pool_is_rejected():
    world = make_world()

    with pytest.raises(MalformedInputError):
        MachinePoolScope(
            store=world.store,
            ctx=None,
            cluster=world.cluster,
            machine_pool=world.machine_pool,
            infra_scope=None,
            node_pool=None,
        )


def test_instance_statuses_require_ids():
    scope = make_scope(make_world())

    with pytest.raises(MalformedInputError):
        scope.update_instance_statuses([Instance(id="")])


def test_launch_template_name_defaults_to_pool_name():
    world = make_world()
    scope = make_scope(world)

    assert scope.launch_template_name() == "pool-a"
    world.node_pool.spec.launch_template.name = "custom"
    assert scope.launch_template_name() == "custom"


def test_predicates():
    pool = make_world().node_pool

    assert should_reconcile(pool, "")
    assert not should_reconcile(pool, "team-a")

    pool.metadata.labels[WATCH_FILTER_LABEL] = "team-a"
    assert should_reconcile(pool, "team-a")

    pool.metadata.annotations[PAUSED_ANNOTATION] = ""
    assert not should_reconcile(pool, "team-a")
