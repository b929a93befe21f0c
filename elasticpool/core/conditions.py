"""
Helpers for reading and writing status conditions on a NodePool.

Only the conditions named by the caller take part in the ``Ready`` summary;
the most severe false condition determines its reason.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from elasticpool.core.entities.node_pool import NodePool
from elasticpool.core.entities.types import (
    Condition,
    ConditionSeverity,
    ConditionStatus,
    ConditionType,
)

_SEVERITY_RANK = {
    ConditionSeverity.ERROR: 0,
    ConditionSeverity.WARNING: 1,
    ConditionSeverity.INFO: 2,
    ConditionSeverity.NONE: 3,
}


def get(pool: NodePool, condition_type: ConditionType) -> Optional[Condition]:
    for condition in pool.status.conditions:
        if condition.type == condition_type:
            return condition
    return None


def is_true(pool: NodePool, condition_type: ConditionType) -> bool:
    condition = get(pool, condition_type)
    return condition is not None and condition.status == ConditionStatus.TRUE


def set_condition(pool: NodePool, condition: Condition) -> None:
    existing = get(pool, condition.type)
    if existing is not None and existing.status == condition.status:
        condition.last_transition_time = existing.last_transition_time
    elif condition.last_transition_time is None:
        condition.last_transition_time = datetime.now(timezone.utc)

    conditions = [item for item in pool.status.conditions if item.type != condition.type]
    conditions.append(condition)
    conditions.sort(key=lambda item: (item.type != ConditionType.READY, item.type.value))
    pool.status.conditions = conditions


def mark_true(pool: NodePool, condition_type: ConditionType) -> None:
    set_condition(pool, Condition(type=condition_type, status=ConditionStatus.TRUE))


def mark_false(
    pool: NodePool,
    condition_type: ConditionType,
    reason: str,
    severity: ConditionSeverity,
    message: str = "",
) -> None:
    set_condition(
        pool,
        Condition(
            type=condition_type,
            status=ConditionStatus.FALSE,
            severity=severity,
            reason=str(getattr(reason, "value", reason)),
            message=message,
        ),
    )


def mark_unknown(pool: NodePool, condition_type: ConditionType, reason: str, message: str = "") -> None:
    set_condition(
        pool,
        Condition(
            type=condition_type,
            status=ConditionStatus.UNKNOWN,
            reason=str(getattr(reason, "value", reason)),
            message=message,
        ),
    )


def set_summary(pool: NodePool, condition_types: Iterable[ConditionType], *, step_counter: bool = True) -> None:
    """
    Recompute the ``Ready`` condition from ``condition_types``.

    Only conditions already set take part. Any false -> Ready false with the
    reason and severity of the most severe false condition; with
    ``step_counter`` the message reads ``"<n> of <m> completed"`` where ``m``
    counts every requested type. Otherwise any true -> Ready true, and a set
    made only of unknown conditions yields Ready unknown. Nothing is written
    when none of the conditions has been set yet.
    """
    wanted = list(condition_types)
    present: List[Condition] = [c for c in (get(pool, t) for t in wanted) if c is not None]
    if not present:
        return

    completed = sum(1 for c in present if c.status == ConditionStatus.TRUE)
    false_conditions = [c for c in present if c.status == ConditionStatus.FALSE]
    if false_conditions:
        worst = min(false_conditions, key=lambda c: _SEVERITY_RANK[c.severity])
        message = f"{completed} of {len(wanted)} completed" if step_counter else worst.message
        mark_false(pool, ConditionType.READY, worst.reason, worst.severity, message)
        return

    if completed:
        mark_true(pool, ConditionType.READY)
        return

    unknown = present[0]
    mark_unknown(
        pool,
        ConditionType.READY,
        unknown.reason,
        f"{completed} of {len(wanted)} completed" if step_counter else unknown.message,
    )
