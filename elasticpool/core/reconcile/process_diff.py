"""
Suspended-process diffing for autoscaling groups.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List


@dataclass
class ProcessDiff:
    to_suspend: List[str] = field(default_factory=list)
    to_resume: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.to_suspend or self.to_resume)


def diff_processes(currently_suspended: Iterable[str], desired_suspended: Iterable[str]) -> ProcessDiff:
    """
    Split the symmetric difference of two process sets.

    Anything desired but not yet suspended must be suspended; anything
    suspended but no longer desired must be resumed. Results are sorted so
    callers issue deterministic service calls.
    """
    current = set(currently_suspended)
    desired = set(desired_suspended)
    return ProcessDiff(
        to_suspend=sorted(desired - current),
        to_resume=sorted(current - desired),
    )
