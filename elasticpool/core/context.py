"""
Cooperative cancellation token threaded through a reconciliation pass.
"""

from __future__ import annotations

import time
from typing import Optional

from elasticpool.core.errors import ReconcileCancelledError


class ReconcileContext:
    """Deadline plus a manual cancel flag, checked between external calls."""

    def __init__(self, deadline: Optional[float] = None):
        self.deadline = deadline
        self._cancelled = False

    @classmethod
    def with_timeout(cls, timeout: Optional[float]) -> "ReconcileContext":
        if not timeout or timeout <= 0:
            return cls()
        return cls(deadline=time.monotonic() + timeout)

    def cancel(self) -> None:
        self._cancelled = True

    def expired(self) -> bool:
        if self._cancelled:
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def check(self) -> None:
        """Raise :class:`ReconcileCancelledError` once the context is done."""
        if self.expired():
            raise ReconcileCancelledError("reconcile cancelled" if self._cancelled else "reconcile deadline exceeded")
