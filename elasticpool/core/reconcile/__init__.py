"""
Reconciliation of NodePools against their cloud autoscaling groups.

Modules:
    - scope_resolver: owner-chain lookups that build the infrastructure scope.
    - asg_engine:     autoscaling group find / diff / create / update.
    - process_diff:   suspended-process set arithmetic.
    - member_sync:    child resource create-missing and delete-orphaned passes.
    - deletion:       ordered teardown and finalizer removal.
    - driver:         the per-pass state machine tying the above together.
"""

from .asg_engine import ASGConvergenceEngine, LaunchTemplatePolicy, diff_asg  # noqa: F401
from .deletion import DeletionOrchestrator, DeletionPhase  # noqa: F401
from .driver import NodePoolReconciler, ReconcileResult  # noqa: F401
from .member_sync import MemberInstanceSynchronizer  # noqa: F401
from .predicates import should_reconcile  # noqa: F401
from .process_diff import ProcessDiff, diff_processes  # noqa: F401
from .scope_resolver import ResolvedScope, ScopeResolver  # noqa: F401

__all__ = [
    "ASGConvergenceEngine",
    "DeletionOrchestrator",
    "DeletionPhase",
    "LaunchTemplatePolicy",
    "MemberInstanceSynchronizer",
    "NodePoolReconciler",
    "ProcessDiff",
    "ReconcileResult",
    "ResolvedScope",
    "ScopeResolver",
    "diff_asg",
    "diff_processes",
    "should_reconcile",
]
