"""
Exception hierarchy for the node pool reconciler.
"""

from __future__ import annotations


class ElasticPoolError(Exception):
    """Base class for all reconciler errors."""


class NotFoundError(ElasticPoolError):
    """A resource or dependency does not exist (yet)."""


class InstanceNotFoundError(NotFoundError):
    """The instance service has no record of the requested instance."""


class MalformedInputError(ElasticPoolError, ValueError):
    """Input that can never reconcile, e.g. an unparseable API version."""


class ReconcileError(ElasticPoolError):
    """A reconcile stage failed; the cause is chained via ``__cause__``."""


class ReconcileCancelledError(ElasticPoolError):
    """The reconcile context was cancelled or its deadline passed."""
