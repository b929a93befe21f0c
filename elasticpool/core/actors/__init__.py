"""
Ray actor implementations that host the ElasticPool reconciler.
"""

from .config import ActorConfig  # noqa: F401
from .reconciler_actor import NodePoolReconcilerActor  # noqa: F401

__all__ = [
    "ActorConfig",
    "NodePoolReconcilerActor",
]
