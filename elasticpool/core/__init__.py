"""
Core package bootstrap for the ElasticPool runtime.

Re-exports the primary façade classes so callers can simply do::

    from elasticpool.core import NodePoolController
"""

from __future__ import annotations

from elasticpool.core.controllers.node_pool_controller import NodePoolController

__all__ = ["NodePoolController"]
