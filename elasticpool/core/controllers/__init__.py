"""
Public facing controller facades for ElasticPool.
"""

from .node_pool_controller import NodePoolController  # noqa: F401

__all__ = ["NodePoolController"]
