"""
Event filters applied before a NodePool is reconciled.
"""

from __future__ import annotations

import logging

from elasticpool.core.entities.node_pool import NodePool
from elasticpool.core.entities.types import PAUSED_ANNOTATION, WATCH_FILTER_LABEL

logger = logging.getLogger(__name__)


def is_paused(node_pool: NodePool) -> bool:
    return PAUSED_ANNOTATION in node_pool.metadata.annotations


def matches_watch_filter(node_pool: NodePool, watch_filter_value: str) -> bool:
    """An empty filter value accepts every pool."""
    if not watch_filter_value:
        return True
    return node_pool.metadata.labels.get(WATCH_FILTER_LABEL) == watch_filter_value


def should_reconcile(node_pool: NodePool, watch_filter_value: str = "") -> bool:
    if is_paused(node_pool):
        logger.debug("NodePool %s is paused, skipping", node_pool.metadata.key)
        return False
    if not matches_watch_filter(node_pool, watch_filter_value):
        logger.debug("NodePool %s does not match watch filter %r, skipping", node_pool.metadata.key, watch_filter_value)
        return False
    return True
