"""
NodePoolReconcilerActor - hosts a NodePool reconciler inside Ray.

Ray runs the calls of one actor sequentially, so every pool handled by an
actor is reconciled by at most one pass at a time.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import ray

from elasticpool.core.actors.config import ActorConfig
from elasticpool.core.config import get_controller_config
from elasticpool.core.context import ReconcileContext
from elasticpool.core.entities.types import ObjectKey
from elasticpool.core.errors import ElasticPoolError
from elasticpool.core.reconcile.driver import NodePoolReconciler
from elasticpool.core.services import EventRecorder, ObjectStore, ServiceFactories
from elasticpool.core.utils import configure_runtime_logging

logger = logging.getLogger(__name__)


@ray.remote
class NodePoolReconcilerActor:
    """Reconcile NodePools on request and keep per-pool bookkeeping."""

    def __init__(
        self,
        config: ActorConfig,
        store: ObjectStore,
        services: ServiceFactories,
        recorder: Optional[EventRecorder] = None,
    ):
        controller_config = config.controller or get_controller_config()
        configure_runtime_logging(controller_config.log_level)
        self.config = config
        self.controller_config = controller_config
        self.reconciler = NodePoolReconciler(store, services, recorder=recorder, config=controller_config)
        self.pools: Dict[str, Dict[str, Any]] = {}
        logger.info("NodePoolReconcilerActor[%s] initialised", config.name)

    def reconcile(self, namespace: str, name: str) -> dict:
        key = ObjectKey(namespace, name)
        ctx = ReconcileContext.with_timeout(self.controller_config.reconcile_timeout_seconds)
        started = time.time()
        try:
            result = self.reconciler.reconcile(key, ctx)
        except ElasticPoolError as exc:
            logger.error("Reconciliation of %s failed: %s", key, exc)
            response = {"success": False, "requeue_after": None, "error": str(exc)}
        except Exception as exc:
            logger.exception("Unexpected error reconciling %s", key)
            response = {"success": False, "requeue_after": None, "error": f"{type(exc).__name__}: {exc}"}
        else:
            response = {"success": True, "requeue_after": result.requeue_after, "error": None}

        self._record(key, response, time.time() - started)
        return response

    def _record(self, key: ObjectKey, response: dict, duration: float) -> None:
        entry = self.pools.setdefault(str(key), {"reconciles": 0, "failures": 0})
        entry["reconciles"] += 1
        if not response["success"]:
            entry["failures"] += 1
        entry["last_result"] = dict(response)
        entry["last_duration"] = duration
        entry["last_reconciled_at"] = time.time()

    def snapshot_state(self) -> dict:
        """Expose current state for testing/inspection."""
        return {
            "name": self.config.name,
            "finalizer": self.controller_config.finalizer,
            "pools": {key: dict(entry) for key, entry in self.pools.items()},
        }
