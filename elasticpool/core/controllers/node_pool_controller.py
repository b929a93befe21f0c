"""
Client-facing NodePoolController façade.

The façade proxies reconcile requests to the underlying reconciler actor while
exposing a synchronous API to library consumers.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import ray

from elasticpool.core.actors.config import ActorConfig
from elasticpool.core.actors.reconciler_actor import NodePoolReconcilerActor
from elasticpool.core.config import ControllerConfig, get_controller_config
from elasticpool.core.entities.node_pool import NodePool
from elasticpool.core.reconcile.predicates import should_reconcile
from elasticpool.core.services import EventRecorder, ObjectStore, ServiceFactories


class NodePoolController:
    """Thin wrapper around the NodePoolReconcilerActor."""

    def __init__(
        self,
        store: ObjectStore,
        services: ServiceFactories,
        *,
        name: str = "elasticpool-controller",
        recorder: Optional[EventRecorder] = None,
        config: Optional[ControllerConfig] = None,
        namespace: Optional[str] = None,
        detached: bool = False,
        max_restarts: int = -1,
    ):
        """
        Create a reconciler actor.

        Args:
            store: Object store the reconciler reads and patches.
            services: Factories building the cloud services per
                infrastructure scope.
            name: Logical name for the reconciler actor.
            recorder: Event sink; defaults to logging the events.
            config: Controller configuration; defaults to the YAML-derived
                configuration.
            namespace: Ray namespace to place the actor in. ``None`` uses
                the caller's current namespace.
            detached: Whether to create the actor as a detached actor.
            max_restarts: Passed to Ray to automatically restart the actor
                on failure (``-1`` means infinite restarts).
        """
        self.name = name
        self.config = config or get_controller_config()
        actor_config = ActorConfig(name=name, controller=self.config)
        actor_options: Dict[str, Any] = {}
        if namespace is not None:
            actor_options["namespace"] = namespace
        if detached:
            actor_options.update({"name": name, "lifetime": "detached", "max_restarts": max_restarts})
        self._actor = NodePoolReconcilerActor.options(**actor_options).remote(
            actor_config, store, services, recorder
        )

    def _ensure_actor(self) -> ray.actor.ActorHandle:
        if self._actor is None:
            raise RuntimeError("NodePoolController has been shut down")
        return self._actor

    def accepts(self, node_pool: NodePool) -> bool:
        """Event filter: paused pools and pools outside the watch filter are ignored."""
        return should_reconcile(node_pool, self.config.watch_filter_value)

    def handle_event(self, node_pool: NodePool) -> dict:
        """Reconcile the pool an event was observed for, unless it is filtered out."""
        if not self.accepts(node_pool):
            return {"success": True, "requeue_after": None, "error": None, "skipped": True}
        return self.reconcile(node_pool.metadata.namespace, node_pool.metadata.name)

    def reconcile(self, namespace: str, name: str) -> dict:
        actor = self._ensure_actor()
        return ray.get(actor.reconcile.remote(namespace, name))

    def snapshot_state(self) -> dict:
        actor = self._ensure_actor()
        return ray.get(actor.snapshot_state.remote())

    def shutdown(self) -> None:
        if self._actor is None:
            return
        ray.kill(self._actor, no_restart=True)
        self._actor = None  # type: ignore[assignment]
