"""
Collaborator interfaces consumed by the reconciler.

The object store, the cloud services and the event sink are provided by the
embedding runtime; the reconciler only depends on the contracts below.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Type

from elasticpool.core.entities.asg import AutoScalingGroup, Instance, LaunchTemplate
from elasticpool.core.entities.types import EventType

if TYPE_CHECKING:  # pragma: no cover
    from elasticpool.core.context import ReconcileContext
    from elasticpool.core.reconcile.asg_engine import LaunchTemplatePolicy
    from elasticpool.core.scope import InfraClusterScope, MachinePoolScope

logger = logging.getLogger(__name__)


class ObjectStore(ABC):
    """Declarative resource store (get / list / create / delete / patch)."""

    @abstractmethod
    def get(self, ctx: "ReconcileContext", kind: Type[Any], namespace: str, name: str) -> Any:
        """Return the object or raise :class:`~elasticpool.core.errors.NotFoundError`."""

    @abstractmethod
    def list(self, ctx: "ReconcileContext", kind: Type[Any], namespace: str, labels: Dict[str, str]) -> List[Any]:
        """Return every object of ``kind`` in ``namespace`` carrying all ``labels``."""

    @abstractmethod
    def create(self, ctx: "ReconcileContext", obj: Any) -> Any:
        """Persist a new object; ``metadata.generate_name`` may stand in for the name."""

    @abstractmethod
    def delete(self, ctx: "ReconcileContext", obj: Any) -> None:
        """Delete an object; deleting an absent object raises NotFoundError."""

    @abstractmethod
    def patch(self, ctx: "ReconcileContext", obj: Any) -> None:
        """Persist metadata, spec and status of an existing object."""


class ASGService(ABC):
    """
    Autoscaling group operations for one infrastructure cluster.

    Calls that take a scope read the cancellation token from ``scope.ctx``.
    """

    @abstractmethod
    def get_asg_by_name(self, scope: "MachinePoolScope") -> Optional[AutoScalingGroup]:
        """Return the group named after the pool, or ``None`` when absent."""

    @abstractmethod
    def create_asg(self, scope: "MachinePoolScope") -> AutoScalingGroup:
        ...

    @abstractmethod
    def update_asg(self, scope: "MachinePoolScope") -> None:
        ...

    @abstractmethod
    def delete_asg_and_wait(self, ctx: "ReconcileContext", name: str) -> None:
        """Block until the group is gone; stop waiting with ``ctx.check()`` once the pass is cancelled."""

    @abstractmethod
    def suspend_processes(self, ctx: "ReconcileContext", name: str, processes: List[str]) -> None:
        ...

    @abstractmethod
    def resume_processes(self, ctx: "ReconcileContext", name: str, processes: List[str]) -> None:
        ...

    @abstractmethod
    def can_start_asg_instance_refresh(self, scope: "MachinePoolScope") -> bool:
        """Only one instance refresh may be in flight per group."""

    @abstractmethod
    def start_asg_instance_refresh(self, scope: "MachinePoolScope") -> None:
        ...

    @abstractmethod
    def subnet_ids(self, scope: "MachinePoolScope") -> List[str]:
        """Subnets the group should span according to the desired spec."""


class InstanceService(ABC):
    """Instance and launch template operations."""

    @abstractmethod
    def instance_if_exists(self, ctx: "ReconcileContext", instance_id: str) -> Instance:
        """Return instance detail or raise :class:`~elasticpool.core.errors.InstanceNotFoundError`."""

    @abstractmethod
    def get_launch_template(self, ctx: "ReconcileContext", name: str) -> Optional[LaunchTemplate]:
        ...

    @abstractmethod
    def delete_launch_template(self, ctx: "ReconcileContext", launch_template_id: str) -> None:
        ...


@dataclass
class ResourceServiceToUpdate:
    """A cloud resource whose tags should follow the pool's additional tags."""

    resource_id: str
    resource_service: Any


class ReconcileService(ABC):
    """Launch template content and tag reconciliation."""

    @abstractmethod
    def reconcile_launch_template(
        self,
        scope: "MachinePoolScope",
        instance_service: InstanceService,
        policy: "LaunchTemplatePolicy",
    ) -> None:
        """
        Converge the launch template.

        Publishing a new version must be gated on ``policy.can_update()`` and
        followed by ``policy.post_update()`` unless only userdata changed.
        """

    @abstractmethod
    def reconcile_tags(self, scope: "MachinePoolScope", resources: List[ResourceServiceToUpdate]) -> None:
        ...


class EventRecorder(ABC):
    """Fire-and-forget notifications attached to an object."""

    @abstractmethod
    def event(self, obj: Any, event_type: EventType, reason: str, message: str) -> None:
        ...


class LoggingEventRecorder(EventRecorder):
    """Event sink that writes events to the log."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log or logger

    def event(self, obj: Any, event_type: EventType, reason: str, message: str) -> None:
        meta = getattr(obj, "metadata", None)
        target = f"{meta.namespace}/{meta.name}" if meta is not None else repr(obj)
        level = logging.WARNING if event_type == EventType.WARNING else logging.INFO
        self._log.log(level, "event %s %s on %s: %s", event_type.value, reason, target, message)


@dataclass
class ServiceFactories:
    """Per-infrastructure-scope constructors for the cloud services."""

    asg: Callable[["InfraClusterScope"], ASGService]
    instances: Callable[["InfraClusterScope"], InstanceService]
    reconcile: Callable[["InfraClusterScope"], ReconcileService]
