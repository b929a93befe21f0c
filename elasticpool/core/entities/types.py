"""
Common type definitions shared across the reconciler and its collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from elasticpool.core.errors import MalformedInputError

# Group names and well-known label/annotation keys of the orchestration platform.
CLUSTER_API_GROUP = "cluster.x-k8s.io"
INFRASTRUCTURE_API_GROUP = "infrastructure.cluster.x-k8s.io"
CONTROL_PLANE_API_GROUP = "controlplane.cluster.x-k8s.io"

CLUSTER_NAME_LABEL = "cluster.x-k8s.io/cluster-name"
MACHINE_POOL_NAME_LABEL = "cluster.x-k8s.io/pool-name"
WATCH_FILTER_LABEL = "cluster.x-k8s.io/watch-filter"
PAUSED_ANNOTATION = "cluster.x-k8s.io/paused"
REPLICAS_MANAGED_BY_ANNOTATION = "cluster.x-k8s.io/replicas-managed-by"
PROVIDER_ANNOTATION = "cluster-api-provider-aws"

MANAGED_CONTROL_PLANE_KIND = "AWSManagedControlPlane"
INFRASTRUCTURE_MACHINE_KIND = "AWSMachine"


class ASGStatus(str, Enum):
    """Lifecycle status reported for an autoscaling group."""

    NONE = ""
    CREATE_IN_PROGRESS = "Create in progress"
    UPDATING = "Updating"
    DELETE_IN_PROGRESS = "Delete in progress"
    DELETED = "Deleted"


class ConditionType(str, Enum):
    READY = "Ready"
    ASG_READY = "ASGReady"
    LAUNCH_TEMPLATE_READY = "LaunchTemplateReady"


class ConditionStatus(str, Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class ConditionSeverity(str, Enum):
    ERROR = "Error"
    WARNING = "Warning"
    INFO = "Info"
    NONE = ""


class ConditionReason(str, Enum):
    WAITING_FOR_CLUSTER_INFRASTRUCTURE = "WaitingForClusterInfrastructure"
    WAITING_FOR_BOOTSTRAP_DATA = "WaitingForBootstrapData"
    ASG_NOT_FOUND = "ASGNotFound"
    ASG_PROVISION_FAILED = "ASGProvisionFailed"
    ASG_DELETION_IN_PROGRESS = "ASGDeletionInProgress"
    MACHINE_CREATION_FAILED = "AWSMachineCreationFailed"
    MACHINE_DELETION_FAILED = "AWSMachineDeletionFailed"
    LAUNCH_TEMPLATE_RECONCILE_FAILED = "LaunchTemplateReconcileFailed"
    ASG_UPDATE_FAILED = "ASGUpdateFailed"
    TAGS_UPDATE_FAILED = "TagsUpdateFailed"


class EventType(str, Enum):
    NORMAL = "Normal"
    WARNING = "Warning"


@dataclass
class Condition:
    type: ConditionType
    status: ConditionStatus
    severity: ConditionSeverity = ConditionSeverity.NONE
    reason: str = ""
    message: str = ""
    last_transition_time: Optional[datetime] = None


@dataclass(frozen=True)
class ObjectKey:
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass
class OwnerReference:
    api_version: str
    kind: str
    name: str
    uid: str = ""
    block_owner_deletion: bool = False


@dataclass
class ObjectReference:
    api_version: str
    kind: str
    name: str
    namespace: str = ""


@dataclass
class ObjectMeta:
    name: str = ""
    namespace: str = "default"
    uid: str = ""
    generate_name: str = ""
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    owner_references: List[OwnerReference] = field(default_factory=list)
    finalizers: List[str] = field(default_factory=list)
    deletion_timestamp: Optional[datetime] = None

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.namespace, self.name)

    @property
    def is_deleting(self) -> bool:
        return self.deletion_timestamp is not None

    def add_finalizer(self, finalizer: str) -> bool:
        """Add ``finalizer``; return ``True`` if the object changed."""
        if finalizer in self.finalizers:
            return False
        self.finalizers.append(finalizer)
        return True

    def remove_finalizer(self, finalizer: str) -> bool:
        if finalizer not in self.finalizers:
            return False
        self.finalizers = [item for item in self.finalizers if item != finalizer]
        return True


def parse_group_version(api_version: str) -> Tuple[str, str]:
    """
    Split ``group/version`` into its parts.

    ``"v1"`` is the core group, ``""`` is the empty group version; more than
    one slash is malformed.
    """
    if not api_version or api_version == "/":
        return "", ""
    parts = api_version.split("/")
    if len(parts) == 1:
        return "", parts[0]
    if len(parts) == 2:
        return parts[0], parts[1]
    raise MalformedInputError(f"unexpected GroupVersion string: {api_version}")
