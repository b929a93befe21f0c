"""
Domain entities used throughout the ElasticPool reconciler.
"""

from .asg import (  # noqa: F401
    AutoScalingGroup,
    Instance,
    InstanceMetadataOptions,
    LaunchTemplate,
    SpotMarketOptions,
    Volume,
)
from .cluster import (  # noqa: F401
    Bootstrap,
    Cluster,
    ClusterSpec,
    ClusterStatus,
    InfraCluster,
    InstanceMachine,
    InstanceMachineSpec,
    Machine,
    MachinePool,
    MachinePoolSpec,
    ManagedControlPlane,
)
from .node_pool import (  # noqa: F401
    InstanceOverride,
    InstancesDistribution,
    LaunchTemplateSpec,
    MixedInstancesPolicy,
    NodePool,
    NodePoolSpec,
    NodePoolStatus,
    RefreshPreferences,
    SuspendProcesses,
)
from .provider_id import format_provider_id, parse_provider_id  # noqa: F401
from .types import (  # noqa: F401
    ASGStatus,
    Condition,
    ConditionReason,
    ConditionSeverity,
    ConditionStatus,
    ConditionType,
    EventType,
    ObjectKey,
    ObjectMeta,
    ObjectReference,
    OwnerReference,
)

__all__ = [
    "ASGStatus",
    "AutoScalingGroup",
    "Bootstrap",
    "Cluster",
    "ClusterSpec",
    "ClusterStatus",
    "Condition",
    "ConditionReason",
    "ConditionSeverity",
    "ConditionStatus",
    "ConditionType",
    "EventType",
    "InfraCluster",
    "Instance",
    "InstanceMachine",
    "InstanceMachineSpec",
    "InstanceMetadataOptions",
    "InstanceOverride",
    "InstancesDistribution",
    "LaunchTemplate",
    "LaunchTemplateSpec",
    "Machine",
    "MachinePool",
    "MachinePoolSpec",
    "ManagedControlPlane",
    "MixedInstancesPolicy",
    "NodePool",
    "NodePoolSpec",
    "NodePoolStatus",
    "ObjectKey",
    "ObjectMeta",
    "ObjectReference",
    "OwnerReference",
    "RefreshPreferences",
    "SpotMarketOptions",
    "SuspendProcesses",
    "Volume",
    "format_provider_id",
    "parse_provider_id",
]
