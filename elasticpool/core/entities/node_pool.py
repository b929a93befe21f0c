"""
NodePool entity definitions: the declared desired state of an elastic node
pool and the status this controller publishes for it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, Optional

from elasticpool.core.entities.types import (
    INFRASTRUCTURE_API_GROUP,
    ASGStatus,
    Condition,
    ObjectMeta,
)

# Scaling processes recognised by the autoscaling service, in declaration order.
SCALING_PROCESSES = (
    "Launch",
    "Terminate",
    "AddToLoadBalancer",
    "AlarmNotification",
    "AZRebalance",
    "HealthCheck",
    "InstanceRefresh",
    "ReplaceUnhealthy",
    "ScheduledActions",
)


@dataclass
class InstancesDistribution:
    on_demand_allocation_strategy: Optional[str] = None
    spot_allocation_strategy: Optional[str] = None
    on_demand_base_capacity: Optional[int] = None
    on_demand_percentage_above_base_capacity: Optional[int] = None


@dataclass
class InstanceOverride:
    instance_type: str


@dataclass
class MixedInstancesPolicy:
    instances_distribution: Optional[InstancesDistribution] = None
    overrides: List[InstanceOverride] = field(default_factory=list)


@dataclass
class RefreshPreferences:
    disable: bool = False
    strategy: Optional[str] = None
    instance_warmup: Optional[int] = None
    min_healthy_percentage: Optional[int] = None


@dataclass
class SuspendProcesses:
    """
    Scaling processes to keep suspended on the group.

    ``processes`` maps a process name to an explicit on/off value. With
    ``all`` set every known process is suspended unless explicitly turned off.
    """

    all: bool = False
    processes: Dict[str, bool] = field(default_factory=dict)

    def to_process_names(self) -> List[str]:
        names: List[str] = []
        for process in SCALING_PROCESSES:
            value = self.processes.get(process)
            if self.all:
                if value is False:
                    continue
                names.append(process)
            elif value:
                names.append(process)
        return names


@dataclass
class LaunchTemplateSpec:
    """Reference to (and content of) the instance template used by the pool."""

    name: Optional[str] = None
    ami_id: Optional[str] = None
    instance_type: str = ""
    ssh_key_name: Optional[str] = None
    iam_instance_profile: str = ""
    additional_security_groups: List[str] = field(default_factory=list)


@dataclass
class NodePoolSpec:
    min_size: int = 1
    max_size: int = 1
    launch_template: LaunchTemplateSpec = field(default_factory=LaunchTemplateSpec)
    subnets: List[str] = field(default_factory=list)
    additional_tags: Dict[str, str] = field(default_factory=dict)
    mixed_instances_policy: Optional[MixedInstancesPolicy] = None
    capacity_rebalance: bool = False
    suspend_processes: Optional[SuspendProcesses] = None
    refresh_preferences: Optional[RefreshPreferences] = None
    provider_id: str = ""
    provider_id_list: List[str] = field(default_factory=list)

    def desired_suspended_processes(self) -> List[str]:
        if self.suspend_processes is None:
            return []
        return self.suspend_processes.to_process_names()

    @property
    def instance_refresh_disabled(self) -> bool:
        return self.refresh_preferences is not None and self.refresh_preferences.disable


@dataclass
class InstanceStatus:
    instance_id: str
    version: Optional[str] = None


@dataclass
class NodePoolStatus:
    ready: bool = False
    replicas: int = 0
    conditions: List[Condition] = field(default_factory=list)
    instances: List[InstanceStatus] = field(default_factory=list)
    launch_template_id: str = ""
    launch_template_version: Optional[str] = None
    asg_status: Optional[ASGStatus] = None
    infrastructure_machine_kind: str = ""
    failure_reason: Optional[str] = None
    failure_message: Optional[str] = None


@dataclass
class NodePool:
    """Infrastructure machine pool backed by a cloud autoscaling group."""

    KIND: ClassVar[str] = "AWSMachinePool"
    API_VERSION: ClassVar[str] = f"{INFRASTRUCTURE_API_GROUP}/v1beta2"

    metadata: ObjectMeta
    spec: NodePoolSpec = field(default_factory=NodePoolSpec)
    status: NodePoolStatus = field(default_factory=NodePoolStatus)
