"""
Observed cloud-side records: autoscaling groups, their member instances and
launch templates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from elasticpool.core.entities.node_pool import MixedInstancesPolicy
from elasticpool.core.entities.provider_id import format_provider_id
from elasticpool.core.entities.types import ASGStatus


@dataclass
class Volume:
    size: int = 0
    device_name: str = ""
    type: str = ""
    iops: Optional[int] = None
    encrypted: Optional[bool] = None


@dataclass
class InstanceMetadataOptions:
    http_endpoint: str = "enabled"
    http_tokens: str = "optional"
    http_put_response_hop_limit: int = 1
    instance_metadata_tags: str = "disabled"


@dataclass
class SpotMarketOptions:
    max_price: Optional[str] = None


@dataclass
class NetworkInterface:
    id: str
    description: str = ""


@dataclass
class Instance:
    """A member instance of an autoscaling group."""

    id: str
    availability_zone: str = ""
    type: str = ""
    state: str = ""
    image_id: str = ""
    subnet_id: str = ""
    ssh_key_name: Optional[str] = None
    iam_profile: str = ""
    public_ip: Optional[str] = None
    security_group_ids: List[str] = field(default_factory=list)
    instance_metadata_options: Optional[InstanceMetadataOptions] = None
    root_volume: Optional[Volume] = None
    non_root_volumes: List[Volume] = field(default_factory=list)
    network_interfaces: List[str] = field(default_factory=list)
    spot_market_options: Optional[SpotMarketOptions] = None
    tenancy: str = ""
    launch_template_version: Optional[str] = None

    @property
    def provider_id(self) -> str:
        return format_provider_id(self.availability_zone, self.id)


@dataclass
class AutoScalingGroup:
    name: str
    id: str = ""
    desired_capacity: Optional[int] = None
    min_size: int = 0
    max_size: int = 0
    capacity_rebalance: bool = False
    subnets: List[str] = field(default_factory=list)
    currently_suspended_processes: List[str] = field(default_factory=list)
    mixed_instances_policy: Optional[MixedInstancesPolicy] = None
    status: ASGStatus = ASGStatus.NONE
    instances: List[Instance] = field(default_factory=list)

    def provider_ids(self) -> List[str]:
        return [instance.provider_id for instance in self.instances]


@dataclass
class LaunchTemplate:
    id: str
    name: str
    version: Optional[str] = None
