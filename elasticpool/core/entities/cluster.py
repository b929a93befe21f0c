"""
Objects owned by the orchestration platform that the reconciler reads:
the logical MachinePool and Cluster, the two infrastructure cluster variants,
logical Machines and the per-instance child resources.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, Optional

from elasticpool.core.entities.asg import InstanceMetadataOptions, SpotMarketOptions, Volume
from elasticpool.core.entities.types import (
    CLUSTER_API_GROUP,
    CONTROL_PLANE_API_GROUP,
    INFRASTRUCTURE_API_GROUP,
    REPLICAS_MANAGED_BY_ANNOTATION,
    ObjectMeta,
    ObjectReference,
)


@dataclass
class Bootstrap:
    data_secret_name: Optional[str] = None


@dataclass
class MachinePoolSpec:
    cluster_name: str = ""
    replicas: Optional[int] = None
    bootstrap: Bootstrap = field(default_factory=Bootstrap)
    infrastructure_ref: Optional[ObjectReference] = None


@dataclass
class MachinePool:
    KIND: ClassVar[str] = "MachinePool"
    API_VERSION: ClassVar[str] = f"{CLUSTER_API_GROUP}/v1beta1"

    metadata: ObjectMeta
    spec: MachinePoolSpec = field(default_factory=MachinePoolSpec)

    def replicas_managed_by_external_autoscaler(self) -> bool:
        return REPLICAS_MANAGED_BY_ANNOTATION in self.metadata.annotations


@dataclass
class ClusterSpec:
    control_plane_ref: Optional[ObjectReference] = None
    infrastructure_ref: Optional[ObjectReference] = None


@dataclass
class ClusterStatus:
    infrastructure_ready: bool = False


@dataclass
class Cluster:
    KIND: ClassVar[str] = "Cluster"
    API_VERSION: ClassVar[str] = f"{CLUSTER_API_GROUP}/v1beta1"

    metadata: ObjectMeta
    spec: ClusterSpec = field(default_factory=ClusterSpec)
    status: ClusterStatus = field(default_factory=ClusterStatus)


@dataclass
class InfraCluster:
    """Self-managed infrastructure cluster."""

    KIND: ClassVar[str] = "AWSCluster"
    API_VERSION: ClassVar[str] = f"{INFRASTRUCTURE_API_GROUP}/v1beta2"

    metadata: ObjectMeta
    region: str = ""
    additional_tags: Dict[str, str] = field(default_factory=dict)


@dataclass
class ManagedControlPlane:
    """Managed control plane acting as the infrastructure cluster."""

    KIND: ClassVar[str] = "AWSManagedControlPlane"
    API_VERSION: ClassVar[str] = f"{CONTROL_PLANE_API_GROUP}/v1beta2"

    metadata: ObjectMeta
    region: str = ""
    additional_tags: Dict[str, str] = field(default_factory=dict)


@dataclass
class Machine:
    KIND: ClassVar[str] = "Machine"
    API_VERSION: ClassVar[str] = f"{CLUSTER_API_GROUP}/v1beta1"

    metadata: ObjectMeta


@dataclass
class InstanceMachineSpec:
    provider_id: Optional[str] = None
    instance_id: Optional[str] = None
    ami_id: Optional[str] = None
    instance_type: str = ""
    public_ip: bool = False
    ssh_key_name: Optional[str] = None
    instance_metadata_options: Optional[InstanceMetadataOptions] = None
    iam_instance_profile: str = ""
    additional_security_groups: List[str] = field(default_factory=list)
    subnet_id: Optional[str] = None
    root_volume: Optional[Volume] = None
    non_root_volumes: List[Volume] = field(default_factory=list)
    network_interfaces: List[str] = field(default_factory=list)
    spot_market_options: Optional[SpotMarketOptions] = None
    tenancy: str = ""


@dataclass
class InstanceMachine:
    """Child resource mirroring one cloud instance of the pool."""

    KIND: ClassVar[str] = "AWSMachine"
    API_VERSION: ClassVar[str] = f"{INFRASTRUCTURE_API_GROUP}/v1beta2"

    metadata: ObjectMeta
    spec: InstanceMachineSpec = field(default_factory=InstanceMachineSpec)
