from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from .objects import APIEndpoint, Condition, ObjectMeta


class NetworkVirtualizationType(str, Enum):
    ETHERNET_VIRTUALIZER = "ETHERNET_VIRTUALIZER"
    FNN = "FNN"


class SiteReference(BaseModel):
    name: str = Field(default="", description="Site object in the same namespace")
    id: str = Field(default="", description="Site UUID, wins over name")


class NSGRule(BaseModel):
    name: str
    direction: str = Field(description="ingress or egress")
    protocol: str = Field(description="tcp, udp, icmp or all")
    action: str = Field(description="allow or deny")
    port_range: str = Field(default="", description='e.g. "80" or "1000-2000"')
    source_cidr: str = ""


class NSGSpec(BaseModel):
    name: str
    rules: list[NSGRule] = Field(default_factory=list)


class VPCSpec(BaseModel):
    name: str
    network_virtualization_type: NetworkVirtualizationType
    labels: dict[str, str] = Field(default_factory=dict)
    network_security_group: NSGSpec | None = None


class SubnetSpec(BaseModel):
    name: str
    cidr: str
    role: Literal["control-plane", "worker"] | None = None
    labels: dict[str, str] = Field(default_factory=dict)


class SecretReference(BaseModel):
    name: str
    namespace: str = ""


class AuthenticationSpec(BaseModel):
    secret_ref: SecretReference


class NvidiaBMMClusterSpec(BaseModel):
    site_ref: SiteReference
    tenant_id: str
    vpc: VPCSpec
    subnets: list[SubnetSpec] = Field(default_factory=list)
    control_plane_endpoint: APIEndpoint | None = None
    authentication: AuthenticationSpec


class NetworkStatus(BaseModel):
    # Insertion ordered; names are unique per cluster
    subnet_ids: dict[str, str] = Field(default_factory=dict)
    nsg_id: str = ""
    ip_block_id: str = ""


class NvidiaBMMClusterStatus(BaseModel):
    ready: bool = False
    vpc_id: str = ""
    network_status: NetworkStatus = Field(default_factory=NetworkStatus)
    conditions: list[Condition] = Field(default_factory=list)


class NvidiaBMMCluster(BaseModel):
    kind: Literal["NvidiaBMMCluster"] = "NvidiaBMMCluster"
    metadata: ObjectMeta
    spec: NvidiaBMMClusterSpec
    status: NvidiaBMMClusterStatus = Field(default_factory=NvidiaBMMClusterStatus)
