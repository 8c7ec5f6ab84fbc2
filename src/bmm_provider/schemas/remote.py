"""
Request and response payloads of the BMM REST API.

Field names are snake_case in Python and camelCase on the wire.
Requests are serialized with ``exclude_none`` so optional fields the
caller leaves unset never reach the API.
"""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RemoteModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class VpcCreateRequest(RemoteModel):
    name: str
    site_id: UUID
    network_virtualization_type: str | None = None
    labels: dict[str, str] | None = None


class Vpc(RemoteModel):
    id: UUID | None = None
    name: str | None = None
    site_id: UUID | None = None
    network_virtualization_type: str | None = None
    labels: dict[str, str] | None = None


class IpBlockCreateRequest(RemoteModel):
    name: str
    site_id: UUID
    prefix: str
    prefix_length: int
    protocol_version: str
    routing_type: str


class IpBlock(RemoteModel):
    id: UUID | None = None
    name: str | None = None
    prefix: str | None = None
    prefix_length: int | None = None


class SubnetCreateRequest(RemoteModel):
    name: str
    vpc_id: UUID
    ipv4_block_id: UUID
    prefix_length: int


class Subnet(RemoteModel):
    id: UUID | None = None
    name: str | None = None
    vpc_id: UUID | None = None
    prefix_length: int | None = None


class RuleDirection(str, Enum):
    INGRESS = "ingress"
    EGRESS = "egress"


class RuleProtocol(str, Enum):
    TCP = "tcp"
    UDP = "udp"
    ICMP = "icmp"
    ALL = "all"


class RuleAction(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class NetworkSecurityGroupRule(RemoteModel):
    name: str | None = None
    direction: RuleDirection
    protocol: RuleProtocol
    action: RuleAction
    source_prefix: str
    destination_prefix: str
    destination_port_range: str | None = None


class NetworkSecurityGroupCreateRequest(RemoteModel):
    name: str
    site_id: UUID
    rules: list[NetworkSecurityGroupRule] | None = None


class NetworkSecurityGroup(RemoteModel):
    id: str | None = None
    name: str | None = None


class InterfaceCreateRequest(RemoteModel):
    subnet_id: UUID
    is_physical: bool = False


class InstanceCreateRequest(RemoteModel):
    name: str
    tenant_id: UUID
    vpc_id: UUID
    user_data: str | None = None
    interfaces: list[InterfaceCreateRequest] | None = None
    instance_type_id: UUID | None = None
    machine_id: str | None = None
    allow_unhealthy_machine: bool | None = None
    ssh_key_group_ids: list[UUID] | None = None
    labels: dict[str, str] | None = None
    phone_home_enabled: bool | None = None


class InstanceInterface(RemoteModel):
    subnet_id: UUID | None = None
    is_physical: bool | None = None
    ip_addresses: list[str] | None = None


class Instance(RemoteModel):
    id: UUID | None = None
    name: str | None = None
    machine_id: str | None = None
    status: str | None = None
    interfaces: list[InstanceInterface] | None = None


class InstanceDeleteRequest(RemoteModel):
    """Both fields unset means a plain delete, not a repair/replace."""

    machine_health_issue: dict[str, str] | None = None
    is_repair_tenant: bool | None = None
