from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache
from typing import Protocol
from uuid import UUID

from .schemas.remote import (
    Instance,
    InstanceCreateRequest,
    InstanceDeleteRequest,
    IpBlock,
    IpBlockCreateRequest,
    NetworkSecurityGroup,
    NetworkSecurityGroupCreateRequest,
    Subnet,
    SubnetCreateRequest,
    Vpc,
    VpcCreateRequest,
)


class BMMClient(Protocol):
    """
    The remote operations the controllers call, one per resource operation.

    get_* raise NotFoundError when the resource is absent and RemoteError on
    any other failure. delete_* raise NotFoundError when there is nothing to
    delete; callers treat that as success.
    """

    def create_vpc(self, org: str, body: VpcCreateRequest) -> Vpc: ...

    def get_vpc(self, org: str, vpc_id: UUID) -> Vpc: ...

    def delete_vpc(self, org: str, vpc_id: UUID) -> None: ...

    def create_ip_block(self, org: str, body: IpBlockCreateRequest) -> IpBlock: ...

    def get_ip_block(self, org: str, ip_block_id: UUID) -> IpBlock: ...

    def delete_ip_block(self, org: str, ip_block_id: UUID) -> None: ...

    def create_subnet(self, org: str, body: SubnetCreateRequest) -> Subnet: ...

    def get_subnet(self, org: str, subnet_id: UUID) -> Subnet: ...

    def delete_subnet(self, org: str, subnet_id: UUID) -> None: ...

    def create_network_security_group(
        self, org: str, body: NetworkSecurityGroupCreateRequest
    ) -> NetworkSecurityGroup: ...

    def get_network_security_group(
        self, org: str, nsg_id: str
    ) -> NetworkSecurityGroup: ...

    def delete_network_security_group(self, org: str, nsg_id: str) -> None: ...

    def create_instance(self, org: str, body: InstanceCreateRequest) -> Instance: ...

    def get_instance(self, org: str, instance_id: UUID) -> Instance: ...

    def delete_instance(
        self, org: str, instance_id: UUID, body: InstanceDeleteRequest
    ) -> None: ...


# Builds an authenticated client from (endpoint, token)
ClientFactory = Callable[[str, str], BMMClient]


# Shared Client Registry (Lazy-loaded, one client per credential at a time)


@lru_cache(maxsize=1)
def get_bmm_client(endpoint: str, token: str) -> BMMClient:
    from .rest import RestClient

    return RestClient(endpoint, token)
