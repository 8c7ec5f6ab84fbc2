"""
REST implementation of BMMClient on top of httpx.

Every request carries the bearer token and is bounded by the client timeout.
Reads are retried on transport errors; creates and deletes are sent once and
any failure surfaces to the reconcile pass.
"""

from __future__ import annotations

from typing import TypeVar
from uuid import UUID

import httpx
from pydantic import BaseModel, ValidationError
from tenacity import retry

from .core import REQUEST_TIMEOUT, RETRY_CONFIG
from .errors import NotFoundError, RemoteError
from .schemas.remote import (
    Instance,
    InstanceCreateRequest,
    InstanceDeleteRequest,
    IpBlock,
    IpBlockCreateRequest,
    NetworkSecurityGroup,
    NetworkSecurityGroupCreateRequest,
    RemoteModel,
    Subnet,
    SubnetCreateRequest,
    Vpc,
    VpcCreateRequest,
)

M = TypeVar("M", bound=BaseModel)

VPC = "vpc"
SUBNET = "subnet"
IP_BLOCK = "ipblock"
NSG = "network-security-group"
INSTANCE = "instance"


class RestClient:
    def __init__(
        self,
        endpoint: str,
        token: str,
        timeout: float = REQUEST_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._http = httpx.Client(
            base_url=endpoint.rstrip("/"),
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    @staticmethod
    def _path(org: str, resource: str, resource_id: UUID | str | None = None) -> str:
        path = f"/v2/org/{org}/carbide/{resource}"
        if resource_id is not None:
            path += f"/{resource_id}"
        return path

    @staticmethod
    def _decode(resp: httpx.Response, model: type[M], resource: str) -> M:
        try:
            return model.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise RemoteError(
                f"unexpected response for {resource}: {e}", resp.status_code
            ) from e

    def _create(
        self,
        org: str,
        resource: str,
        body: RemoteModel,
        model: type[M],
        accepted: tuple[int, ...] = (201,),
    ) -> M:
        try:
            resp = self._http.post(self._path(org, resource), json=body.to_wire())
        except httpx.HTTPError as e:
            raise RemoteError(f"failed to create {resource}: {e}") from e

        if resp.status_code not in accepted:
            raise RemoteError(
                f"failed to create {resource}, status {resp.status_code}",
                resp.status_code,
            )
        return self._decode(resp, model, resource)

    @retry(**RETRY_CONFIG)  # type: ignore[call-overload, untyped-decorator]
    def _send_get(self, path: str) -> httpx.Response:
        return self._http.get(path)

    def _get(
        self, org: str, resource: str, resource_id: UUID | str, model: type[M]
    ) -> M:
        try:
            resp = self._send_get(self._path(org, resource, resource_id))
        except httpx.HTTPError as e:
            raise RemoteError(f"failed to get {resource} {resource_id}: {e}") from e

        if resp.status_code == 404:
            raise NotFoundError(f"{resource} {resource_id} not found")
        if resp.status_code != 200:
            raise RemoteError(
                f"failed to get {resource} {resource_id}, status {resp.status_code}",
                resp.status_code,
            )
        return self._decode(resp, model, resource)

    def _delete(
        self,
        org: str,
        resource: str,
        resource_id: UUID | str,
        body: RemoteModel | None = None,
    ) -> None:
        try:
            resp = self._http.request(
                "DELETE",
                self._path(org, resource, resource_id),
                json=body.to_wire() if body is not None else None,
            )
        except httpx.HTTPError as e:
            raise RemoteError(
                f"failed to delete {resource} {resource_id}: {e}"
            ) from e

        if resp.status_code == 404:
            raise NotFoundError(f"{resource} {resource_id} not found")
        if resp.status_code not in (200, 202, 204):
            raise RemoteError(
                f"failed to delete {resource} {resource_id}, status {resp.status_code}",
                resp.status_code,
            )

    # VPC

    def create_vpc(self, org: str, body: VpcCreateRequest) -> Vpc:
        return self._create(org, VPC, body, Vpc)

    def get_vpc(self, org: str, vpc_id: UUID) -> Vpc:
        return self._get(org, VPC, vpc_id, Vpc)

    def delete_vpc(self, org: str, vpc_id: UUID) -> None:
        self._delete(org, VPC, vpc_id)

    # IP block

    def create_ip_block(self, org: str, body: IpBlockCreateRequest) -> IpBlock:
        return self._create(org, IP_BLOCK, body, IpBlock)

    def get_ip_block(self, org: str, ip_block_id: UUID) -> IpBlock:
        return self._get(org, IP_BLOCK, ip_block_id, IpBlock)

    def delete_ip_block(self, org: str, ip_block_id: UUID) -> None:
        self._delete(org, IP_BLOCK, ip_block_id)

    # Subnet

    def create_subnet(self, org: str, body: SubnetCreateRequest) -> Subnet:
        return self._create(org, SUBNET, body, Subnet)

    def get_subnet(self, org: str, subnet_id: UUID) -> Subnet:
        return self._get(org, SUBNET, subnet_id, Subnet)

    def delete_subnet(self, org: str, subnet_id: UUID) -> None:
        self._delete(org, SUBNET, subnet_id)

    # Network security group

    def create_network_security_group(
        self, org: str, body: NetworkSecurityGroupCreateRequest
    ) -> NetworkSecurityGroup:
        return self._create(org, NSG, body, NetworkSecurityGroup)

    def get_network_security_group(
        self, org: str, nsg_id: str
    ) -> NetworkSecurityGroup:
        return self._get(org, NSG, nsg_id, NetworkSecurityGroup)

    def delete_network_security_group(self, org: str, nsg_id: str) -> None:
        self._delete(org, NSG, nsg_id)

    # Instance

    def create_instance(self, org: str, body: InstanceCreateRequest) -> Instance:
        return self._create(org, INSTANCE, body, Instance, accepted=(200, 201))

    def get_instance(self, org: str, instance_id: UUID) -> Instance:
        return self._get(org, INSTANCE, instance_id, Instance)

    def delete_instance(
        self, org: str, instance_id: UUID, body: InstanceDeleteRequest
    ) -> None:
        self._delete(org, INSTANCE, instance_id, body)
