"""
Address planning for cluster networks.

Every cluster gets one IP block (``10.0.0.0/16``) and each declared subnet is
carved out of it by prefix length only. The remote side picks the actual
range, so host bits in a declared CIDR never matter and are never sent.
"""

from __future__ import annotations

import ipaddress
from uuid import UUID

from .core import (
    IP_BLOCK_PREFIX,
    IP_BLOCK_PREFIX_LENGTH,
    IP_BLOCK_PROTOCOL_VERSION,
    IP_BLOCK_ROUTING_TYPE,
)
from .errors import ConfigurationError
from .schemas.cluster import SubnetSpec
from .schemas.remote import IpBlockCreateRequest, SubnetCreateRequest


def parse_cidr(cidr: str) -> tuple[str, int]:
    """
    Returns the normalized network address and prefix length of a CIDR.
    ``10.0.1.5/24`` yields ``("10.0.1.0", 24)``.
    """
    if "/" not in cidr:
        raise ConfigurationError(f"invalid CIDR {cidr!r}: missing prefix length")
    try:
        network = ipaddress.ip_network(cidr.strip(), strict=False)
    except ValueError as e:
        raise ConfigurationError(f"invalid CIDR {cidr!r}: {e}") from e
    return str(network.network_address), network.prefixlen


def ip_block_name(cluster_name: str) -> str:
    return f"{cluster_name}-ipblock"


def ip_block_request(cluster_name: str, site_id: UUID) -> IpBlockCreateRequest:
    return IpBlockCreateRequest(
        name=ip_block_name(cluster_name),
        site_id=site_id,
        prefix=IP_BLOCK_PREFIX,
        prefix_length=IP_BLOCK_PREFIX_LENGTH,
        protocol_version=IP_BLOCK_PROTOCOL_VERSION,
        routing_type=IP_BLOCK_ROUTING_TYPE,
    )


def subnet_request(
    subnet: SubnetSpec, vpc_id: UUID, ip_block_id: UUID
) -> SubnetCreateRequest:
    _, prefix_length = parse_cidr(subnet.cidr)
    if prefix_length < IP_BLOCK_PREFIX_LENGTH:
        raise ConfigurationError(
            f"subnet {subnet.name} prefix /{prefix_length} is wider than "
            f"the cluster IP block /{IP_BLOCK_PREFIX_LENGTH}"
        )
    return SubnetCreateRequest(
        name=subnet.name,
        vpc_id=vpc_id,
        ipv4_block_id=ip_block_id,
        prefix_length=prefix_length,
    )
