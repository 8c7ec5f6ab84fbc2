"""
Provider-id codec.

A provider-id correlates a cluster member with its remote instance:

    nvidia-bmm://<org>/<tenant>/<site>/<instance-uuid>

Wrong scheme or segment count is a structural error; a last segment that
is not a UUID is a value error.
"""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .core import PROVIDER_ID_SCHEME
from .errors import (
    ConfigurationError,
    ProviderIDStructureError,
    ProviderIDValueError,
)

_SEPARATOR = "://"


class ProviderID(BaseModel):
    model_config = ConfigDict(frozen=True)

    org: str
    tenant: str
    site: str
    instance_id: UUID

    def __str__(self) -> str:
        for label, segment in (
            ("org", self.org),
            ("tenant", self.tenant),
            ("site", self.site),
        ):
            if not segment or "/" in segment:
                raise ProviderIDValueError(
                    f"invalid {label} segment {segment!r} for provider ID"
                )
        return (
            f"{PROVIDER_ID_SCHEME}{_SEPARATOR}"
            f"{self.org}/{self.tenant}/{self.site}/{self.instance_id}"
        )

    @classmethod
    def parse(cls, value: str) -> ProviderID:
        scheme, sep, rest = value.partition(_SEPARATOR)
        if not sep or scheme != PROVIDER_ID_SCHEME:
            raise ProviderIDStructureError(
                f"invalid provider ID {value!r}: expected scheme {PROVIDER_ID_SCHEME!r}"
            )

        segments = rest.split("/")
        if len(segments) != 4 or not all(segments):
            raise ProviderIDStructureError(
                f"invalid provider ID {value!r}: expected "
                f"{PROVIDER_ID_SCHEME}://org/tenant/site/instance-id"
            )

        org, tenant, site, raw_instance = segments
        try:
            instance_id = UUID(raw_instance)
        except ValueError as e:
            raise ProviderIDValueError(
                f"invalid instance ID {raw_instance!r} in provider ID: {e}"
            ) from e

        return cls(org=org, tenant=tenant, site=site, instance_id=instance_id)


def parse_uuid(value: str, what: str) -> UUID:
    """Parses a remote identifier, raising ConfigurationError on garbage."""
    try:
        return UUID(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"invalid {what} {value!r}: {e}") from e


def encode(org: str, tenant: str, site: str, instance_id: UUID) -> str:
    return str(ProviderID(org=org, tenant=tenant, site=site, instance_id=instance_id))


def decode(value: str) -> tuple[str, str, str, UUID]:
    pid = ProviderID.parse(value)
    return pid.org, pid.tenant, pid.site, pid.instance_id
