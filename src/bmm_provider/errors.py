"""
Error taxonomy.

Callers react by type:
ConfigurationError is fatal for the pass and needs an external fix.
NotFoundError on a cached id means the cache is stale, not that the pass failed.
RemoteError is fatal for the pass and is retried with backoff.
Waiting on a dependency is not an error at all; it is a requeue.
"""

from __future__ import annotations


class ProviderError(Exception):
    """Base class for all provider exceptions."""


class ConfigurationError(ProviderError):
    """Raised for malformed CIDRs, invalid identifiers or conflicting fields."""


class ScopeError(ConfigurationError):
    """Raised when a scope cannot be built (missing secret, missing key)."""


class ProviderIDError(ConfigurationError):
    """Base class for provider-id codec failures."""


class ProviderIDStructureError(ProviderIDError):
    """Raised when a provider-id has the wrong scheme or segment count."""


class ProviderIDValueError(ProviderIDError):
    """Raised when a provider-id segment holds an invalid value."""


class RemoteError(ProviderError):
    """Raised when the remote API returns a non-success status or is unreachable."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(RemoteError):
    """Raised when the remote API reports a resource as absent."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=404)


class ObjectNotFoundError(ProviderError):
    """Raised when a host object cannot be found in the object store."""


class UnknownKindError(ProviderError):
    """Raised when an object kind was never registered."""
