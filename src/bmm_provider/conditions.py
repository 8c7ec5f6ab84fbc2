"""
Condition bookkeeping for status objects.

A condition's last_transition_time only moves when its status flips, so
observers can tell a long-standing failure from a fresh one.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol

from .schemas.objects import Condition, ConditionStatus

# Cluster conditions
VPC_READY = "VPCReady"
SUBNETS_READY = "SubnetsReady"
NSG_READY = "NSGReady"

# Machine conditions
INSTANCE_PROVISIONED = "InstanceProvisioned"
NETWORK_CONFIGURED = "NetworkConfigured"

READY = "Ready"


class _Status(Protocol):
    conditions: list[Condition]


class _HasStatus(Protocol):
    @property
    def status(self) -> _Status: ...


def get_condition(obj: _HasStatus, cond_type: str) -> Condition | None:
    return next((c for c in obj.status.conditions if c.type == cond_type), None)


def is_true(obj: _HasStatus, cond_type: str) -> bool:
    cond = get_condition(obj, cond_type)
    return cond is not None and cond.status == ConditionStatus.TRUE


def set_condition(
    obj: _HasStatus,
    cond_type: str,
    status: ConditionStatus,
    reason: str = "",
    message: str = "",
) -> Condition:
    existing = get_condition(obj, cond_type)
    now = datetime.now(timezone.utc)

    if existing is None:
        cond = Condition(
            type=cond_type,
            status=status,
            reason=reason,
            message=message,
            last_transition_time=now,
        )
        obj.status.conditions.append(cond)
        return cond

    if existing.status != status:
        existing.last_transition_time = now
    existing.status = status
    existing.reason = reason
    existing.message = message
    return existing


def mark_true(obj: _HasStatus, cond_type: str, reason: str) -> Condition:
    return set_condition(obj, cond_type, ConditionStatus.TRUE, reason=reason)


def mark_false(
    obj: _HasStatus, cond_type: str, reason: str, message: str = ""
) -> Condition:
    return set_condition(
        obj, cond_type, ConditionStatus.FALSE, reason=reason, message=message
    )
