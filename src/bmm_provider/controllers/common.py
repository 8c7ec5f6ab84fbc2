from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel

from ..core import PAUSED_ANNOTATION
from ..schemas.objects import Cluster, ObjectMeta
from ..store import ObjectStore


@dataclass(frozen=True)
class Result:
    """
    Outcome of a successful reconcile pass.

    requeue asks for an immediate new pass; requeue_after (seconds) asks for
    a pass after a fixed delay. Failures are raised, not returned, and the
    caller re-invokes with exponential backoff.
    """

    requeue: bool = False
    requeue_after: float | None = None


def _meta(obj: BaseModel) -> ObjectMeta:
    return obj.metadata  # type: ignore[attr-defined, no-any-return]


def has_finalizer(obj: BaseModel, finalizer: str) -> bool:
    return finalizer in _meta(obj).finalizers


def add_finalizer(obj: BaseModel, finalizer: str) -> None:
    if not has_finalizer(obj, finalizer):
        _meta(obj).finalizers.append(finalizer)


def remove_finalizer(obj: BaseModel, finalizer: str) -> None:
    meta = _meta(obj)
    meta.finalizers = [f for f in meta.finalizers if f != finalizer]


def is_deleting(obj: BaseModel) -> bool:
    return _meta(obj).deletion_timestamp is not None


def is_paused(cluster: Cluster, obj: BaseModel) -> bool:
    if cluster.spec.paused:
        return True
    return PAUSED_ANNOTATION in _meta(obj).annotations


def get_owner(store: ObjectStore, obj: BaseModel, kind: str) -> BaseModel | None:
    """Returns the first owner of the given kind, or None if unset or gone."""
    meta = _meta(obj)
    for ref in meta.owner_references:
        if ref.kind == kind:
            model = store.registry.model_for(kind)
            return store.get(model, meta.namespace, ref.name)
    return None
