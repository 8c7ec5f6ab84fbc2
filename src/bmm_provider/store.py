"""
Object store interface of the host platform.

Controllers read every object fresh at the start of a pass. Writes go
through patch(), which applies a change to the current stored object
atomically, so each controller only touches the fields it owns and never
reverts another writer's change. Deletion follows finalizer semantics:
deleting an object that still carries finalizers only stamps
deletion_timestamp, and the object disappears once a write leaves it with
no finalizers.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Protocol, TypeVar

from pydantic import BaseModel

from .errors import ObjectNotFoundError
from .registry import Registry

T = TypeVar("T", bound=BaseModel)


class ObjectStore(Protocol):
    registry: Registry

    def get(self, model: type[T], namespace: str, name: str) -> T | None:
        """Return a fresh copy of the object, or None if absent."""

    def create(self, obj: BaseModel) -> None:
        """Store a new object."""

    def update(self, obj: BaseModel) -> None:
        """Replace an existing object with obj."""

    def patch(
        self, model: type[T], namespace: str, name: str, mutate: Callable[[T], None]
    ) -> T:
        """Apply mutate to the current object in one step and return the result."""

    def delete(self, model: type[BaseModel], namespace: str, name: str) -> None:
        """Request deletion, honouring finalizers."""


class InMemoryStore:
    """Thread-safe ObjectStore backed by a dict, for tests and local runs."""

    def __init__(self, registry: Registry) -> None:
        self.registry = registry
        self._objects: dict[tuple[str, str, str], BaseModel] = {}
        self._lock = threading.Lock()

    def _key(self, obj: BaseModel) -> tuple[str, str, str]:
        meta = obj.metadata  # type: ignore[attr-defined]
        return self.registry.kind_of(obj), meta.namespace, meta.name

    def get(self, model: type[T], namespace: str, name: str) -> T | None:
        key = (self.registry.kind_of(model), namespace, name)
        with self._lock:
            obj = self._objects.get(key)
            return obj.model_copy(deep=True) if obj is not None else None  # type: ignore[return-value]

    def create(self, obj: BaseModel) -> None:
        key = self._key(obj)
        with self._lock:
            if key in self._objects:
                raise ValueError(f"{key[0]} {key[1]}/{key[2]} already exists")
            self._objects[key] = obj.model_copy(deep=True)

    def update(self, obj: BaseModel) -> None:
        key = self._key(obj)
        with self._lock:
            self._replace(key, self._current(key), obj.model_copy(deep=True))

    def patch(
        self, model: type[T], namespace: str, name: str, mutate: Callable[[T], None]
    ) -> T:
        key = (self.registry.kind_of(model), namespace, name)
        with self._lock:
            current = self._current(key)
            patched = current.model_copy(deep=True)
            mutate(patched)  # type: ignore[arg-type]
            self._replace(key, current, patched)
            return patched.model_copy(deep=True)  # type: ignore[return-value]

    def delete(self, model: type[BaseModel], namespace: str, name: str) -> None:
        key = (self.registry.kind_of(model), namespace, name)
        with self._lock:
            current = self._current(key)
            meta = current.metadata  # type: ignore[attr-defined]
            if meta.deletion_timestamp is None:
                meta.deletion_timestamp = datetime.now(timezone.utc)
            if self._is_released(current):
                del self._objects[key]

    def _current(self, key: tuple[str, str, str]) -> BaseModel:
        current = self._objects.get(key)
        if current is None:
            raise ObjectNotFoundError(f"{key[0]} {key[1]}/{key[2]} not found")
        return current

    def _replace(
        self, key: tuple[str, str, str], current: BaseModel, stored: BaseModel
    ) -> None:
        # deletion_timestamp can be set by delete() only, never cleared
        deleted_at = current.metadata.deletion_timestamp  # type: ignore[attr-defined]
        if deleted_at is not None:
            stored.metadata.deletion_timestamp = deleted_at  # type: ignore[attr-defined]

        if self._is_released(stored):
            del self._objects[key]
        else:
            self._objects[key] = stored

    @staticmethod
    def _is_released(obj: BaseModel) -> bool:
        meta = obj.metadata  # type: ignore[attr-defined]
        return meta.deletion_timestamp is not None and not meta.finalizers
