from __future__ import annotations

from pydantic import BaseModel

from .errors import UnknownKindError
from .schemas.cluster import NvidiaBMMCluster
from .schemas.machine import NvidiaBMMMachine, NvidiaBMMMachineTemplate
from .schemas.objects import Cluster, Machine, Secret


class Registry:
    """
    Maps object kinds to their models.

    Built once at process start with new_registry() and handed to whatever
    needs to resolve a kind string (the object store, owner lookups).
    """

    def __init__(self) -> None:
        self._models: dict[str, type[BaseModel]] = {}

    def register(self, model: type[BaseModel]) -> None:
        field = model.model_fields.get("kind")
        if field is None or not isinstance(field.default, str):
            raise UnknownKindError(f"{model.__name__} declares no kind")
        self._models[field.default] = model

    def model_for(self, kind: str) -> type[BaseModel]:
        try:
            return self._models[kind]
        except KeyError:
            raise UnknownKindError(f"kind {kind!r} is not registered") from None

    def kind_of(self, model: type[BaseModel] | BaseModel) -> str:
        cls = model if isinstance(model, type) else type(model)
        for kind, registered in self._models.items():
            if registered is cls:
                return kind
        raise UnknownKindError(f"{cls.__name__} is not registered")

    def kinds(self) -> list[str]:
        return sorted(self._models)


def new_registry() -> Registry:
    registry = Registry()
    for model in (
        Cluster,
        Machine,
        Secret,
        NvidiaBMMCluster,
        NvidiaBMMMachine,
        NvidiaBMMMachineTemplate,
    ):
        registry.register(model)
    return registry
