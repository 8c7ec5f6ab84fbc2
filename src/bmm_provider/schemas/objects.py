from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class OwnerReference(BaseModel):
    kind: str
    name: str
    uid: str = ""


class ObjectMeta(BaseModel):
    name: str
    namespace: str = "default"
    uid: str = ""
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    owner_references: list[OwnerReference] = Field(default_factory=list)
    finalizers: list[str] = Field(default_factory=list)
    deletion_timestamp: datetime | None = None


class ConditionStatus(str, Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class Condition(BaseModel):
    type: str
    status: ConditionStatus
    reason: str = ""
    message: str = ""
    last_transition_time: datetime | None = None


class APIEndpoint(BaseModel):
    host: str = ""
    port: int = 0

    def is_set(self) -> bool:
        return bool(self.host)


class MachineAddress(BaseModel):
    type: str = Field(description="InternalIP, ExternalIP or Hostname")
    address: str


class ObjectReference(BaseModel):
    kind: str = ""
    name: str
    namespace: str = ""


class Secret(BaseModel):
    kind: Literal["Secret"] = "Secret"
    metadata: ObjectMeta
    data: dict[str, bytes] = Field(default_factory=dict)


class ClusterSpec(BaseModel):
    infrastructure_ref: ObjectReference | None = None
    paused: bool = False


class ClusterStatus(BaseModel):
    infrastructure_ready: bool = False


class Cluster(BaseModel):
    """The generic cluster record owning an NvidiaBMMCluster."""

    kind: Literal["Cluster"] = "Cluster"
    metadata: ObjectMeta
    spec: ClusterSpec = Field(default_factory=ClusterSpec)
    status: ClusterStatus = Field(default_factory=ClusterStatus)


class Bootstrap(BaseModel):
    data_secret_name: str | None = None


class MachineSpec(BaseModel):
    cluster_name: str = ""
    bootstrap: Bootstrap = Field(default_factory=Bootstrap)
    infrastructure_ref: ObjectReference | None = None
    provider_id: str | None = None


class MachineStatus(BaseModel):
    infrastructure_ready: bool = False
    addresses: list[MachineAddress] = Field(default_factory=list)


class Machine(BaseModel):
    """The generic machine record owning an NvidiaBMMMachine."""

    kind: Literal["Machine"] = "Machine"
    metadata: ObjectMeta
    spec: MachineSpec = Field(default_factory=MachineSpec)
    status: MachineStatus = Field(default_factory=MachineStatus)
