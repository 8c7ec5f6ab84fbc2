from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from .objects import Condition, MachineAddress, ObjectMeta


class InstanceState(str, Enum):
    PENDING = "Pending"
    PROVISIONING = "Provisioning"
    READY = "Ready"
    ERROR = "Error"
    TERMINATING = "Terminating"


class InstanceTypeSpec(BaseModel):
    id: str = Field(default="", description="Instance type UUID, excludes machine_id")
    machine_id: str = Field(default="", description="Specific machine, excludes id")
    allow_unhealthy_machine: bool = False


class OSSpec(BaseModel):
    type: str = ""
    version: str = ""


class NetworkInterface(BaseModel):
    subnet_name: str
    is_physical: bool = False


class NetworkSpec(BaseModel):
    subnet_name: str
    additional_interfaces: list[NetworkInterface] = Field(default_factory=list)


class NvidiaBMMMachineSpec(BaseModel):
    provider_id: str | None = None
    instance_type: InstanceTypeSpec
    operating_system: OSSpec | None = None
    network: NetworkSpec
    ssh_key_groups: list[str] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)


class NvidiaBMMMachineStatus(BaseModel):
    ready: bool = False
    instance_id: str = ""
    machine_id: str = ""
    # Mirrored verbatim from the remote API, see InstanceState
    instance_state: str = ""
    addresses: list[MachineAddress] = Field(default_factory=list)
    conditions: list[Condition] = Field(default_factory=list)


class NvidiaBMMMachine(BaseModel):
    kind: Literal["NvidiaBMMMachine"] = "NvidiaBMMMachine"
    metadata: ObjectMeta
    spec: NvidiaBMMMachineSpec
    status: NvidiaBMMMachineStatus = Field(default_factory=NvidiaBMMMachineStatus)


class TemplateMeta(BaseModel):
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)


class NvidiaBMMMachineTemplateResource(BaseModel):
    metadata: TemplateMeta = Field(default_factory=TemplateMeta)
    spec: NvidiaBMMMachineSpec


class NvidiaBMMMachineTemplateSpec(BaseModel):
    template: NvidiaBMMMachineTemplateResource


class NvidiaBMMMachineTemplate(BaseModel):
    kind: Literal["NvidiaBMMMachineTemplate"] = "NvidiaBMMMachineTemplate"
    metadata: ObjectMeta
    spec: NvidiaBMMMachineTemplateSpec
