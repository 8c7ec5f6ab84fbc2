from __future__ import annotations

from uuid import UUID

from ..clients import BMMClient
from ..core import BOOTSTRAP_DATA_KEY, CONTROL_PLANE_LABEL
from ..errors import ConfigurationError, ProviderIDError, ScopeError
from ..providerid import ProviderID
from ..schemas.cluster import NvidiaBMMCluster
from ..schemas.machine import NvidiaBMMMachine
from ..schemas.objects import Cluster, Machine, MachineAddress, Secret
from ..store import ObjectStore


class MachineScope:
    """
    Accessors for one machine reconcile pass.

    Provider-id, readiness and addresses are written to both the
    NvidiaBMMMachine and the generic Machine so observers of either agree.
    """

    def __init__(
        self,
        store: ObjectStore,
        cluster: Cluster,
        machine: Machine,
        bmm_cluster: NvidiaBMMCluster,
        bmm_machine: NvidiaBMMMachine,
        client: BMMClient | None,
        org_name: str,
    ) -> None:
        if client is None:
            raise ScopeError("BMM client is required")
        if not org_name:
            raise ScopeError("org name is required")

        self.store = store
        self.cluster = cluster
        self.machine = machine
        self.bmm_cluster = bmm_cluster
        self.bmm_machine = bmm_machine
        self.client = client
        self.org_name = org_name

    @property
    def name(self) -> str:
        return self.machine.metadata.name

    @property
    def namespace(self) -> str:
        return self.machine.metadata.namespace

    def is_control_plane(self) -> bool:
        return CONTROL_PLANE_LABEL in self.machine.metadata.labels

    @property
    def role(self) -> str:
        return "control-plane" if self.is_control_plane() else "worker"

    def bootstrap_data(self) -> str:
        secret_name = self.machine.spec.bootstrap.data_secret_name
        if not secret_name:
            raise ScopeError("bootstrap data secret name is not set")

        secret = self.store.get(Secret, self.namespace, secret_name)
        if secret is None:
            raise ScopeError(f"failed to get bootstrap secret {secret_name}")

        data = secret.data.get(BOOTSTRAP_DATA_KEY)
        if data is None:
            raise ScopeError(f"bootstrap secret missing '{BOOTSTRAP_DATA_KEY}' key")

        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ScopeError(f"bootstrap data is not valid UTF-8: {e}") from e

    def subnet_id(self, subnet_name: str | None = None) -> str:
        """Looks up a subnet id in the cluster's cached network status."""
        name = subnet_name or self.bmm_machine.spec.network.subnet_name
        subnet_id = self.bmm_cluster.status.network_status.subnet_ids.get(name)
        if not subnet_id:
            raise ConfigurationError(f"subnet {name} not found in cluster status")
        return subnet_id

    @property
    def vpc_id(self) -> str:
        return self.bmm_cluster.status.vpc_id

    @property
    def tenant_id(self) -> str:
        return self.bmm_cluster.spec.tenant_id

    @property
    def provider_id(self) -> ProviderID | None:
        raw = self.bmm_machine.spec.provider_id
        if not raw:
            return None
        try:
            return ProviderID.parse(raw)
        except ProviderIDError:
            return None

    def set_provider_id(self, tenant: str, site: str, instance_id: str) -> None:
        try:
            instance_uuid = UUID(instance_id)
        except ValueError as e:
            raise ConfigurationError(
                f"invalid instance UUID {instance_id}: {e}"
            ) from e

        pid = str(
            ProviderID(
                org=self.org_name,
                tenant=tenant,
                site=site,
                instance_id=instance_uuid,
            )
        )
        self.bmm_machine.spec.provider_id = pid
        self.machine.spec.provider_id = pid

    @property
    def instance_id(self) -> str:
        return self.bmm_machine.status.instance_id

    @instance_id.setter
    def instance_id(self, value: str) -> None:
        self.bmm_machine.status.instance_id = value

    @property
    def machine_id(self) -> str:
        return self.bmm_machine.status.machine_id

    @machine_id.setter
    def machine_id(self, value: str) -> None:
        self.bmm_machine.status.machine_id = value

    @property
    def instance_state(self) -> str:
        return self.bmm_machine.status.instance_state

    @instance_state.setter
    def instance_state(self, value: str) -> None:
        self.bmm_machine.status.instance_state = value

    @property
    def ready(self) -> bool:
        return self.bmm_machine.status.ready

    @ready.setter
    def ready(self, value: bool) -> None:
        self.bmm_machine.status.ready = value
        self.machine.status.infrastructure_ready = value

    @property
    def addresses(self) -> list[MachineAddress]:
        return self.bmm_machine.status.addresses

    @addresses.setter
    def addresses(self, value: list[MachineAddress]) -> None:
        self.bmm_machine.status.addresses = list(value)
        self.machine.status.addresses = [a.model_copy() for a in value]
