from __future__ import annotations

from ..clients import BMMClient, ClientFactory, get_bmm_client
from ..core import CREDENTIAL_KEYS
from ..errors import ConfigurationError, ScopeError
from ..schemas.cluster import NvidiaBMMCluster
from ..schemas.objects import Cluster, Secret
from ..store import ObjectStore


class ClusterScope:
    """
    Everything a cluster reconcile pass needs: the owning Cluster, the
    NvidiaBMMCluster, an authenticated remote client and the organization.

    Accessors only mutate the in-memory objects; persisting them is the
    caller's job.
    """

    def __init__(
        self,
        cluster: Cluster,
        bmm_cluster: NvidiaBMMCluster,
        client: BMMClient,
        org_name: str,
    ) -> None:
        self.cluster = cluster
        self.bmm_cluster = bmm_cluster
        self.client = client
        self.org_name = org_name

    @classmethod
    def create(
        cls,
        store: ObjectStore,
        cluster: Cluster,
        bmm_cluster: NvidiaBMMCluster,
        client: BMMClient | None = None,
        org_name: str | None = None,
        client_factory: ClientFactory | None = None,
    ) -> ClusterScope:
        """
        Builds a scope, resolving credentials from the referenced secret
        unless a ready client is passed in.
        """
        if client is not None:
            return cls(cluster, bmm_cluster, client, org_name or "")

        endpoint, org, token = _read_credentials(store, bmm_cluster)
        factory = client_factory or get_bmm_client
        try:
            client = factory(endpoint, token)
        except ValueError as e:
            raise ScopeError(f"failed to create BMM client: {e}") from e
        return cls(cluster, bmm_cluster, client, org)

    @property
    def name(self) -> str:
        return self.cluster.metadata.name

    @property
    def namespace(self) -> str:
        return self.cluster.metadata.namespace

    def site_id(self) -> str:
        site_ref = self.bmm_cluster.spec.site_ref
        if site_ref.id:
            return site_ref.id
        # TODO: resolve Site objects by name once the Site kind is registered
        if site_ref.name:
            raise ConfigurationError(
                "site name reference not yet implemented, please use direct ID"
            )
        raise ConfigurationError("site reference is empty")

    @property
    def tenant_id(self) -> str:
        return self.bmm_cluster.spec.tenant_id

    @property
    def vpc_id(self) -> str:
        return self.bmm_cluster.status.vpc_id

    @vpc_id.setter
    def vpc_id(self, value: str) -> None:
        self.bmm_cluster.status.vpc_id = value

    @property
    def subnet_ids(self) -> dict[str, str]:
        return self.bmm_cluster.status.network_status.subnet_ids

    def set_subnet_id(self, name: str, subnet_id: str) -> None:
        self.bmm_cluster.status.network_status.subnet_ids[name] = subnet_id

    def remove_subnet_id(self, name: str) -> None:
        self.bmm_cluster.status.network_status.subnet_ids.pop(name, None)

    @property
    def nsg_id(self) -> str:
        return self.bmm_cluster.status.network_status.nsg_id

    @nsg_id.setter
    def nsg_id(self, value: str) -> None:
        self.bmm_cluster.status.network_status.nsg_id = value

    @property
    def ip_block_id(self) -> str:
        return self.bmm_cluster.status.network_status.ip_block_id

    @ip_block_id.setter
    def ip_block_id(self, value: str) -> None:
        self.bmm_cluster.status.network_status.ip_block_id = value

    @property
    def ready(self) -> bool:
        return self.bmm_cluster.status.ready

    @ready.setter
    def ready(self, value: bool) -> None:
        self.bmm_cluster.status.ready = value


def _read_credentials(
    store: ObjectStore, bmm_cluster: NvidiaBMMCluster
) -> tuple[str, str, str]:
    ref = bmm_cluster.spec.authentication.secret_ref
    namespace = ref.namespace or bmm_cluster.metadata.namespace

    secret = store.get(Secret, namespace, ref.name)
    if secret is None:
        raise ScopeError(
            f"failed to get credentials secret {namespace}/{ref.name}: not found"
        )

    values = []
    for key in CREDENTIAL_KEYS:
        raw = secret.data.get(key)
        if raw is None:
            raise ScopeError(f"secret {ref.name} is missing '{key}' field")
        try:
            values.append(raw.decode("utf-8").strip())
        except UnicodeDecodeError as e:
            raise ScopeError(f"secret {ref.name} field '{key}' is not valid UTF-8") from e

    endpoint, org, token = values
    return endpoint, org, token
