from uuid import UUID, uuid4

import pytest

from bmm_provider.controllers.cluster import ClusterReconciler
from bmm_provider.controllers.machine import MachineReconciler
from bmm_provider.core import CLUSTER_NAME_LABEL, CONTROL_PLANE_LABEL
from bmm_provider.errors import NotFoundError
from bmm_provider.registry import new_registry
from bmm_provider.schemas.cluster import (
    AuthenticationSpec,
    NetworkVirtualizationType,
    NvidiaBMMCluster,
    NvidiaBMMClusterSpec,
    SecretReference,
    SiteReference,
    SubnetSpec,
    VPCSpec,
)
from bmm_provider.schemas.machine import (
    InstanceTypeSpec,
    NetworkSpec,
    NvidiaBMMMachine,
    NvidiaBMMMachineSpec,
)
from bmm_provider.schemas.objects import (
    Bootstrap,
    Cluster,
    ClusterSpec,
    Machine,
    MachineSpec,
    ObjectMeta,
    ObjectReference,
    OwnerReference,
    Secret,
)
from bmm_provider.schemas.remote import (
    Instance,
    InstanceInterface,
    IpBlock,
    NetworkSecurityGroup,
    Subnet,
    Vpc,
)
from bmm_provider.store import InMemoryStore

NAMESPACE = "default"
ORG = "test-org"
CLUSTER_NAME = "test-cluster"
SITE_ID = "8a9c3b2e-1f4d-4e6a-9b7c-2d3e4f5a6b7c"
TENANT_ID = "3f2e1d0c-9b8a-4765-8432-10fedcba9876"
INSTANCE_TYPE_ID = "11111111-2222-4333-8444-555555555555"
CREDENTIALS_SECRET = "bmm-credentials"


class FakeBMMClient:
    """
    In-memory BMMClient. Every call is recorded as (method, *args); setting
    errors[method] makes that method raise instead.
    """

    def __init__(self):
        self.calls = []
        self.errors = {}
        self.vpcs = {}
        self.ip_blocks = {}
        self.subnets = {}
        self.nsgs = {}
        self.instances = {}

    def _record(self, method, *args):
        self.calls.append((method, *args))
        if method in self.errors:
            raise self.errors[method]

    def calls_to(self, method):
        return [call for call in self.calls if call[0] == method]

    def methods(self, prefix=""):
        return [call[0] for call in self.calls if call[0].startswith(prefix)]

    @staticmethod
    def _lookup(table, key, what):
        if key not in table:
            raise NotFoundError(f"{what} {key} not found")
        return table[key]

    @staticmethod
    def _remove(table, key, what):
        if key not in table:
            raise NotFoundError(f"{what} {key} not found")
        del table[key]

    # VPC

    def create_vpc(self, org, body):
        self._record("create_vpc", org, body)
        vpc = Vpc(id=uuid4(), name=body.name, site_id=body.site_id)
        self.vpcs[vpc.id] = vpc
        return vpc

    def get_vpc(self, org, vpc_id):
        self._record("get_vpc", org, vpc_id)
        return self._lookup(self.vpcs, vpc_id, "vpc")

    def delete_vpc(self, org, vpc_id):
        self._record("delete_vpc", org, vpc_id)
        self._remove(self.vpcs, vpc_id, "vpc")

    # IP block

    def create_ip_block(self, org, body):
        self._record("create_ip_block", org, body)
        block = IpBlock(
            id=uuid4(),
            name=body.name,
            prefix=body.prefix,
            prefix_length=body.prefix_length,
        )
        self.ip_blocks[block.id] = block
        return block

    def get_ip_block(self, org, ip_block_id):
        self._record("get_ip_block", org, ip_block_id)
        return self._lookup(self.ip_blocks, ip_block_id, "ipblock")

    def delete_ip_block(self, org, ip_block_id):
        self._record("delete_ip_block", org, ip_block_id)
        self._remove(self.ip_blocks, ip_block_id, "ipblock")

    # Subnet

    def create_subnet(self, org, body):
        self._record("create_subnet", org, body)
        subnet = Subnet(
            id=uuid4(),
            name=body.name,
            vpc_id=body.vpc_id,
            prefix_length=body.prefix_length,
        )
        self.subnets[subnet.id] = subnet
        return subnet

    def get_subnet(self, org, subnet_id):
        self._record("get_subnet", org, subnet_id)
        return self._lookup(self.subnets, subnet_id, "subnet")

    def delete_subnet(self, org, subnet_id):
        self._record("delete_subnet", org, subnet_id)
        self._remove(self.subnets, subnet_id, "subnet")

    # Network security group

    def create_network_security_group(self, org, body):
        self._record("create_network_security_group", org, body)
        nsg = NetworkSecurityGroup(id=f"nsg-{len(self.nsgs) + 1}", name=body.name)
        self.nsgs[nsg.id] = nsg
        return nsg

    def get_network_security_group(self, org, nsg_id):
        self._record("get_network_security_group", org, nsg_id)
        return self._lookup(self.nsgs, nsg_id, "network-security-group")

    def delete_network_security_group(self, org, nsg_id):
        self._record("delete_network_security_group", org, nsg_id)
        self._remove(self.nsgs, nsg_id, "network-security-group")

    # Instance

    def create_instance(self, org, body):
        self._record("create_instance", org, body)
        instance = Instance(
            id=uuid4(),
            name=body.name,
            machine_id=body.machine_id or f"machine-{len(self.instances) + 1}",
            status="Pending",
            interfaces=[],
        )
        self.instances[instance.id] = instance
        return instance.model_copy(deep=True)

    def get_instance(self, org, instance_id):
        self._record("get_instance", org, instance_id)
        return self._lookup(self.instances, instance_id, "instance").model_copy(
            deep=True
        )

    def delete_instance(self, org, instance_id, body):
        self._record("delete_instance", org, instance_id, body)
        self._remove(self.instances, instance_id, "instance")

    def set_instance(self, instance_id, status, ip_addresses=()):
        instance = self.instances[UUID(instance_id)]
        instance.status = status
        instance.interfaces = [InstanceInterface(ip_addresses=list(ip_addresses))]


@pytest.fixture
def fake_client():
    return FakeBMMClient()


@pytest.fixture
def store():
    return InMemoryStore(new_registry())


@pytest.fixture
def credentials(store):
    secret = Secret(
        metadata=ObjectMeta(name=CREDENTIALS_SECRET, namespace=NAMESPACE),
        data={
            "endpoint": b"https://bmm.example.com",
            "orgName": ORG.encode(),
            "token": b"secret-token",
        },
    )
    store.create(secret)
    return secret


def build_bmm_cluster(**spec_overrides):
    spec = {
        "site_ref": SiteReference(id=SITE_ID),
        "tenant_id": TENANT_ID,
        "vpc": VPCSpec(
            name="test-vpc",
            network_virtualization_type=NetworkVirtualizationType.ETHERNET_VIRTUALIZER,
        ),
        "subnets": [
            SubnetSpec(name="control-plane", cidr="10.0.1.0/24", role="control-plane"),
            SubnetSpec(name="worker", cidr="10.0.2.0/24", role="worker"),
        ],
        "authentication": AuthenticationSpec(
            secret_ref=SecretReference(name=CREDENTIALS_SECRET)
        ),
    }
    spec.update(spec_overrides)
    return NvidiaBMMCluster(
        metadata=ObjectMeta(
            name=CLUSTER_NAME,
            namespace=NAMESPACE,
            owner_references=[OwnerReference(kind="Cluster", name=CLUSTER_NAME)],
        ),
        spec=NvidiaBMMClusterSpec(**spec),
    )


@pytest.fixture
def make_cluster(store):
    """Stores a Cluster and its NvidiaBMMCluster, returning the latter."""

    def _make(**spec_overrides):
        cluster = Cluster(
            metadata=ObjectMeta(name=CLUSTER_NAME, namespace=NAMESPACE),
            spec=ClusterSpec(
                infrastructure_ref=ObjectReference(
                    kind="NvidiaBMMCluster", name=CLUSTER_NAME
                )
            ),
        )
        store.create(cluster)
        bmm_cluster = build_bmm_cluster(**spec_overrides)
        store.create(bmm_cluster)
        return bmm_cluster

    return _make


@pytest.fixture
def cluster_reconciler(store, fake_client):
    return ClusterReconciler(store, client=fake_client, org_name=ORG)


@pytest.fixture
def machine_reconciler(store, fake_client):
    return MachineReconciler(store, client=fake_client, org_name=ORG)


@pytest.fixture
def ready_cluster(store, make_cluster, cluster_reconciler):
    """A cluster whose network has converged."""
    make_cluster()
    cluster_reconciler.reconcile(NAMESPACE, CLUSTER_NAME)
    cluster_reconciler.reconcile(NAMESPACE, CLUSTER_NAME)
    bmm_cluster = store.get(NvidiaBMMCluster, NAMESPACE, CLUSTER_NAME)
    assert bmm_cluster.status.ready
    return bmm_cluster


@pytest.fixture
def make_machine(store):
    """Stores a bootstrap Secret, a Machine and its NvidiaBMMMachine."""

    def _make(
        name="test-machine",
        control_plane=False,
        bootstrap=True,
        instance_type=None,
        **spec_overrides,
    ):
        labels = {CLUSTER_NAME_LABEL: CLUSTER_NAME}
        if control_plane:
            labels[CONTROL_PLANE_LABEL] = ""

        secret_name = None
        if bootstrap:
            secret_name = f"{name}-bootstrap"
            store.create(
                Secret(
                    metadata=ObjectMeta(name=secret_name, namespace=NAMESPACE),
                    data={"value": b"#cloud-config\nruncmd: []\n"},
                )
            )

        machine = Machine(
            metadata=ObjectMeta(name=name, namespace=NAMESPACE, labels=labels),
            spec=MachineSpec(
                cluster_name=CLUSTER_NAME,
                bootstrap=Bootstrap(data_secret_name=secret_name),
                infrastructure_ref=ObjectReference(kind="NvidiaBMMMachine", name=name),
            ),
        )
        store.create(machine)

        spec = {
            "instance_type": instance_type or InstanceTypeSpec(id=INSTANCE_TYPE_ID),
            "network": NetworkSpec(
                subnet_name="control-plane" if control_plane else "worker"
            ),
        }
        spec.update(spec_overrides)
        bmm_machine = NvidiaBMMMachine(
            metadata=ObjectMeta(
                name=name,
                namespace=NAMESPACE,
                labels=labels,
                owner_references=[OwnerReference(kind="Machine", name=name)],
            ),
            spec=NvidiaBMMMachineSpec(**spec),
        )
        store.create(bmm_machine)
        return bmm_machine

    return _make
