"""
NvidiaBMMMachine reconciler.

A machine waits for its cluster to be ready and for bootstrap data, then
creates exactly one remote instance, polls it until it reports Ready, and
feeds the discovered addresses back to the machine. The first control-plane
machine to become ready also supplies the cluster's control-plane endpoint.
"""

from __future__ import annotations

from uuid import UUID

from .. import conditions
from ..clients import BMMClient, ClientFactory
from ..core import (
    CLUSTER_NAME_LABEL,
    CONTROL_PLANE_PORT,
    DEPENDENCY_REQUEUE_AFTER,
    INSTANCE_POLL_REQUEUE_AFTER,
    MACHINE_FINALIZER,
    PROVISIONING_REQUEUE_AFTER,
)
from ..errors import (
    ConfigurationError,
    NotFoundError,
    ObjectNotFoundError,
    ProviderError,
    RemoteError,
)
from ..logger import logger
from ..providerid import parse_uuid
from ..schemas.cluster import NvidiaBMMCluster
from ..schemas.machine import InstanceState, InstanceTypeSpec, NvidiaBMMMachine
from ..schemas.objects import APIEndpoint, Cluster, Machine, MachineAddress
from ..schemas.remote import (
    Instance,
    InstanceCreateRequest,
    InstanceDeleteRequest,
    InterfaceCreateRequest,
)
from ..scope.cluster import ClusterScope
from ..scope.machine import MachineScope
from ..store import ObjectStore
from .common import (
    Result,
    add_finalizer,
    get_owner,
    has_finalizer,
    is_deleting,
    is_paused,
    remove_finalizer,
)

INTERNAL_IP = "InternalIP"


class MachineReconciler:
    def __init__(
        self,
        store: ObjectStore,
        client: BMMClient | None = None,
        org_name: str | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.store = store
        self.client = client
        self.org_name = org_name
        self.client_factory = client_factory

    def reconcile(self, namespace: str, name: str) -> Result:
        bmm_machine = self.store.get(NvidiaBMMMachine, namespace, name)
        if bmm_machine is None:
            return Result()

        machine = get_owner(self.store, bmm_machine, "Machine")
        if not isinstance(machine, Machine):
            logger.info(
                f"Waiting for Machine Controller to set OwnerRef on "
                f"NvidiaBMMMachine {namespace}/{name}"
            )
            return Result()

        cluster_name = machine.spec.cluster_name or machine.metadata.labels.get(
            CLUSTER_NAME_LABEL, ""
        )
        cluster = (
            self.store.get(Cluster, namespace, cluster_name) if cluster_name else None
        )
        if cluster is None or cluster.spec.infrastructure_ref is None:
            logger.info(f"Waiting for Cluster to be set on Machine {machine.metadata.name}")
            return Result(requeue_after=DEPENDENCY_REQUEUE_AFTER)

        infra_name = cluster.spec.infrastructure_ref.name
        bmm_cluster = self.store.get(NvidiaBMMCluster, namespace, infra_name)
        if bmm_cluster is None:
            raise ObjectNotFoundError(
                f"NvidiaBMMCluster {namespace}/{infra_name} not found"
            )

        if is_paused(cluster, bmm_machine):
            logger.info(
                f"NvidiaBMMMachine {namespace}/{name} or its Cluster is paused, "
                "skipping reconciliation"
            )
            return Result()

        if not is_deleting(bmm_machine):
            if not bmm_cluster.status.ready:
                logger.info(f"Waiting for NvidiaBMMCluster {infra_name} to be ready")
                return Result(requeue_after=DEPENDENCY_REQUEUE_AFTER)

            if not machine.spec.bootstrap.data_secret_name:
                logger.info(
                    f"Waiting for bootstrap data to be available for "
                    f"Machine {machine.metadata.name}"
                )
                return Result(requeue_after=DEPENDENCY_REQUEUE_AFTER)

        # Owned fields are persisted on every exit, errors included
        try:
            cluster_scope = ClusterScope.create(
                self.store,
                cluster,
                bmm_cluster,
                client=self.client,
                org_name=self.org_name,
                client_factory=self.client_factory,
            )
            machine_scope = MachineScope(
                self.store,
                cluster,
                machine,
                bmm_cluster,
                bmm_machine,
                cluster_scope.client,
                cluster_scope.org_name,
            )

            if is_deleting(bmm_machine):
                return self.reconcile_delete(machine_scope)
            return self.reconcile_normal(machine_scope, cluster_scope)
        finally:
            self.store.patch(
                NvidiaBMMMachine,
                namespace,
                name,
                lambda current: _take_owned_fields(current, bmm_machine),
            )
            self.store.patch(
                Machine,
                namespace,
                machine.metadata.name,
                lambda current: _mirror_machine_fields(current, machine),
            )

    def reconcile_normal(
        self, machine_scope: MachineScope, cluster_scope: ClusterScope
    ) -> Result:
        bmm_machine = machine_scope.bmm_machine
        logger.info(f"Reconciling NvidiaBMMMachine {bmm_machine.metadata.name}")

        if not has_finalizer(bmm_machine, MACHINE_FINALIZER):
            add_finalizer(bmm_machine, MACHINE_FINALIZER)
            return Result(requeue=True)

        if machine_scope.instance_id:
            return self._reconcile_instance(machine_scope, cluster_scope)

        try:
            self._create_instance(machine_scope, cluster_scope)
        except ProviderError as e:
            logger.error(f"Instance creation failed for {machine_scope.name}: {e}")
            conditions.mark_false(
                bmm_machine,
                conditions.INSTANCE_PROVISIONED,
                "InstanceCreationFailed",
                str(e),
            )
            raise

        conditions.mark_true(
            bmm_machine, conditions.INSTANCE_PROVISIONED, "InstanceCreated"
        )
        return Result(requeue_after=PROVISIONING_REQUEUE_AFTER)

    def _create_instance(
        self, machine_scope: MachineScope, cluster_scope: ClusterScope
    ) -> None:
        spec = machine_scope.bmm_machine.spec

        bootstrap_data = machine_scope.bootstrap_data()

        subnet_id = parse_uuid(machine_scope.subnet_id(), "subnet ID")
        vpc_id = parse_uuid(machine_scope.vpc_id, "VPC ID")
        tenant_id = parse_uuid(machine_scope.tenant_id, "tenant ID")
        site = cluster_scope.site_id()
        parse_uuid(site, "site ID")

        # The primary interface is never physical
        interfaces = [InterfaceCreateRequest(subnet_id=subnet_id, is_physical=False)]
        for extra in spec.network.additional_interfaces:
            interfaces.append(
                InterfaceCreateRequest(
                    subnet_id=parse_uuid(
                        machine_scope.subnet_id(extra.subnet_name), "subnet ID"
                    ),
                    is_physical=extra.is_physical,
                )
            )

        request = InstanceCreateRequest(
            name=machine_scope.name,
            tenant_id=tenant_id,
            vpc_id=vpc_id,
            user_data=bootstrap_data,
            interfaces=interfaces,
            phone_home_enabled=True,
            **select_allocation(spec.instance_type),
        )
        if spec.ssh_key_groups:
            request.ssh_key_group_ids = [
                parse_uuid(group, "SSH key group ID") for group in spec.ssh_key_groups
            ]
        if spec.labels:
            request.labels = dict(spec.labels)

        logger.info(
            f"Creating BMM instance {machine_scope.name} "
            f"(vpc {vpc_id}, subnet {subnet_id}, role {machine_scope.role})"
        )
        instance = machine_scope.client.create_instance(machine_scope.org_name, request)
        if instance.id is None:
            raise RemoteError("instance ID missing in response")

        machine_scope.instance_id = str(instance.id)
        machine_scope.machine_id = instance.machine_id or ""
        machine_scope.instance_state = instance.status or ""
        machine_scope.set_provider_id(cluster_scope.tenant_id, site, str(instance.id))

        logger.info(
            f"Successfully created BMM instance {instance.id} "
            f"(machine {machine_scope.machine_id or '-'}, "
            f"status {machine_scope.instance_state or '-'})"
        )

    def _reconcile_instance(
        self, machine_scope: MachineScope, cluster_scope: ClusterScope
    ) -> Result:
        bmm_machine = machine_scope.bmm_machine
        try:
            instance_id = parse_uuid(machine_scope.instance_id, "instance ID")
        except ConfigurationError as e:
            conditions.mark_false(
                bmm_machine, conditions.INSTANCE_PROVISIONED, "InvalidInstanceID", str(e)
            )
            raise

        try:
            instance = machine_scope.client.get_instance(
                machine_scope.org_name, instance_id
            )
        except NotFoundError:
            logger.info(f"Instance {instance_id} not found, will recreate")
            _forget_instance(machine_scope)
            conditions.mark_false(
                bmm_machine,
                conditions.INSTANCE_PROVISIONED,
                "InstanceNotFound",
                f"instance {instance_id} no longer exists",
            )
            return Result(requeue_after=PROVISIONING_REQUEUE_AFTER)
        except ProviderError as e:
            logger.error(f"failed to get instance status for {instance_id}: {e}")
            conditions.mark_false(
                bmm_machine, conditions.READY, "InstanceStatusUnavailable", str(e)
            )
            raise

        if instance.status:
            machine_scope.instance_state = instance.status
        if instance.machine_id:
            machine_scope.machine_id = instance.machine_id
        if machine_scope.provider_id is None:
            machine_scope.set_provider_id(
                cluster_scope.tenant_id, cluster_scope.site_id(), str(instance_id)
            )

        addresses = instance_addresses(instance)
        if addresses:
            machine_scope.addresses = addresses
            conditions.mark_true(
                bmm_machine, conditions.NETWORK_CONFIGURED, "NetworkReady"
            )

        if instance.status != InstanceState.READY.value:
            machine_scope.ready = False
            reason = (
                "InstanceError"
                if instance.status == InstanceState.ERROR.value
                else "InstanceNotReady"
            )
            conditions.mark_false(
                bmm_machine,
                conditions.READY,
                reason,
                f"instance state is {instance.status or 'unknown'}",
            )
            logger.info(
                f"Waiting for instance {instance_id} to be ready "
                f"(status {instance.status or '-'})"
            )
            return Result(requeue_after=INSTANCE_POLL_REQUEUE_AFTER)

        machine_scope.ready = True
        conditions.mark_true(bmm_machine, conditions.READY, "NvidiaBMMMachineReady")

        known = machine_scope.addresses
        if machine_scope.is_control_plane() and known:
            self._adopt_control_plane_endpoint(machine_scope, known[0].address)

        logger.info(f"NvidiaBMMMachine {bmm_machine.metadata.name} is ready")
        return Result()

    def _adopt_control_plane_endpoint(
        self, machine_scope: MachineScope, host: str
    ) -> None:
        """
        Sets the cluster endpoint from this machine if nobody has yet. The
        check and the write happen in one store patch that touches only the
        endpoint, so an endpoint already set is never replaced.
        """
        observed = machine_scope.bmm_cluster.spec.control_plane_endpoint
        if observed is not None and observed.is_set():
            return

        def adopt(current: NvidiaBMMCluster) -> None:
            endpoint = current.spec.control_plane_endpoint
            if endpoint is None or not endpoint.is_set():
                current.spec.control_plane_endpoint = APIEndpoint(
                    host=host, port=CONTROL_PLANE_PORT
                )

        meta = machine_scope.bmm_cluster.metadata
        updated = self.store.patch(NvidiaBMMCluster, meta.namespace, meta.name, adopt)
        endpoint = updated.spec.control_plane_endpoint
        machine_scope.bmm_cluster.spec.control_plane_endpoint = endpoint
        if endpoint is not None and endpoint.host == host:
            logger.info(f"Updated control plane endpoint of {meta.name} to {host}")

    def reconcile_delete(self, machine_scope: MachineScope) -> Result:
        bmm_machine = machine_scope.bmm_machine
        logger.info(f"Deleting NvidiaBMMMachine {bmm_machine.metadata.name}")

        if machine_scope.instance_id:
            instance_id = machine_scope.instance_id
            try:
                instance_uuid: UUID | None = UUID(instance_id)
            except ValueError:
                logger.warning(f"Invalid cached instance ID {instance_id}, dropping it")
                instance_uuid = None

            if instance_uuid is not None:
                logger.info(f"Deleting BMM instance {instance_id}")
                try:
                    # Empty body: plain delete, not repair
                    machine_scope.client.delete_instance(
                        machine_scope.org_name, instance_uuid, InstanceDeleteRequest()
                    )
                except NotFoundError:
                    logger.info(f"Instance {instance_id} already deleted")
                except ProviderError as e:
                    logger.error(f"failed to delete instance {instance_id}: {e}")
                    raise
            machine_scope.instance_id = ""

        machine_scope.ready = False
        remove_finalizer(bmm_machine, MACHINE_FINALIZER)
        logger.info(f"Successfully deleted NvidiaBMMMachine {bmm_machine.metadata.name}")
        return Result()


def select_allocation(instance_type: InstanceTypeSpec) -> dict:
    """Picks the allocation strategy: by instance type or by specific machine."""
    if instance_type.id and instance_type.machine_id:
        raise ConfigurationError(
            "instance type ID and machine ID are mutually exclusive"
        )
    if instance_type.id:
        return {"instance_type_id": parse_uuid(instance_type.id, "instance type ID")}
    if instance_type.machine_id:
        return {
            "machine_id": instance_type.machine_id,
            "allow_unhealthy_machine": instance_type.allow_unhealthy_machine,
        }
    raise ConfigurationError("one of instance type ID or machine ID is required")


def instance_addresses(instance: Instance) -> list[MachineAddress]:
    return [
        MachineAddress(type=INTERNAL_IP, address=ip)
        for iface in instance.interfaces or []
        for ip in iface.ip_addresses or []
    ]


def _forget_instance(machine_scope: MachineScope) -> None:
    machine_scope.instance_id = ""
    machine_scope.machine_id = ""
    machine_scope.instance_state = ""
    machine_scope.ready = False


def _take_owned_fields(current: NvidiaBMMMachine, ours: NvidiaBMMMachine) -> None:
    current.spec.provider_id = ours.spec.provider_id
    current.status = ours.status.model_copy(deep=True)
    current.metadata.finalizers = list(ours.metadata.finalizers)


def _mirror_machine_fields(current: Machine, ours: Machine) -> None:
    """Copies what this controller mirrors onto the generic Machine."""
    current.spec.provider_id = ours.spec.provider_id
    current.status = ours.status.model_copy(deep=True)
