"""
NvidiaBMMCluster reconciler.

Converges VPC -> IP block -> subnets -> network security group (optional)
in that order on every pass, and tears them down in reverse order once the
object is being deleted. Each step checks its cached id against the remote
side first, so an unchanged cluster costs only reads.
"""

from __future__ import annotations

from collections.abc import Callable
from uuid import UUID

from .. import conditions
from ..clients import BMMClient, ClientFactory
from ..core import ANY_PREFIX, CLUSTER_FINALIZER
from ..errors import (
    ConfigurationError,
    NotFoundError,
    ProviderError,
    RemoteError,
    ScopeError,
)
from ..ipam import ip_block_request, subnet_request
from ..logger import logger
from ..providerid import parse_uuid
from ..schemas.cluster import NSGRule, NvidiaBMMCluster
from ..schemas.objects import Cluster
from ..schemas.remote import (
    NetworkSecurityGroupCreateRequest,
    NetworkSecurityGroupRule,
    RuleAction,
    RuleDirection,
    RuleProtocol,
    VpcCreateRequest,
)
from ..scope.cluster import ClusterScope
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


class ClusterReconciler:
    def __init__(
        self,
        store: ObjectStore,
        client: BMMClient | None = None,
        org_name: str | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.store = store
        # client/org_name bypass credential lookup, client_factory replaces
        # the cached REST client constructor
        self.client = client
        self.org_name = org_name
        self.client_factory = client_factory

    def reconcile(self, namespace: str, name: str) -> Result:
        bmm_cluster = self.store.get(NvidiaBMMCluster, namespace, name)
        if bmm_cluster is None:
            return Result()

        cluster = get_owner(self.store, bmm_cluster, "Cluster")
        if not isinstance(cluster, Cluster):
            logger.info(
                f"Waiting for Cluster Controller to set OwnerRef on "
                f"NvidiaBMMCluster {namespace}/{name}"
            )
            return Result()

        if is_paused(cluster, bmm_cluster):
            logger.info(
                f"NvidiaBMMCluster {namespace}/{name} or its Cluster is paused, "
                "skipping reconciliation"
            )
            return Result()

        # Status and finalizers are persisted on every exit, errors included
        try:
            try:
                scope = ClusterScope.create(
                    self.store,
                    cluster,
                    bmm_cluster,
                    client=self.client,
                    org_name=self.org_name,
                    client_factory=self.client_factory,
                )
            except ScopeError as e:
                conditions.mark_false(
                    bmm_cluster, conditions.READY, "CredentialsUnavailable", str(e)
                )
                raise
            if is_deleting(bmm_cluster):
                return self.reconcile_delete(scope)
            return self.reconcile_normal(scope)
        finally:
            self.store.patch(
                NvidiaBMMCluster,
                namespace,
                name,
                lambda current: _take_owned_fields(current, bmm_cluster),
            )

    def reconcile_normal(self, scope: ClusterScope) -> Result:
        bmm_cluster = scope.bmm_cluster
        logger.info(f"Reconciling NvidiaBMMCluster {bmm_cluster.metadata.name}")

        if not has_finalizer(bmm_cluster, CLUSTER_FINALIZER):
            add_finalizer(bmm_cluster, CLUSTER_FINALIZER)
            return Result(requeue=True)

        try:
            site_id = parse_uuid(scope.site_id(), "site ID")
        except ConfigurationError as e:
            _fail(scope, conditions.VPC_READY, "SiteNotFound", e)
            raise

        _step(
            scope,
            conditions.VPC_READY,
            "VPCReconcileFailed",
            lambda: self._reconcile_vpc(scope, site_id),
        )
        conditions.mark_true(bmm_cluster, conditions.VPC_READY, "VPCReady")

        _step(
            scope,
            conditions.SUBNETS_READY,
            "SubnetReconcileFailed",
            lambda: self._reconcile_subnets(scope, site_id),
        )
        conditions.mark_true(bmm_cluster, conditions.SUBNETS_READY, "SubnetsReady")

        if bmm_cluster.spec.vpc.network_security_group is not None:
            _step(
                scope,
                conditions.NSG_READY,
                "NSGReconcileFailed",
                lambda: self._reconcile_nsg(scope, site_id),
            )
            conditions.mark_true(bmm_cluster, conditions.NSG_READY, "NSGReady")

        scope.ready = True
        conditions.mark_true(bmm_cluster, conditions.READY, "NvidiaBMMClusterReady")

        logger.info(f"Successfully reconciled NvidiaBMMCluster {scope.name}")
        return Result()

    def _reconcile_vpc(self, scope: ClusterScope, site_id: UUID) -> None:
        client, org = scope.client, scope.org_name

        if scope.vpc_id:
            if _resolves(
                "VPC", scope.vpc_id, lambda vpc_id: client.get_vpc(org, vpc_id)
            ):
                return
            scope.vpc_id = ""

        vpc_spec = scope.bmm_cluster.spec.vpc
        request = VpcCreateRequest(
            name=vpc_spec.name,
            site_id=site_id,
            network_virtualization_type=vpc_spec.network_virtualization_type.value,
            labels=dict(vpc_spec.labels) or None,
        )

        logger.info(f"Creating VPC {vpc_spec.name} in site {site_id}")
        vpc = client.create_vpc(org, request)
        if vpc.id is None:
            raise RemoteError("VPC ID missing in response")

        scope.vpc_id = str(vpc.id)
        logger.info(f"Successfully created VPC {scope.vpc_id}")

    def _ensure_ip_block(self, scope: ClusterScope, site_id: UUID) -> UUID:
        client, org = scope.client, scope.org_name

        if scope.ip_block_id:
            if _resolves(
                "IP block",
                scope.ip_block_id,
                lambda block_id: client.get_ip_block(org, block_id),
            ):
                return UUID(scope.ip_block_id)
            scope.ip_block_id = ""

        request = ip_block_request(scope.bmm_cluster.metadata.name, site_id)
        logger.info(
            f"Creating IP block {request.name} "
            f"({request.prefix}/{request.prefix_length}) in site {site_id}"
        )
        block = client.create_ip_block(org, request)
        if block.id is None:
            raise RemoteError("IP block ID missing in response")

        scope.ip_block_id = str(block.id)
        logger.info(f"Successfully created IP block {scope.ip_block_id}")
        return block.id

    def _reconcile_subnets(self, scope: ClusterScope, site_id: UUID) -> None:
        client, org = scope.client, scope.org_name

        if not scope.vpc_id:
            raise ConfigurationError("VPC ID is empty")
        vpc_id = parse_uuid(scope.vpc_id, "VPC ID")

        ip_block_id = self._ensure_ip_block(scope, site_id)

        for subnet in scope.bmm_cluster.spec.subnets:
            existing = scope.subnet_ids.get(subnet.name)
            if existing:
                if _resolves(
                    f"Subnet {subnet.name}",
                    existing,
                    lambda subnet_id: client.get_subnet(org, subnet_id),
                ):
                    continue
                scope.remove_subnet_id(subnet.name)

            request = subnet_request(subnet, vpc_id, ip_block_id)
            logger.info(
                f"Creating subnet {subnet.name} (cidr {subnet.cidr}, "
                f"prefix /{request.prefix_length}) in VPC {vpc_id}"
            )
            created = client.create_subnet(org, request)
            if created.id is None:
                raise RemoteError(f"subnet ID missing in response for {subnet.name}")

            scope.set_subnet_id(subnet.name, str(created.id))
            logger.info(f"Successfully created subnet {subnet.name}: {created.id}")

    def _reconcile_nsg(self, scope: ClusterScope, site_id: UUID) -> None:
        client, org = scope.client, scope.org_name
        nsg_spec = scope.bmm_cluster.spec.vpc.network_security_group
        if nsg_spec is None:
            return

        if scope.nsg_id:
            if _resolves(
                "NSG",
                scope.nsg_id,
                lambda nsg_id: client.get_network_security_group(org, nsg_id),
                as_uuid=False,
            ):
                return
            scope.nsg_id = ""

        rules = [translate_rule(rule) for rule in nsg_spec.rules]
        request = NetworkSecurityGroupCreateRequest(
            name=nsg_spec.name, site_id=site_id, rules=rules or None
        )

        logger.info(f"Creating NSG {nsg_spec.name} in site {site_id}")
        nsg = client.create_network_security_group(org, request)
        if not nsg.id:
            raise RemoteError("NSG ID missing in response")

        scope.nsg_id = nsg.id
        logger.info(f"Successfully created NSG {nsg.id}")

    def reconcile_delete(self, scope: ClusterScope) -> Result:
        """
        Deletes NSG, subnets, IP block and VPC in that order. The first
        failure aborts the pass and keeps the finalizer; ids already deleted
        are cleared so the next pass resumes where this one stopped.
        """
        bmm_cluster = scope.bmm_cluster
        client, org = scope.client, scope.org_name
        logger.info(f"Deleting NvidiaBMMCluster {bmm_cluster.metadata.name}")

        scope.ready = False
        conditions.mark_false(bmm_cluster, conditions.READY, "Deleting")

        if scope.nsg_id:
            _delete_remote(
                "NSG",
                scope.nsg_id,
                lambda nsg_id: client.delete_network_security_group(org, nsg_id),
                as_uuid=False,
            )
            scope.nsg_id = ""

        for subnet_name, subnet_id in list(scope.subnet_ids.items()):
            _delete_remote(
                f"subnet {subnet_name}",
                subnet_id,
                lambda subnet_uuid: client.delete_subnet(org, subnet_uuid),
            )
            scope.remove_subnet_id(subnet_name)

        if scope.ip_block_id:
            _delete_remote(
                "IP block",
                scope.ip_block_id,
                lambda block_uuid: client.delete_ip_block(org, block_uuid),
            )
            scope.ip_block_id = ""

        if scope.vpc_id:
            _delete_remote(
                "VPC",
                scope.vpc_id,
                lambda vpc_uuid: client.delete_vpc(org, vpc_uuid),
            )
            scope.vpc_id = ""

        remove_finalizer(bmm_cluster, CLUSTER_FINALIZER)
        logger.info(f"Successfully deleted NvidiaBMMCluster {bmm_cluster.metadata.name}")
        return Result()


def translate_rule(rule: NSGRule) -> NetworkSecurityGroupRule:
    """Maps a free-form rule onto the closed enums of the remote API."""
    try:
        direction = RuleDirection(rule.direction.strip().lower())
        protocol = RuleProtocol(rule.protocol.strip().lower())
        action = RuleAction(rule.action.strip().lower())
    except ValueError as e:
        raise ConfigurationError(f"invalid NSG rule {rule.name}: {e}") from e

    return NetworkSecurityGroupRule(
        name=rule.name,
        direction=direction,
        protocol=protocol,
        action=action,
        source_prefix=rule.source_cidr or ANY_PREFIX,
        destination_prefix=ANY_PREFIX,
        destination_port_range=rule.port_range or None,
    )


def _fail(scope: ClusterScope, cond_type: str, reason: str, err: Exception) -> None:
    conditions.mark_false(scope.bmm_cluster, cond_type, reason, str(err))
    conditions.mark_false(scope.bmm_cluster, conditions.READY, reason, str(err))
    scope.ready = False


def _step(
    scope: ClusterScope, cond_type: str, reason: str, run: Callable[[], None]
) -> None:
    try:
        run()
    except ProviderError as e:
        logger.error(f"{cond_type} failed for {scope.bmm_cluster.metadata.name}: {e}")
        _fail(scope, cond_type, reason, e)
        raise


def _resolves(
    what: str,
    cached_id: str,
    lookup: Callable,
    as_uuid: bool = True,
) -> bool:
    """
    Checks a cached id against the remote side. Not-found and malformed ids
    mean a stale cache; any other failure propagates.
    """
    key: UUID | str = cached_id
    if as_uuid:
        try:
            key = UUID(cached_id)
        except ValueError:
            logger.info(f"Invalid cached {what} ID {cached_id}, will recreate")
            return False

    try:
        lookup(key)
    except NotFoundError:
        logger.info(f"{what} {cached_id} not found, will recreate")
        return False

    logger.debug(f"{what} {cached_id} already exists")
    return True


def _delete_remote(
    what: str, cached_id: str, delete: Callable, as_uuid: bool = True
) -> None:
    """
    Deletes one remote resource. A resource that is already gone, or whose
    cached id could never have named one, counts as deleted.
    """
    key: UUID | str = cached_id
    if as_uuid:
        try:
            key = UUID(cached_id)
        except ValueError:
            logger.warning(f"Invalid cached {what} ID {cached_id}, dropping it")
            return

    logger.info(f"Deleting {what} {cached_id}")
    try:
        delete(key)
    except NotFoundError:
        logger.info(f"{what} {cached_id} already deleted")
    except ProviderError as e:
        logger.error(f"failed to delete {what} {cached_id}: {e}")
        raise


def _take_owned_fields(current: NvidiaBMMCluster, ours: NvidiaBMMCluster) -> None:
    """Copies status and finalizers, the fields this controller owns."""
    current.status = ours.status.model_copy(deep=True)
    current.metadata.finalizers = list(ours.metadata.finalizers)
