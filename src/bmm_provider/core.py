import httpx
from tenacity import retry_if_exception_type, stop_after_attempt, wait_exponential

# Shared retry configuration for idempotent remote reads
# usage: @retry(**RETRY_CONFIG)
RETRY_CONFIG = {
    "stop": stop_after_attempt(3),
    "wait": wait_exponential(multiplier=1, min=1, max=10),
    "retry": retry_if_exception_type(httpx.TransportError),
    "reraise": True,
}

# Per-call deadline for remote requests, in seconds
REQUEST_TIMEOUT = 30.0

# Fixed requeue delays (seconds), distinct from error-driven backoff
DEPENDENCY_REQUEUE_AFTER = 10.0
PROVISIONING_REQUEUE_AFTER = 10.0
INSTANCE_POLL_REQUEUE_AFTER = 30.0

CLUSTER_FINALIZER = "nvidiabmmcluster.infrastructure.cluster.x-k8s.io"
MACHINE_FINALIZER = "nvidiabmmmachine.infrastructure.cluster.x-k8s.io"

PROVIDER_ID_SCHEME = "nvidia-bmm"

# Well-known labels and annotations of the host platform
CLUSTER_NAME_LABEL = "cluster.x-k8s.io/cluster-name"
CONTROL_PLANE_LABEL = "cluster.x-k8s.io/control-plane"
PAUSED_ANNOTATION = "cluster.x-k8s.io/paused"

# One IP block per cluster, carved into the declared subnets.
# Exhausting the block is not handled (see DESIGN.md).
IP_BLOCK_PREFIX = "10.0.0.0"
IP_BLOCK_PREFIX_LENGTH = 16
IP_BLOCK_PROTOCOL_VERSION = "IPv4"
IP_BLOCK_ROUTING_TYPE = "DatacenterOnly"

ANY_PREFIX = "0.0.0.0/0"

CONTROL_PLANE_PORT = 6443

# Secret keys
CREDENTIAL_KEYS = ("endpoint", "orgName", "token")
BOOTSTRAP_DATA_KEY = "value"
