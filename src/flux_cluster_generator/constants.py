"""Constants for the Flux Cluster Generator operator."""

# Controller identity
CONTROLLER_NAME = "flux-cluster-generator"
FIELD_MANAGER = CONTROLLER_NAME

# Target resource (Flux Operator ResourceSetInputProvider)
RSIP_GROUP = "fluxcd.controlplane.io"
RSIP_VERSION = "v1"
RSIP_API_VERSION = f"{RSIP_GROUP}/{RSIP_VERSION}"
RSIP_PLURAL = "resourcesetinputproviders"
KIND_RSIP = "ResourceSetInputProvider"
RSIP_TYPE_STATIC = "Static"

# Watched resource kinds
KIND_SECRET = "Secret"
KIND_NAMESPACE = "Namespace"

# Labels
LABEL_DOMAIN = "mirror.fluxcd.io"
LABEL_MANAGED = f"{LABEL_DOMAIN}/managed"
LABEL_SECRET_NAMESPACE = f"{LABEL_DOMAIN}/secretNS"
LABEL_SECRET_NAME = f"{LABEL_DOMAIN}/secretName"
LABEL_SECRET_KEY = f"{LABEL_DOMAIN}/secretKey"
LABEL_CLUSTER_NAME = f"{LABEL_DOMAIN}/clusterName"
LABEL_PROJECT = f"{LABEL_DOMAIN}/project"

IDENTITY_LABELS = frozenset(
    {
        LABEL_MANAGED,
        LABEL_SECRET_NAMESPACE,
        LABEL_SECRET_NAME,
        LABEL_SECRET_KEY,
        LABEL_CLUSTER_NAME,
        LABEL_PROJECT,
    }
)

# Reserved defaultValues fields
FIELD_NAME = "name"
FIELD_PROJECT = "project"
FIELD_SECRET_NAME = "kubeSecretName"
FIELD_SECRET_KEY = "kubeSecretKey"
FIELD_SECRET_NAMESPACE = "kubeSecretNS"

RESERVED_FIELDS = frozenset(
    {FIELD_NAME, FIELD_PROJECT, FIELD_SECRET_NAME, FIELD_SECRET_KEY, FIELD_SECRET_NAMESPACE}
)

# Derivation placeholders
PLACEHOLDER_ID = "id"
PLACEHOLDER_KEY = "key"
PROJECT_NAMESPACE_PREFIX = "p-"
DNS1123_LABEL_MAX_LENGTH = 63

# Orphan sweep period in seconds
SWEEP_INTERVAL_SECONDS = 120.0

# Retry backoff bounds in seconds
RETRY_BASE_DELAY = 1.0
RETRY_MAX_DELAY = 300.0
CONFLICT_RETRY_DELAY = 300.0

# Event Reasons
EVENT_REASON_RSIP_CREATED = "RSIPCreated"
EVENT_REASON_RSIP_UPDATED = "RSIPUpdated"
EVENT_REASON_RSIP_CREATE_FAILED = "RSIPCreateFailed"
EVENT_REASON_RSIP_UPDATE_FAILED = "RSIPUpdateFailed"
EVENT_REASON_RSIP_CONFLICT = "RSIPConflict"

# kopf state annotations written on watched Secrets
KOPF_ANNOTATION_PREFIX = LABEL_DOMAIN
