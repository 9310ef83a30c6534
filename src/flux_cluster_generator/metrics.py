"""Prometheus metrics for the Flux Cluster Generator."""

from prometheus_client import Counter, Gauge, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "flux_cluster_generator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "flux_cluster_generator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
)

error_total = Counter(
    "flux_cluster_generator_error_total",
    "Total number of reconciliation errors",
    ["kind", "error_type"],
)

# ResourceSetInputProvider operation metrics
rsip_operations_total = Counter(
    "flux_cluster_generator_rsip_operations_total",
    "Total number of ResourceSetInputProvider operations",
    ["operation", "result"],
)

# Configuration drift detection metrics
drift_detected_total = Counter(
    "flux_cluster_generator_drift_detected_total",
    "Total number of configuration drift detections",
    ["field"],
)

# Orphan sweep metrics
sweep_runs_total = Counter(
    "flux_cluster_generator_sweep_runs_total",
    "Total number of orphan sweeps",
    ["result"],
)

sweep_deleted_total = Counter(
    "flux_cluster_generator_sweep_deleted_total",
    "Total number of orphaned ResourceSetInputProviders deleted by the sweep",
)

sweep_duration_seconds = Histogram(
    "flux_cluster_generator_sweep_duration_seconds",
    "Duration of orphan sweeps in seconds",
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

# Namespace allow-set
allowed_namespaces = Gauge(
    "flux_cluster_generator_allowed_namespaces",
    "Number of namespaces currently matching the namespace selector",
)

# API call metrics
api_call_total = Counter(
    "flux_cluster_generator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "flux_cluster_generator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

rate_limit_hits_total = Counter(
    "flux_cluster_generator_rate_limit_hits_total",
    "Total number of rate limit hits",
    ["api_type"],
)
