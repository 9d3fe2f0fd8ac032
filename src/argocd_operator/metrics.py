"""Prometheus metrics for the Argo CD Operator."""

from prometheus_client import Counter, Gauge, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "argocd_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "argocd_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

stage_errors_total = Counter(
    "argocd_operator_stage_errors_total",
    "Total number of pipeline stage failures",
    ["stage", "severity"],
)

# Managed resource metrics
apply_operations_total = Counter(
    "argocd_operator_apply_operations_total",
    "Total number of managed resource operations",
    ["resource_kind", "action"],
)

drift_detected_total = Counter(
    "argocd_operator_drift_detected_total",
    "Total number of configuration drift detections",
    ["resource_kind"],
)

hook_failures_total = Counter(
    "argocd_operator_hook_failures_total",
    "Total number of hook invocations that aborted an apply",
    ["resource_kind"],
)

# Provider and tenancy metrics
provider_transitions_total = Counter(
    "argocd_operator_provider_transitions_total",
    "Authentication provider transitions",
    ["from_provider", "to_provider"],
)

managed_namespaces = Gauge(
    "argocd_operator_managed_namespaces",
    "Number of namespaces managed by an instance",
    ["instance", "scope"],
)

# Event routing metrics
routed_events_total = Counter(
    "argocd_operator_routed_events_total",
    "Cluster events routed to reconcile requests",
    ["source_kind", "result"],
)

# API call metrics
api_call_total = Counter(
    "argocd_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "argocd_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

rate_limit_hits_total = Counter(
    "argocd_operator_rate_limit_hits_total",
    "Total number of rate limit hits",
    ["api_type"],
)

error_total = Counter(
    "argocd_operator_error_total",
    "Total number of errors",
    ["kind", "error_type"],
)
