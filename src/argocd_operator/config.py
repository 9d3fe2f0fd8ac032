"""Environment overrides consumed by the operator."""

from __future__ import annotations

import os

# Image override variables, keyed by component
IMAGE_ENV_VARS = {
    "argocd": "ARGOCD_IMAGE",
    "dex": "ARGOCD_DEX_IMAGE",
    "keycloak": "ARGOCD_KEYCLOAK_IMAGE",
    "redis": "ARGOCD_REDIS_IMAGE",
    "rollouts": "ARGO_ROLLOUTS_IMAGE",
}


def _env_flag(name: str) -> bool:
    return os.getenv(name, "false").strip().lower() == "true"


def image_override(component: str) -> str | None:
    """Return the full image override for a component, if one is set."""
    env_name = IMAGE_ENV_VARS.get(component)
    if env_name is None:
        return None
    return os.getenv(env_name) or None


def is_dex_disabled() -> bool:
    """Legacy toggle that disables Dex as an authentication provider."""
    return _env_flag("DISABLE_DEX")


def controller_cluster_role() -> str | None:
    """Custom ClusterRole bound to the application controller, if any."""
    return os.getenv("CONTROLLER_CLUSTER_ROLE") or None


def server_cluster_role() -> str | None:
    """Custom ClusterRole bound to the server, if any."""
    return os.getenv("SERVER_CLUSTER_ROLE") or None


def cluster_config_namespaces() -> set[str]:
    """Namespaces whose instances are allowed cluster-scoped RBAC."""
    raw = os.getenv("ARGOCD_CLUSTER_CONFIG_NAMESPACES", "")
    return {ns.strip() for ns in raw.split(",") if ns.strip()}


def is_cluster_config_namespace(namespace: str) -> bool:
    namespaces = cluster_config_namespaces()
    return "*" in namespaces or namespace in namespaces


def remove_managed_by_label_on_deletion() -> bool:
    """Whether teardown strips the managed-by label from managed namespaces."""
    return _env_flag("REMOVE_MANAGED_BY_LABEL_ON_ARGOCD_DELETION")


def feature_probe_ttl_seconds() -> float:
    return float(os.getenv("FEATURE_PROBE_TTL_SECONDS", "300.0"))


def resync_interval_seconds() -> float:
    return float(os.getenv("RESYNC_INTERVAL_SECONDS", "300.0"))


def metrics_port() -> int:
    return int(os.getenv("METRICS_PORT", "8080"))


def log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").strip().upper()
