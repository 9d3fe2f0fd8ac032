"""Per-kind rules for comparing and mutating managed resources."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

_MISSING = object()

# Dict fields merged into the live object rather than replaced
MERGED_FIELDS = ("metadata.labels", "metadata.annotations")


@dataclass(frozen=True)
class KindHandler:
    """How the apply engine treats one resource kind.

    Attributes:
        api_version: apiVersion of the kind
        kind: Kind name
        namespaced: Whether objects of the kind live in a namespace
        compare_fields: Dotted paths compared between desired and live state
        recreate_fields: Paths the API server refuses to change in place; a
            difference there deletes and recreates the object
        exact_fields: Paths compared for strict equality. All other compared
            paths only require the desired value to be contained in the live
            one, so server-side defaults do not register as drift.
    """

    api_version: str
    kind: str
    namespaced: bool = True
    compare_fields: tuple[str, ...] = ("metadata.labels",)
    recreate_fields: tuple[str, ...] = ()
    exact_fields: tuple[str, ...] = ()

    def differing_fields(self, desired: dict[str, Any], existing: dict[str, Any]) -> list[str]:
        """Return compared paths whose desired value is not reflected in the live object.

        Paths the desired manifest does not set are not asserted and never differ.
        """
        diffs = []
        for path in self.compare_fields:
            want = get_path(desired, path)
            if want is _MISSING:
                continue
            have = get_path(existing, path)
            if have is _MISSING:
                have = None
            if path in self.exact_fields:
                if not _normalized_equal(want, have):
                    diffs.append(path)
            elif not contains(want, have):
                diffs.append(path)
        return diffs

    def needs_recreate(self, desired: dict[str, Any], existing: dict[str, Any]) -> bool:
        for path in self.recreate_fields:
            want = get_path(desired, path)
            if want is _MISSING:
                continue
            if not _normalized_equal(want, get_path(existing, path)):
                return True
        return False

    def copy_fields(self, desired: dict[str, Any], existing: dict[str, Any], paths: list[str]) -> None:
        """Write desired values for the given paths into the live object."""
        for path in paths:
            value = get_path(desired, path)
            if value is _MISSING:
                continue
            if path in MERGED_FIELDS:
                current = get_path(existing, path)
                merged = dict(current) if isinstance(current, dict) else {}
                merged.update(value)
                value = merged
            set_path(existing, path, value)


def get_path(obj: dict[str, Any], path: str) -> Any:
    node: Any = obj
    for key in path.split("."):
        if not isinstance(node, dict) or key not in node:
            return _MISSING
        node = node[key]
    return node


def set_path(obj: dict[str, Any], path: str, value: Any) -> None:
    keys = path.split(".")
    node = obj
    for key in keys[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    node[keys[-1]] = value


def _normalized_equal(want: Any, have: Any) -> bool:
    # An empty collection and an absent field are the same to the API server
    if want in ({}, [], None) and have in ({}, [], None, _MISSING):
        return True
    return want == have


def contains(want: Any, have: Any) -> bool:
    """Whether the live value carries everything the desired value asks for.

    Dicts must hold every desired key with a contained value, lists must have
    the same length with pairwise contained items, scalars must be equal.
    """
    if isinstance(want, dict):
        if not want:
            return have is None or isinstance(have, dict)
        if not isinstance(have, dict):
            return False
        return all(key in have and contains(value, have[key]) for key, value in want.items())
    if isinstance(want, list):
        if not isinstance(have, list):
            return not want and have is None
        return len(want) == len(have) and all(contains(w, h) for w, h in zip(want, have))
    if isinstance(want, bool) or isinstance(have, bool):
        return want == have
    if isinstance(want, (int, str)) and isinstance(have, (int, str)):
        # Ports and quantities round-trip as either type
        return str(want) == str(have)
    return want == have


_LABELS = "metadata.labels"
_ANNOTATIONS = "metadata.annotations"
_POD_FIELDS = (
    "spec.template.spec.containers",
    "spec.template.spec.initContainers",
    "spec.template.spec.volumes",
    "spec.template.spec.serviceAccountName",
    "spec.template.spec.nodeSelector",
    "spec.template.spec.tolerations",
    "spec.template.metadata.labels",
)

SERVICE_ACCOUNT = KindHandler("v1", "ServiceAccount")
SECRET = KindHandler("v1", "Secret", compare_fields=(_LABELS, "type"))
CONFIG_MAP = KindHandler("v1", "ConfigMap", compare_fields=(_LABELS, "data"), exact_fields=("data",))
SERVICE = KindHandler(
    "v1",
    "Service",
    compare_fields=(_LABELS, _ANNOTATIONS, "spec.selector", "spec.ports", "spec.type"),
    exact_fields=("spec.selector",),
)
ROLE = KindHandler(
    "rbac.authorization.k8s.io/v1",
    "Role",
    compare_fields=(_LABELS, "rules"),
    exact_fields=("rules",),
)
CLUSTER_ROLE = KindHandler(
    "rbac.authorization.k8s.io/v1",
    "ClusterRole",
    namespaced=False,
    compare_fields=(_LABELS, _ANNOTATIONS, "rules"),
    exact_fields=("rules",),
)
ROLE_BINDING = KindHandler(
    "rbac.authorization.k8s.io/v1",
    "RoleBinding",
    compare_fields=(_LABELS, "subjects"),
    recreate_fields=("roleRef",),
    exact_fields=("subjects",),
)
CLUSTER_ROLE_BINDING = KindHandler(
    "rbac.authorization.k8s.io/v1",
    "ClusterRoleBinding",
    namespaced=False,
    compare_fields=(_LABELS, _ANNOTATIONS, "subjects"),
    recreate_fields=("roleRef",),
    exact_fields=("subjects",),
)
DEPLOYMENT = KindHandler(
    "apps/v1",
    "Deployment",
    compare_fields=(_LABELS, "spec.replicas", *_POD_FIELDS),
    recreate_fields=("spec.selector",),
)
DEPLOYMENT_CONFIG = KindHandler(
    "apps.openshift.io/v1",
    "DeploymentConfig",
    compare_fields=(_LABELS, "spec.replicas", *_POD_FIELDS),
    recreate_fields=("spec.selector",),
)
STATEFUL_SET = KindHandler(
    "apps/v1",
    "StatefulSet",
    compare_fields=(_LABELS, "spec.replicas", *_POD_FIELDS),
    recreate_fields=("spec.selector", "spec.serviceName"),
)
HORIZONTAL_POD_AUTOSCALER = KindHandler(
    "autoscaling/v2",
    "HorizontalPodAutoscaler",
    compare_fields=(_LABELS, "spec"),
)
INGRESS = KindHandler(
    "networking.k8s.io/v1",
    "Ingress",
    compare_fields=(_LABELS, _ANNOTATIONS, "spec"),
)
ROUTE = KindHandler(
    "route.openshift.io/v1",
    "Route",
    compare_fields=(_LABELS, _ANNOTATIONS, "spec.to", "spec.port", "spec.tls", "spec.wildcardPolicy"),
)
PROMETHEUS = KindHandler("monitoring.coreos.com/v1", "Prometheus", compare_fields=(_LABELS, "spec"))
SERVICE_MONITOR = KindHandler("monitoring.coreos.com/v1", "ServiceMonitor", compare_fields=(_LABELS, "spec"))
PROMETHEUS_RULE = KindHandler("monitoring.coreos.com/v1", "PrometheusRule", compare_fields=(_LABELS, "spec"))
NAMESPACE = KindHandler("v1", "Namespace", namespaced=False)

# Kinds that can be cluster-scoped managed resources, walked by teardown
CLUSTER_SCOPED_KINDS = (CLUSTER_ROLE_BINDING, CLUSTER_ROLE)
