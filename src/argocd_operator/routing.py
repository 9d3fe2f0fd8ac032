"""Event routing: decide which changes matter and which instances they affect."""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Callable, Iterable

from . import metrics
from .constants import (
    ANNOTATION_INSTANCE_NAME,
    ANNOTATION_INSTANCE_NAMESPACE,
    API_GROUP_VERSION,
    CONFIGMAP_APPSET_GITLAB_SCM_TLS,
    KIND_ARGOCD,
    LABEL_NAMESPACE_CLAIMED_BY,
    LABEL_NAMESPACE_MANAGED_BY,
    LABEL_SECRET_TYPE,
    SECRET_REDIS_TLS,
    SECRET_REPO_SERVER_TLS,
    SECRET_TYPE_CLUSTER,
)
from .models import Identity
from .services.kube.base import ClusterClient

logger = logging.getLogger(__name__)

# Metadata the API server maintains on its own
SERVER_MANAGED_METADATA = (
    "resourceVersion",
    "managedFields",
    "generation",
    "uid",
    "creationTimestamp",
    "selfLink",
)

NAMESPACE_LABELS = (LABEL_NAMESPACE_MANAGED_BY, LABEL_NAMESPACE_CLAIMED_BY)
KNOWN_TLS_SECRETS = frozenset({SECRET_REPO_SERVER_TLS, SECRET_REDIS_TLS})

EVENT_ADDED = "ADDED"
EVENT_MODIFIED = "MODIFIED"
EVENT_DELETED = "DELETED"


def _metadata(obj: dict[str, Any] | None) -> dict[str, Any]:
    return (obj or {}).get("metadata") or {}


def _labels(obj: dict[str, Any] | None) -> dict[str, str]:
    return _metadata(obj).get("labels") or {}


def _annotations(obj: dict[str, Any] | None) -> dict[str, str]:
    return _metadata(obj).get("annotations") or {}


def primary_update_interesting(old: dict[str, Any] | None, new: dict[str, Any] | None) -> bool:
    """An ArgoCD update matters when generation, deletion, finalizers,
    labels or annotations changed. Status-only updates do not.
    """
    if old is None or new is None:
        return True
    old_meta, new_meta = _metadata(old), _metadata(new)
    if old_meta.get("generation") != new_meta.get("generation"):
        return True
    if not old_meta.get("deletionTimestamp") and new_meta.get("deletionTimestamp"):
        return True
    for key in ("finalizers", "labels", "annotations"):
        if (old_meta.get(key) or None) != (new_meta.get(key) or None):
            return True
    return False


def strip_volatile(obj: dict[str, Any]) -> dict[str, Any]:
    """Copy of an object without status and server-managed metadata."""
    stripped = copy.deepcopy(obj)
    stripped.pop("status", None)
    metadata = stripped.get("metadata") or {}
    for key in SERVER_MANAGED_METADATA:
        metadata.pop(key, None)
    return stripped


def owned_update_interesting(old: dict[str, Any] | None, new: dict[str, Any] | None) -> bool:
    if old is None or new is None:
        return True
    return strip_volatile(old) != strip_volatile(new)


def _available_replicas(obj: dict[str, Any] | None) -> int:
    return int(((obj or {}).get("status") or {}).get("availableReplicas") or 0)


def keycloak_replicas_interesting(old: dict[str, Any] | None, new: dict[str, Any] | None) -> bool:
    """Keycloak became available (one replica) or went down from a running state."""
    previous, current = _available_replicas(old), _available_replicas(new)
    if current == 1 and previous != 1:
        return True
    return previous != 0 and current == 0


def namespace_labels_interesting(old: dict[str, Any] | None, new: dict[str, Any] | None) -> bool:
    old_labels, new_labels = _labels(old), _labels(new)
    return any(old_labels.get(key) != new_labels.get(key) for key in NAMESPACE_LABELS)


def owner_identities(obj: dict[str, Any]) -> list[Identity]:
    """Instance named by the controller owner reference."""
    metadata = _metadata(obj)
    namespace = metadata.get("namespace")
    if not namespace:
        return []
    for ref in metadata.get("ownerReferences") or []:
        if ref.get("controller") and ref.get("kind") == KIND_ARGOCD and ref.get("apiVersion") == API_GROUP_VERSION:
            return [Identity(namespace, ref["name"])]
    return []


def back_reference_identities(obj: dict[str, Any]) -> list[Identity]:
    """Instance named by the back-reference annotations on objects it cannot own."""
    annotations = _annotations(obj)
    name = annotations.get(ANNOTATION_INSTANCE_NAME)
    namespace = annotations.get(ANNOTATION_INSTANCE_NAMESPACE)
    if name and namespace:
        return [Identity(namespace, name)]
    return []


def instances_in(cluster: ClusterClient, namespace: str) -> list[Identity]:
    return [
        Identity(namespace, item["metadata"]["name"])
        for item in cluster.list(API_GROUP_VERSION, KIND_ARGOCD, namespace=namespace)
    ]


def _dedupe(identities: Iterable[Identity]) -> list[Identity]:
    seen: list[Identity] = []
    for identity in identities:
        if identity not in seen:
            seen.append(identity)
    return seen


def namespace_identities(
    cluster: ClusterClient, old: dict[str, Any] | None, new: dict[str, Any] | None
) -> list[Identity]:
    """Instances in the namespaces named by old and new label values."""
    namespaces: list[str] = []
    for obj in (old, new):
        for key in NAMESPACE_LABELS:
            value = _labels(obj).get(key)
            if value and value not in namespaces:
                namespaces.append(value)
    return _dedupe(identity for namespace in namespaces for identity in instances_in(cluster, namespace))


def secret_identities(cluster: ClusterClient, obj: dict[str, Any]) -> list[Identity]:
    """Instances interested in a secret they do not own.

    Cluster secrets route to instances in the namespace named by the claim
    label. Known TLS secrets route to instances in their own namespace.
    """
    labels = _labels(obj)
    metadata = _metadata(obj)
    if labels.get(LABEL_SECRET_TYPE) == SECRET_TYPE_CLUSTER and labels.get(LABEL_NAMESPACE_CLAIMED_BY):
        return instances_in(cluster, labels[LABEL_NAMESPACE_CLAIMED_BY])
    if metadata.get("name") in KNOWN_TLS_SECRETS and metadata.get("namespace"):
        return instances_in(cluster, metadata["namespace"])
    return []


def config_map_identities(cluster: ClusterClient, obj: dict[str, Any]) -> list[Identity]:
    metadata = _metadata(obj)
    if metadata.get("name") == CONFIGMAP_APPSET_GITLAB_SCM_TLS and metadata.get("namespace"):
        return instances_in(cluster, metadata["namespace"])
    return []


def _namespace_labels_view(obj: dict[str, Any]) -> dict[str, Any]:
    labels = _labels(obj)
    return {"metadata": {"labels": {key: labels[key] for key in NAMESPACE_LABELS if key in labels}}}


def _watched_unowned(kind: str, obj: dict[str, Any]) -> bool:
    labels = _labels(obj)
    name = _metadata(obj).get("name")
    if kind == "Secret":
        return name in KNOWN_TLS_SECRETS or labels.get(LABEL_SECRET_TYPE) == SECRET_TYPE_CLUSTER
    if kind == "ConfigMap":
        return name == CONFIGMAP_APPSET_GITLAB_SCM_TLS
    return False


class EventRouter:
    """Maps watch events on related kinds to instance identities.

    Watch events carry only the new object, so the last seen copy of each
    object is kept by uid to evaluate change predicates.
    """

    def __init__(self, cluster: ClusterClient):
        self.cluster = cluster
        self._lock = threading.Lock()
        self._seen: dict[str, dict[str, Any]] = {}

    def _swap(self, event_type: str | None, uid: str | None, obj: dict[str, Any]) -> dict[str, Any] | None:
        if not uid:
            return None
        with self._lock:
            previous = self._seen.get(uid)
            if event_type == EVENT_DELETED:
                self._seen.pop(uid, None)
            else:
                self._seen[uid] = copy.deepcopy(obj)
        return previous

    def _interesting(
        self, event_type: str | None, previous: dict[str, Any] | None, obj: dict[str, Any], predicate: Callable[..., bool]
    ) -> bool:
        # Initial listing only primes the memory
        if event_type is None:
            return False
        if event_type in (EVENT_ADDED, EVENT_DELETED):
            return True
        return predicate(previous, obj)

    def _finish(self, source_kind: str, identities: list[Identity]) -> list[Identity]:
        result = "routed" if identities else "filtered"
        metrics.routed_events_total.labels(source_kind=source_kind, result=result).inc()
        if identities:
            logger.debug(f"{source_kind} event routed to {', '.join(str(i) for i in identities)}")
        return identities

    def owned(self, event_type: str | None, obj: dict[str, Any]) -> list[Identity]:
        """Objects an instance owns or back-references, plus secrets and
        config maps it only reads.
        """
        kind = obj.get("kind") or "Unknown"
        identities = owner_identities(obj) or back_reference_identities(obj)
        if not identities and not _watched_unowned(kind, obj):
            return self._finish(kind, [])
        previous = self._swap(event_type, _metadata(obj).get("uid"), strip_volatile(obj))
        if not self._interesting(event_type, previous, obj, owned_update_interesting):
            return self._finish(kind, [])
        if not identities and kind == "Secret":
            identities = secret_identities(self.cluster, obj)
        elif not identities and kind == "ConfigMap":
            identities = config_map_identities(self.cluster, obj)
        return self._finish(kind, _dedupe(identities))

    def namespace(self, event_type: str | None, obj: dict[str, Any]) -> list[Identity]:
        previous = self._swap(event_type, _metadata(obj).get("uid"), _namespace_labels_view(obj))
        if event_type is None:
            return self._finish("Namespace", [])
        if event_type == EVENT_MODIFIED and not namespace_labels_interesting(previous, obj):
            return self._finish("Namespace", [])
        return self._finish("Namespace", namespace_identities(self.cluster, previous, obj))

    def keycloak(self, event_type: str | None, obj: dict[str, Any]) -> list[Identity]:
        uid = _metadata(obj).get("uid")
        previous = self._swap(event_type, uid and f"keycloak:{uid}", {"status": dict(obj.get("status") or {})})
        if event_type != EVENT_MODIFIED or not keycloak_replicas_interesting(previous, obj):
            return self._finish("KeycloakDeployment", [])
        return self._finish("KeycloakDeployment", owner_identities(obj))

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)
