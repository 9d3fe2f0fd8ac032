"""Tracking of the namespaces an instance manages or reads Applications from."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from kubernetes.client.exceptions import ApiException

from . import config, metrics
from .builders.rbac import source_namespace_rbac_name
from .constants import (
    ANNOTATION_INSTANCE_NAMESPACE,
    KIND_ARGOCD,
    LABEL_MANAGED_BY,
    LABEL_NAMESPACE_CLAIMED_BY,
    LABEL_NAMESPACE_MANAGED_BY,
    LABEL_RBAC_SCOPE,
    RBAC_SCOPE_INSTANCE,
    RBAC_SCOPE_MANAGED,
    RBAC_SCOPE_SOURCE,
)
from .engine import kinds
from .engine.apply import ApplyEngine
from .logging import log_resource_event
from .models import ArgoCD, Identity
from .services.kube.base import ClusterClient
from .utils.errors import OperatorError, is_conflict

logger = logging.getLogger(__name__)

# Claim attempts before giving up on a namespace that keeps changing
CLAIM_ATTEMPTS = 3


@dataclass(frozen=True)
class TenancySnapshot:
    """Namespaces resolved for one instance in one reconcile cycle.

    Attributes:
        managed: Instance namespace plus namespaces labelled as managed by it
        source: Source namespaces this instance holds the claim on
        conflicts: Listed source namespaces claimed by another instance,
            mapped to the claiming namespace
    """

    managed: tuple[str, ...]
    source: tuple[str, ...]
    conflicts: dict[str, str] = field(default_factory=dict)


def _name(obj: dict[str, Any]) -> str:
    return obj["metadata"]["name"]


def _labels(obj: dict[str, Any]) -> dict[str, str]:
    return obj.get("metadata", {}).get("labels") or {}


def belongs_to(obj: dict[str, Any], instance: ArgoCD) -> bool:
    """Whether a managed object was created for this instance.

    Objects in the instance namespace carry an owner reference; elsewhere the
    instance namespace is recorded as an annotation.
    """
    metadata = obj.get("metadata", {})
    for ref in metadata.get("ownerReferences") or []:
        if ref.get("kind") == KIND_ARGOCD and ref.get("name") == instance.name:
            return not instance.uid or not ref.get("uid") or ref.get("uid") == instance.uid
    annotations = metadata.get("annotations") or {}
    return annotations.get(ANNOTATION_INSTANCE_NAMESPACE) == instance.namespace


class TenancyTracker:
    """Computes managed and source namespaces and cleans up after removals.

    Source namespaces are claimed first come first served with the
    managed-by-cluster-argocd label. The latest snapshot of every instance is
    kept in a lock-guarded index for the event router and status reporting.
    """

    def __init__(self, cluster: ClusterClient, engine: ApplyEngine):
        self.cluster = cluster
        self.engine = engine
        self._lock = threading.Lock()
        self._index: dict[Identity, TenancySnapshot] = {}

    def refresh(self, instance: ArgoCD) -> TenancySnapshot:
        """Recompute namespace sets, claim or release source namespaces and
        delete RBAC left in namespaces that dropped out of either set.
        """
        managed = self.managed_namespaces(instance)
        source, conflicts = self._claim_source_namespaces(instance)
        snapshot = TenancySnapshot(managed=tuple(managed), source=tuple(source), conflicts=conflicts)
        self.prune_stale_rbac(instance, snapshot)

        with self._lock:
            self._index[instance.identity] = snapshot
        metrics.managed_namespaces.labels(instance=str(instance.identity), scope="managed").set(len(managed))
        metrics.managed_namespaces.labels(instance=str(instance.identity), scope="source").set(len(source))
        return snapshot

    def managed_namespaces(self, instance: ArgoCD) -> list[str]:
        labelled = self.cluster.list(
            "v1",
            "Namespace",
            label_selector=f"{LABEL_NAMESPACE_MANAGED_BY}={instance.namespace}",
        )
        return sorted({instance.namespace} | {_name(ns) for ns in labelled})

    def _listed_source_namespaces(self, instance: ArgoCD) -> list[str]:
        listed = []
        for namespace in instance.spec.get("sourceNamespaces") or []:
            if namespace and namespace != instance.namespace and namespace not in listed:
                listed.append(namespace)
        return listed

    def _claim_source_namespaces(self, instance: ArgoCD) -> tuple[list[str], dict[str, str]]:
        listed = self._listed_source_namespaces(instance)
        source: list[str] = []
        conflicts: dict[str, str] = {}
        for namespace in listed:
            holder = self._claim(instance, namespace)
            if holder is None:
                logger.debug(f"Source namespace {namespace} of {instance.identity} does not exist")
            elif holder == instance.namespace:
                source.append(namespace)
            else:
                conflicts[namespace] = holder

        claimed = self.cluster.list(
            "v1",
            "Namespace",
            label_selector=f"{LABEL_NAMESPACE_CLAIMED_BY}={instance.namespace}",
        )
        for ns_obj in claimed:
            namespace = _name(ns_obj)
            if namespace not in listed:
                self.release_source_namespace(instance, namespace)
        return sorted(source), conflicts

    def _claim(self, instance: ArgoCD, namespace: str) -> str | None:
        """Claim a source namespace unless another instance already holds it.

        The claim patch is conditional on the resourceVersion that was read.
        Of two instances racing for an unclaimed namespace only the first
        patch lands; the other gets a conflict, re-reads and sees the holder.

        Returns:
            Namespace of the holding instance, None when the namespace does not exist

        Raises:
            OperatorError: The namespace changed under every claim attempt
        """
        for _ in range(CLAIM_ATTEMPTS):
            ns_obj = self.cluster.get("v1", "Namespace", namespace)
            if ns_obj is None:
                return None
            holder = _labels(ns_obj).get(LABEL_NAMESPACE_CLAIMED_BY)
            if holder:
                return holder
            try:
                self.cluster.patch_metadata(
                    "v1",
                    "Namespace",
                    namespace,
                    None,
                    {"labels": {LABEL_NAMESPACE_CLAIMED_BY: instance.namespace}},
                    resource_version=ns_obj["metadata"].get("resourceVersion"),
                )
            except ApiException as e:
                if not is_conflict(e):
                    raise
                logger.debug(f"Namespace {namespace} changed while {instance.identity} claimed it, re-reading")
                continue
            self._log(instance, "SourceNamespaceClaimed", f"Claimed source namespace {namespace}")
            return instance.namespace
        raise OperatorError(f"namespace {namespace} kept changing while claiming it")

    def release_source_namespace(self, instance: ArgoCD, namespace: str) -> None:
        self.cluster.patch_metadata("v1", "Namespace", namespace, None, {"labels": {LABEL_NAMESPACE_CLAIMED_BY: None}})
        self._log(instance, "SourceNamespaceReleased", f"Released source namespace {namespace}")

    def prune_stale_rbac(self, instance: ArgoCD, snapshot: TenancySnapshot) -> int:
        """Delete roles and bindings of this instance outside the current namespace sets.

        Returns:
            Number of objects deleted
        """
        deleted = 0
        selector = f"{LABEL_MANAGED_BY}={instance.name},{LABEL_RBAC_SCOPE}"
        for handler in (kinds.ROLE_BINDING, kinds.ROLE):
            for obj in self.cluster.list(handler.api_version, handler.kind, label_selector=selector):
                if not belongs_to(obj, instance):
                    continue
                namespace = obj["metadata"].get("namespace")
                scope = _labels(obj).get(LABEL_RBAC_SCOPE)
                if scope in (RBAC_SCOPE_INSTANCE, RBAC_SCOPE_MANAGED) and namespace in snapshot.managed:
                    continue
                if scope == RBAC_SCOPE_SOURCE and namespace in snapshot.source:
                    continue
                if self.engine.delete(handler, namespace, _name(obj), instance=instance):
                    deleted += 1
        return deleted

    def teardown(self, instance: ArgoCD) -> None:
        """Undo namespace-level changes when the instance is deleted.

        Source-namespace RBAC is deleted and the claim released; the
        managed-by label is stripped from managed namespaces only when
        REMOVE_MANAGED_BY_LABEL_ON_ARGOCD_DELETION is true.
        """
        if config.remove_managed_by_label_on_deletion():
            for ns_obj in self.cluster.list(
                "v1", "Namespace", label_selector=f"{LABEL_NAMESPACE_MANAGED_BY}={instance.namespace}"
            ):
                self.cluster.patch_metadata(
                    "v1", "Namespace", _name(ns_obj), None, {"labels": {LABEL_NAMESPACE_MANAGED_BY: None}}
                )

        for ns_obj in self.cluster.list(
            "v1", "Namespace", label_selector=f"{LABEL_NAMESPACE_CLAIMED_BY}={instance.namespace}"
        ):
            namespace = _name(ns_obj)
            name = source_namespace_rbac_name(instance, namespace)
            self.engine.delete(kinds.ROLE_BINDING, namespace, name, instance=instance)
            self.engine.delete(kinds.ROLE, namespace, name, instance=instance)
            self.release_source_namespace(instance, namespace)

    def snapshot(self, identity: Identity) -> TenancySnapshot | None:
        with self._lock:
            return self._index.get(identity)

    def instances_managing(self, namespace: str) -> list[Identity]:
        """Identities whose last snapshot lists the namespace as managed or source."""
        with self._lock:
            return sorted(
                (ident for ident, snap in self._index.items() if namespace in snap.managed or namespace in snap.source),
                key=str,
            )

    def forget(self, identity: Identity) -> None:
        with self._lock:
            self._index.pop(identity, None)
        metrics.managed_namespaces.labels(instance=str(identity), scope="managed").set(0)
        metrics.managed_namespaces.labels(instance=str(identity), scope="source").set(0)

    def _log(self, instance: ArgoCD, reason: str, message: str) -> None:
        log_resource_event(
            logger,
            resource_kind=KIND_ARGOCD,
            resource_name=instance.name,
            namespace=instance.namespace,
            event="tenancy",
            reason=reason,
            message=message,
        )
