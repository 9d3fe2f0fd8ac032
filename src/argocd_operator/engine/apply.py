"""Diff and apply engine for managed resources."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from .. import metrics
from ..constants import ANNOTATION_INSTANCE_NAME, ANNOTATION_INSTANCE_NAMESPACE
from ..hooks import HookRegistry
from ..logging import log_resource_event
from ..models import ArgoCD
from ..services.kube.base import ClusterClient
from .kinds import KindHandler

logger = logging.getLogger(__name__)


class ApplyAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    DELETED = "deleted"
    ABSENT = "absent"


@dataclass
class DesiredResource:
    """One object the instance wants to exist (or, when disabled, not exist).

    Attributes:
        handler: Kind rules for the object
        manifest: Desired manifest from a pure builder
        enabled: False means the object must be removed if present
        hint: Free-form name passed to hooks
        data_factory: Produces generated material (keys, passwords) merged
            into the manifest on create only; never drift-compared
    """

    handler: KindHandler
    manifest: dict[str, Any]
    enabled: bool = True
    hint: str = ""
    data_factory: Callable[[], dict[str, Any]] | None = field(default=None, repr=False)

    @property
    def name(self) -> str:
        return self.manifest["metadata"]["name"]

    @property
    def namespace(self) -> str | None:
        return self.manifest["metadata"].get("namespace")


@dataclass
class ApplyResult:
    action: ApplyAction
    resource: dict[str, Any] | None = None

    @property
    def changed(self) -> bool:
        return self.action in (ApplyAction.CREATED, ApplyAction.UPDATED, ApplyAction.DELETED)


class ApplyEngine:
    """Converges one managed resource at a time toward its desired state."""

    def __init__(self, cluster: ClusterClient, hooks: HookRegistry):
        self.cluster = cluster
        self.hooks = hooks

    def apply(self, instance: ArgoCD, desired: DesiredResource) -> ApplyResult:
        """Create, update, delete or leave alone one managed resource.

        Hooks run over a copy of the desired manifest before anything is
        read or written; a hook error propagates and nothing is written.

        Args:
            instance: Owning instance
            desired: Desired state of the resource

        Returns:
            ApplyResult with the action taken and the resulting object
        """
        handler = desired.handler
        if not desired.enabled:
            deleted = self.delete(handler, desired.namespace, desired.name, instance=instance)
            return ApplyResult(ApplyAction.DELETED if deleted else ApplyAction.ABSENT)

        manifest = copy.deepcopy(desired.manifest)
        manifest.setdefault("apiVersion", handler.api_version)
        manifest.setdefault("kind", handler.kind)
        self.hooks.apply(instance, manifest, desired.hint or desired.name)

        existing = self.cluster.get(handler.api_version, handler.kind, desired.name, desired.namespace)
        if existing is None:
            created = self._create(instance, desired, manifest)
            return ApplyResult(ApplyAction.CREATED, created)

        if handler.needs_recreate(manifest, existing):
            metrics.drift_detected_total.labels(resource_kind=handler.kind).inc()
            self.cluster.delete(handler.api_version, handler.kind, desired.name, desired.namespace)
            self._record(instance, handler, desired, ApplyAction.DELETED, "Immutable field changed, recreating")
            created = self._create(instance, desired, manifest)
            return ApplyResult(ApplyAction.CREATED, created)

        diffs = handler.differing_fields(manifest, existing)
        if not diffs:
            metrics.apply_operations_total.labels(resource_kind=handler.kind, action=ApplyAction.UNCHANGED.value).inc()
            return ApplyResult(ApplyAction.UNCHANGED, existing)

        metrics.drift_detected_total.labels(resource_kind=handler.kind).inc()
        handler.copy_fields(manifest, existing, diffs)
        updated = self.cluster.update(existing)
        self._record(instance, handler, desired, ApplyAction.UPDATED, f"Updated fields: {', '.join(diffs)}")
        return ApplyResult(ApplyAction.UPDATED, updated)

    def delete(
        self,
        handler: KindHandler,
        namespace: str | None,
        name: str,
        instance: ArgoCD | None = None,
    ) -> bool:
        """Delete a managed resource; returns False when it was already gone."""
        deleted = self.cluster.delete(handler.api_version, handler.kind, name, namespace if handler.namespaced else None)
        if deleted:
            metrics.apply_operations_total.labels(resource_kind=handler.kind, action=ApplyAction.DELETED.value).inc()
            log_resource_event(
                logger,
                resource_kind=handler.kind,
                resource_name=name,
                namespace=namespace or "",
                event="delete",
                reason=ApplyAction.DELETED.value,
                message="Managed resource deleted",
                instance=str(instance.identity) if instance else None,
            )
        return deleted

    def _create(self, instance: ArgoCD, desired: DesiredResource, manifest: dict[str, Any]) -> dict[str, Any]:
        self._set_back_reference(instance, desired.handler, manifest)
        if desired.data_factory is not None:
            for key, value in desired.data_factory().items():
                if isinstance(value, dict):
                    manifest.setdefault(key, {}).update(value)
                else:
                    manifest[key] = value
        created = self.cluster.create(manifest)
        self._record(instance, desired.handler, desired, ApplyAction.CREATED, "Managed resource created")
        return created

    @staticmethod
    def _set_back_reference(instance: ArgoCD, handler: KindHandler, manifest: dict[str, Any]) -> None:
        """Tie a new object to its instance.

        Owner references cannot cross namespaces or point from cluster-scoped
        objects, so those carry the instance name and namespace as annotations.
        """
        metadata = manifest.setdefault("metadata", {})
        if handler.namespaced and metadata.get("namespace") == instance.namespace:
            metadata["ownerReferences"] = [instance.owner_reference()]
            return
        annotations = metadata.setdefault("annotations", {})
        annotations[ANNOTATION_INSTANCE_NAME] = instance.name
        annotations[ANNOTATION_INSTANCE_NAMESPACE] = instance.namespace

    def _record(
        self,
        instance: ArgoCD,
        handler: KindHandler,
        desired: DesiredResource,
        action: ApplyAction,
        message: str,
    ) -> None:
        metrics.apply_operations_total.labels(resource_kind=handler.kind, action=action.value).inc()
        log_resource_event(
            logger,
            resource_kind=handler.kind,
            resource_name=desired.name,
            namespace=desired.namespace or "",
            event="apply",
            reason=action.value,
            message=message,
            instance=str(instance.identity),
        )
