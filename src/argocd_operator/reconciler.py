"""Reconciliation orchestrator for ArgoCD instances."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator

from . import config, metrics
from .builders.applicationset import build_applicationset
from .builders.configmaps import build_config_maps
from .builders.monitoring import build_monitoring
from .builders.network import build_ingresses, build_route, build_services
from .builders.notifications import build_notifications
from .builders.rbac import build_rbac
from .builders.rollouts import build_rollouts
from .builders.secrets import build_ca_secret, build_trust_stage
from .builders.workloads import build_workloads
from .constants import (
    API_GROUP_VERSION,
    COMPONENT_APPLICATION_CONTROLLER,
    COMPONENT_SERVER,
    CONFIGMAP_APPSET_GITLAB_SCM_TLS,
    FINALIZER,
    KIND_ARGOCD,
    LABEL_MANAGED_BY,
)
from .engine import kinds
from .engine.apply import ApplyEngine, ApplyResult, DesiredResource
from .logging import log_resource_event
from .models import ArgoCD, Identity, ProviderState
from .providers import ProviderStateMachine
from .services.kube.base import ClusterClient
from .services.kube.discovery import FeatureProbe
from .status import StatusProjector
from .tenancy import TenancySnapshot, TenancyTracker, belongs_to
from .tracing import add_span_attribute, trace_span
from .utils.conditions import (
    set_error_condition,
    set_reconciled_condition,
    set_source_namespace_conflict_condition,
    set_sso_condition,
)
from .utils.context import with_correlation_id
from .utils.errors import StageError, TeardownError, ValidationError, sanitize_exception
from .utils.events import (
    emit_reconcile_failed,
    emit_reconcile_started,
    emit_source_namespace_conflict,
    emit_teardown_completed,
)
from .utils.locks import KeyedLock

logger = logging.getLogger(__name__)

OUTCOME_ABSENT = "absent"
OUTCOME_DELETED = "deleted"
OUTCOME_SKIPPED = "skipped"
OUTCOME_RECONCILED = "reconciled"


@dataclass
class ReconcileResult:
    """What one reconcile invocation did."""

    identity: Identity
    outcome: str
    provider: ProviderState | None = None
    changed: int = 0
    degraded: list[str] = field(default_factory=list)


@dataclass
class _Cycle:
    instance: ArgoCD
    conditions: list[dict[str, Any]]
    snapshot: TenancySnapshot | None = None
    provider: ProviderState | None = None
    sso_failed: bool = False
    changed: int = 0
    degraded: list[str] = field(default_factory=list)


class ArgoCDReconciler:
    """Drives one instance through the full pipeline.

    Work on a single identity is serialized with a keyed lock so handlers for
    the instance itself and for related kinds never overlap.
    """

    def __init__(
        self,
        cluster: ClusterClient,
        engine: ApplyEngine,
        providers: ProviderStateMachine,
        tenancy: TenancyTracker,
        probe: FeatureProbe,
        status: StatusProjector | None = None,
        locks: KeyedLock | None = None,
    ):
        self.cluster = cluster
        self.engine = engine
        self.providers = providers
        self.tenancy = tenancy
        self.probe = probe
        self.status = status or StatusProjector(cluster)
        self.locks = locks or KeyedLock()

    def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        """Reconcile one instance by identity.

        Raises:
            StageError: A fatal stage failed; the invocation should be retried
            TeardownError: Cleanup failed and the finalizer was kept
        """
        identity = Identity(namespace, name)
        start_time = time.time()
        with self.locks.hold(identity), with_correlation_id(), trace_span("reconcile", identity):
            try:
                result = self._reconcile(identity)
                metrics.reconcile_total.labels(kind=KIND_ARGOCD, result=result.outcome).inc()
                add_span_attribute("reconcile.outcome", result.outcome)
                return result
            except Exception as e:
                metrics.reconcile_total.labels(kind=KIND_ARGOCD, result="error").inc()
                metrics.error_total.labels(kind=KIND_ARGOCD, error_type=type(e).__name__).inc()
                raise
            finally:
                duration = time.time() - start_time
                metrics.reconcile_duration_seconds.labels(kind=KIND_ARGOCD).observe(duration)

    def _fetch(self, identity: Identity) -> ArgoCD | None:
        body = self.cluster.get(API_GROUP_VERSION, KIND_ARGOCD, identity.name, identity.namespace)
        return ArgoCD(body) if body is not None else None

    def _reconcile(self, identity: Identity) -> ReconcileResult:
        instance = self._fetch(identity)
        if instance is None:
            logger.debug(f"{identity} no longer exists, nothing to do")
            return ReconcileResult(identity, OUTCOME_ABSENT)

        if instance.deletion_timestamp:
            if not instance.has_finalizer:
                return ReconcileResult(identity, OUTCOME_SKIPPED)
            self.teardown(instance)
            return ReconcileResult(identity, OUTCOME_DELETED)

        if not instance.has_finalizer:
            self.cluster.patch_metadata(
                API_GROUP_VERSION,
                KIND_ARGOCD,
                identity.name,
                identity.namespace,
                {"finalizers": instance.finalizers + [FINALIZER]},
            )

        # Start the pipeline from the stored object, not the first read
        instance = self._fetch(identity)
        if instance is None:
            return ReconcileResult(identity, OUTCOME_ABSENT)

        cycle = _Cycle(instance=instance, conditions=list(instance.status.get("conditions") or []))
        emit_reconcile_started(instance.body)
        try:
            self._run_pipeline(cycle)
        except Exception as e:
            message = sanitize_exception(e)
            cycle.conditions = set_error_condition(cycle.conditions, message, instance.generation)
            self.status.publish(instance, cycle.provider, cycle.conditions, cycle.sso_failed)
            emit_reconcile_failed(instance.body, message)
            log_resource_event(
                logger,
                resource_kind=KIND_ARGOCD,
                resource_name=identity.name,
                namespace=identity.namespace,
                event="reconcile",
                reason="ReconcileFailed",
                message=message,
                level=logging.ERROR,
            )
            raise

        cycle.conditions = set_reconciled_condition(cycle.conditions, "Reconciliation succeeded", instance.generation)
        self.status.publish(instance, cycle.provider, cycle.conditions, cycle.sso_failed)
        log_resource_event(
            logger,
            resource_kind=KIND_ARGOCD,
            resource_name=identity.name,
            namespace=identity.namespace,
            event="reconcile",
            reason="Reconciled",
            message=f"Reconciled with {cycle.changed} change(s)",
            provider=cycle.provider.value if cycle.provider else None,
        )
        return ReconcileResult(
            identity,
            OUTCOME_RECONCILED,
            provider=cycle.provider,
            changed=cycle.changed,
            degraded=cycle.degraded,
        )

    @contextmanager
    def _stage(self, cycle: _Cycle, stage: str, fatal: bool = True) -> Iterator[None]:
        """Run one pipeline stage in a span.

        Fatal stage errors are raised as StageError. Best-effort stage errors
        are logged and the stage is recorded as degraded.
        """
        with trace_span(f"stage.{stage}", cycle.instance.identity):
            try:
                yield
            except Exception as e:
                severity = "fatal" if fatal else "best-effort"
                metrics.stage_errors_total.labels(stage=stage, severity=severity).inc()
                if fatal:
                    raise StageError(stage, e) from e
                cycle.degraded.append(stage)
                logger.warning(f"Stage {stage} of {cycle.instance.identity} failed: {sanitize_exception(e)}")

    def _apply_all(self, cycle: _Cycle, resources: Iterable[DesiredResource]) -> list[ApplyResult]:
        results = []
        for desired in resources:
            result = self.engine.apply(cycle.instance, desired)
            if result.changed:
                cycle.changed += 1
            results.append(result)
        return results

    def _run_pipeline(self, cycle: _Cycle) -> None:
        instance = cycle.instance
        generation = instance.generation

        previous = self.tenancy.snapshot(instance.identity)
        with self._stage(cycle, "tenancy"):
            cycle.snapshot = self.tenancy.refresh(instance)
        self._record_conflicts(cycle, previous.conflicts if previous else {})
        snapshot = cycle.snapshot
        route_available = self.probe.route_available()

        with self._stage(cycle, "provider"):
            try:
                cycle.provider = self.providers.reconcile(
                    instance, route_available, self.probe.template_available()
                )
                cycle.conditions = set_sso_condition(
                    cycle.conditions, True, f"Authentication provider: {cycle.provider.value}", generation
                )
            except ValidationError as e:
                metrics.stage_errors_total.labels(stage="provider", severity="validation").inc()
                logger.error(f"SSO configuration of {instance.identity} rejected: {e}")
                cycle.sso_failed = True
                cycle.provider = self.providers.active(instance)
                cycle.conditions = set_sso_condition(cycle.conditions, False, str(e), generation)

        with self._stage(cycle, "status", fatal=False):
            self.status.publish(instance, cycle.provider, cycle.conditions, cycle.sso_failed)

        with self._stage(cycle, "rbac"):
            self._apply_all(
                cycle,
                build_rbac(
                    instance,
                    list(snapshot.managed),
                    list(snapshot.source),
                    cluster_rbac_allowed=config.is_cluster_config_namespace(instance.namespace),
                    custom_cluster_roles={
                        COMPONENT_APPLICATION_CONTROLLER: config.controller_cluster_role(),
                        COMPONENT_SERVER: config.server_cluster_role(),
                    },
                ),
            )

        with self._stage(cycle, "trust"):
            (ca,) = self._apply_all(cycle, [build_ca_secret(instance)])
            self._apply_all(cycle, build_trust_stage(instance, ca.resource))

        with self._stage(cycle, "config"):
            self._apply_all(cycle, build_config_maps(instance, cycle.provider or ProviderState.NONE))

        with self._stage(cycle, "network"):
            resources = build_services(instance) + build_ingresses(instance)
            if route_available:
                resources.append(build_route(instance))
            self._apply_all(cycle, resources)

        with self._stage(cycle, "workloads"):
            self._apply_all(
                cycle, build_workloads(instance, cycle.provider or ProviderState.NONE, list(snapshot.source))
            )

        if self.probe.monitoring_available():
            with self._stage(cycle, "monitoring", fatal=False):
                self._apply_all(cycle, build_monitoring(instance))

        with self._stage(cycle, "applicationset"):
            scm_root_ca = (
                self.cluster.get(
                    kinds.CONFIG_MAP.api_version,
                    kinds.CONFIG_MAP.kind,
                    CONFIGMAP_APPSET_GITLAB_SCM_TLS,
                    instance.namespace,
                )
                is not None
            )
            self._apply_all(cycle, build_applicationset(instance, scm_root_ca=scm_root_ca))

        with self._stage(cycle, "notifications"):
            self._apply_all(cycle, build_notifications(instance))

        with self._stage(cycle, "rollouts"):
            self._apply_all(cycle, build_rollouts(instance))

    def _record_conflicts(self, cycle: _Cycle, reported: dict[str, str]) -> None:
        """Set the conflict condition and warn about conflicts not seen last cycle.

        reported holds the conflicts of the previous cycle in this process, so
        after a restart the current conflicts are warned about once more.
        """
        conflicts = cycle.snapshot.conflicts if cycle.snapshot else {}
        cycle.conditions = set_source_namespace_conflict_condition(
            cycle.conditions, conflicts, cycle.instance.generation
        )
        for namespace, owner in sorted(conflicts.items()):
            if reported.get(namespace) != owner:
                emit_source_namespace_conflict(cycle.instance.body, namespace, owner)

    def teardown(self, instance: ArgoCD) -> None:
        """Remove what owner references cannot, then release the finalizer.

        Raises:
            TeardownError: Any cleanup step failed; the finalizer stays
        """
        with trace_span("teardown", instance.identity):
            try:
                removed = self._delete_cluster_scoped(instance)
                self.tenancy.teardown(instance)
            except Exception as e:
                metrics.stage_errors_total.labels(stage="teardown", severity="fatal").inc()
                raise TeardownError(f"teardown of {instance.identity} failed: {sanitize_exception(e)}") from e

            self.cluster.patch_metadata(
                API_GROUP_VERSION,
                KIND_ARGOCD,
                instance.name,
                instance.namespace,
                {"finalizers": [f for f in instance.finalizers if f != FINALIZER]},
            )
            self.providers.forget(instance)
            self.tenancy.forget(instance.identity)

        emit_teardown_completed(instance.body)
        log_resource_event(
            logger,
            resource_kind=KIND_ARGOCD,
            resource_name=instance.name,
            namespace=instance.namespace,
            event="teardown",
            reason="TeardownCompleted",
            message=f"Removed {removed} cluster-scoped resource(s), finalizer released",
        )

    def _delete_cluster_scoped(self, instance: ArgoCD) -> int:
        removed = 0
        for handler in kinds.CLUSTER_SCOPED_KINDS:
            for obj in self.cluster.list(
                handler.api_version, handler.kind, label_selector=f"{LABEL_MANAGED_BY}={instance.name}"
            ):
                if not belongs_to(obj, instance):
                    continue
                if self.engine.delete(handler, None, obj["metadata"]["name"], instance=instance):
                    removed += 1
        return removed
