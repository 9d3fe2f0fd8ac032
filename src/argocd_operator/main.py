"""Main entry point for the Argo CD Operator."""

from __future__ import annotations

import logging
from typing import Any

import kopf
from kubernetes.client.exceptions import ApiException

from . import config, health
from . import logging as structured_logging
from . import tracing
from .constants import API_GROUP_VERSION, COMPONENT_KEYCLOAK, KIND_ARGOCD
from .engine import kinds
from .engine.apply import ApplyEngine
from .hooks import HookRegistry
from .models import Identity
from .providers import ProviderStateMachine
from .reconciler import ArgoCDReconciler, ReconcileResult
from .routing import EventRouter, primary_update_interesting
from .services.kube import FeatureProbe, KubernetesClusterClient, load_kube_config
from .status import StatusProjector
from .tenancy import TenancyTracker
from .utils.errors import OperatorError, sanitize_exception

logger = logging.getLogger(__name__)

# Retry delay for failed reconciles, in seconds
RETRY_DELAY = 30

# Kinds whose changes are routed back to the owning instance
WATCHED_KINDS = (
    kinds.SERVICE_ACCOUNT,
    kinds.SECRET,
    kinds.CONFIG_MAP,
    kinds.SERVICE,
    kinds.ROLE,
    kinds.ROLE_BINDING,
    kinds.CLUSTER_ROLE,
    kinds.CLUSTER_ROLE_BINDING,
    kinds.DEPLOYMENT,
    kinds.STATEFUL_SET,
    kinds.HORIZONTAL_POD_AUTOSCALER,
    kinds.INGRESS,
    kinds.ROUTE,
)

hooks = HookRegistry()
_reconciler: ArgoCDReconciler | None = None
_router: EventRouter | None = None


def build_operator(cluster: Any) -> tuple[ArgoCDReconciler, EventRouter]:
    """Wire the reconciler and event router around one cluster client."""
    engine = ApplyEngine(cluster, hooks)
    reconciler = ArgoCDReconciler(
        cluster,
        engine,
        ProviderStateMachine(cluster, engine),
        TenancyTracker(cluster, engine),
        FeatureProbe(cluster),
        status=StatusProjector(cluster),
    )
    return reconciler, EventRouter(cluster)


def run_reconcile(namespace: str, name: str) -> ReconcileResult:
    """Reconcile an instance, turning failures into kopf retries."""
    if _reconciler is None:
        raise kopf.TemporaryError("operator is still starting", delay=5)
    try:
        return _reconciler.reconcile(namespace, name)
    except (OperatorError, ApiException) as e:
        raise kopf.TemporaryError(sanitize_exception(e), delay=RETRY_DELAY) from e


def dispatch(identities: list[Identity]) -> None:
    """Reconcile every identity a related-kind event was routed to.

    Event handlers are not retried by kopf, so a failure is logged and the
    next event or resync picks the instance up again.
    """
    for identity in identities:
        try:
            run_reconcile(identity.namespace, identity.name)
        except kopf.TemporaryError as e:
            logger.warning(f"Routed reconcile of {identity} failed: {e}")


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    global _reconciler, _router

    structured_logging.setup_structured_logging(config.log_level())
    tracing.initialize_tracing()

    # Keep kopf state in annotations; status belongs to the projection
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = logging.WARNING
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = 4

    health.start_metrics_server(config.metrics_port())

    load_kube_config()
    _reconciler, _router = build_operator(KubernetesClusterClient())
    health.mark_ready()


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    health.mark_not_ready()


def _primary_changed(old: Any, new: Any, **_: Any) -> bool:
    return primary_update_interesting(old, new)


@kopf.on.create(API_GROUP_VERSION, KIND_ARGOCD)
@kopf.on.update(API_GROUP_VERSION, KIND_ARGOCD, when=_primary_changed)
@kopf.on.resume(API_GROUP_VERSION, KIND_ARGOCD)
def handle_argocd(meta: dict[str, Any], **_: Any) -> None:
    """Handle ArgoCD resource reconciliation."""
    run_reconcile(meta["namespace"], meta["name"])


@kopf.on.delete(API_GROUP_VERSION, KIND_ARGOCD, optional=True)
def handle_argocd_delete(meta: dict[str, Any], **_: Any) -> None:
    """Run teardown while the operator finalizer holds the object."""
    run_reconcile(meta["namespace"], meta["name"])


@kopf.timer(API_GROUP_VERSION, KIND_ARGOCD, interval=config.resync_interval_seconds(), idle=10)
def resync_argocd(meta: dict[str, Any], **_: Any) -> None:
    """Periodic drift correction."""
    if meta.get("deletionTimestamp"):
        return
    run_reconcile(meta["namespace"], meta["name"])


def handle_related(event: dict[str, Any], **_: Any) -> None:
    """Route a change on a managed or watched kind to its instances."""
    if _router is None:
        return
    dispatch(_router.owned(event.get("type"), event["object"]))


for _handler in WATCHED_KINDS:
    kopf.on.event(_handler.api_version, _handler.kind)(handle_related)


@kopf.on.event("v1", "Namespace")
def handle_namespace(event: dict[str, Any], **_: Any) -> None:
    """Managed-by and claim label changes move namespaces between instances."""
    if _router is None:
        return
    dispatch(_router.namespace(event.get("type"), event["object"]))


@kopf.on.event("apps/v1", "Deployment", when=lambda name, **_: name == COMPONENT_KEYCLOAK)
@kopf.on.event("apps.openshift.io/v1", "DeploymentConfig", when=lambda name, **_: name == COMPONENT_KEYCLOAK)
def handle_keycloak(event: dict[str, Any], **_: Any) -> None:
    """Keycloak availability changes finish or restart provider setup."""
    if _router is None:
        return
    dispatch(_router.keycloak(event.get("type"), event["object"]))
