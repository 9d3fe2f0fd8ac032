"""Authentication provider state machine."""

from __future__ import annotations

import logging
import threading

from . import config, metrics
from .builders.sso import build_dex_resources, build_keycloak_resources, dex_resource_name
from .constants import COMPONENT_KEYCLOAK, KIND_ARGOCD
from .engine import kinds
from .engine.apply import ApplyEngine
from .logging import log_resource_event
from .models import ArgoCD, ProviderState
from .services.kube.base import ClusterClient
from .utils.errors import ValidationError
from .utils.events import emit_deprecation_notice, emit_provider_switched, emit_validate_failed

logger = logging.getLogger(__name__)

DEPRECATED_DEX_MESSAGE = (
    "spec.dex is deprecated and will be removed in a future release; "
    "use spec.sso.provider: dex with spec.sso.dex instead"
)


class DeprecationTracker:
    """Remembers which namespaces already received the spec.dex deprecation notice."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._warned: set[str] = set()

    def first_use(self, namespace: str) -> bool:
        """True the first time it is called for a namespace."""
        with self._lock:
            if namespace in self._warned:
                return False
            self._warned.add(namespace)
            return True

    def clear(self, namespace: str) -> None:
        with self._lock:
            self._warned.discard(namespace)

    def __contains__(self, namespace: str) -> bool:
        with self._lock:
            return namespace in self._warned


class ProviderStateMachine:
    """Derives the requested provider and converges the cluster toward it.

    States are NONE, DEX and KEYCLOAK. The provider that is not requested
    always has its resources removed before the requested one is applied,
    so the two never run side by side.
    """

    def __init__(self, cluster: ClusterClient, engine: ApplyEngine, tracker: DeprecationTracker | None = None):
        self.cluster = cluster
        self.engine = engine
        self.tracker = tracker or DeprecationTracker()

    def requested(self, instance: ArgoCD) -> ProviderState:
        """Derive the requested provider from spec.sso and spec.dex.

        Raises:
            ValidationError: The spec asks for an unknown provider or for both
        """
        sso = instance.spec_section("sso")
        provider = (sso.get("provider") or "").strip().lower()
        legacy = instance.spec_section("dex")
        legacy_requested = bool(legacy.get("openShiftOAuth") or legacy.get("config"))

        if provider not in ("", ProviderState.DEX.value, ProviderState.KEYCLOAK.value):
            raise ValidationError(f"unsupported SSO provider {sso.get('provider')!r}, expected dex or keycloak")
        if provider == ProviderState.KEYCLOAK.value and sso.get("dex"):
            raise ValidationError("both dex and keycloak are configured: spec.sso.dex is set while spec.sso.provider is keycloak")
        if provider == ProviderState.DEX.value and sso.get("keycloak"):
            raise ValidationError("both dex and keycloak are configured: spec.sso.keycloak is set while spec.sso.provider is dex")
        if not provider and (sso.get("dex") or sso.get("keycloak")):
            raise ValidationError("spec.sso.provider must be set when spec.sso.dex or spec.sso.keycloak is configured")

        if legacy_requested:
            if self.tracker.first_use(instance.namespace):
                emit_deprecation_notice(instance.body, DEPRECATED_DEX_MESSAGE)
            if provider == ProviderState.KEYCLOAK.value:
                raise ValidationError("both dex and keycloak are configured: spec.dex is set while spec.sso.provider is keycloak")
            if not config.is_dex_disabled():
                return ProviderState.DEX

        if provider == ProviderState.DEX.value:
            if config.is_dex_disabled():
                raise ValidationError("spec.sso.provider is dex but dex is disabled by DISABLE_DEX")
            return ProviderState.DEX
        if provider == ProviderState.KEYCLOAK.value:
            return ProviderState.KEYCLOAK
        return ProviderState.NONE

    def active(self, instance: ArgoCD) -> ProviderState:
        """Provider whose marker deployment currently exists."""
        handler = kinds.DEPLOYMENT
        if self.cluster.get(handler.api_version, handler.kind, dex_resource_name(instance), instance.namespace):
            return ProviderState.DEX
        for handler in (kinds.DEPLOYMENT, kinds.DEPLOYMENT_CONFIG):
            if self.cluster.get(handler.api_version, handler.kind, COMPONENT_KEYCLOAK, instance.namespace):
                return ProviderState.KEYCLOAK
        return ProviderState.NONE

    def reconcile(self, instance: ArgoCD, route_available: bool, template_available: bool = False) -> ProviderState:
        """Converge provider resources to the requested state.

        On a validation error nothing is written for either provider; a
        ValidateFailed event is emitted and the error is re-raised.

        Args:
            instance: Instance being reconciled
            route_available: Whether Keycloak is exposed through a route
            template_available: Whether Keycloak runs as a DeploymentConfig

        Returns:
            The requested (and now applied) provider state
        """
        try:
            requested = self.requested(instance)
        except ValidationError as e:
            emit_validate_failed(instance.body, str(e))
            raise

        previous = self.active(instance)
        dex = ProviderState.DEX
        keycloak = ProviderState.KEYCLOAK
        # Disable first, then enable
        if requested is keycloak:
            order = [(dex, False), (keycloak, True)]
        elif requested is dex:
            order = [(keycloak, False), (dex, True)]
        else:
            order = [(dex, False), (keycloak, False)]

        for state, enabled in order:
            if state is dex:
                resources = build_dex_resources(instance, enabled)
            else:
                resources = build_keycloak_resources(instance, enabled, route_available, template_available)
            for desired in resources:
                self.engine.apply(instance, desired)

        if previous is not requested:
            metrics.provider_transitions_total.labels(from_provider=previous.value, to_provider=requested.value).inc()
            log_resource_event(
                logger,
                resource_kind=KIND_ARGOCD,
                resource_name=instance.name,
                namespace=instance.namespace,
                event="provider",
                reason="ProviderSwitched",
                message=f"Authentication provider switched from {previous.value} to {requested.value}",
            )
            emit_provider_switched(instance.body, previous.value, requested.value)
        return requested

    def forget(self, instance: ArgoCD) -> None:
        """Drop process-local state for a deleted instance."""
        self.tracker.clear(instance.namespace)
