"""Status projection for ArgoCD instances."""

from __future__ import annotations

import logging
from typing import Any

from . import metrics
from .builders import common
from .builders.applicationset import applicationset_enabled
from .builders.configmaps import server_host
from .builders.network import server_name
from .builders.notifications import notifications_enabled
from .builders.rollouts import rollouts_enabled
from .builders.sso import dex_resource_name
from .constants import (
    API_GROUP_VERSION,
    COMPONENT_KEYCLOAK,
    COMPONENT_ROLLOUTS,
    KIND_ARGOCD,
    PHASE_AVAILABLE,
    PHASE_FAILED,
    PHASE_PENDING,
    PHASE_RUNNING,
    PHASE_UNKNOWN,
)
from .engine import kinds
from .models import ArgoCD, ProviderState
from .services.kube.base import ClusterClient
from .utils.errors import sanitize_exception

logger = logging.getLogger(__name__)

CORE_COMPONENTS = ("applicationController", "server", "repo", "redis")


def workload_phase(obj: dict[str, Any] | None) -> str:
    """Running once every desired replica is ready, Unknown when the workload is missing."""
    if obj is None:
        return PHASE_UNKNOWN
    desired = (obj.get("spec") or {}).get("replicas")
    desired = 1 if desired is None else int(desired)
    ready = int((obj.get("status") or {}).get("readyReplicas") or 0)
    if desired > 0 and ready >= desired:
        return PHASE_RUNNING
    return PHASE_PENDING


class StatusProjector:
    """Builds and writes the instance status from live workloads."""

    def __init__(self, cluster: ClusterClient):
        self.cluster = cluster

    def _phase(self, handler: kinds.KindHandler, name: str, namespace: str) -> str:
        return workload_phase(self.cluster.get(handler.api_version, handler.kind, name, namespace))

    def _host(self, instance: ArgoCD) -> str | None:
        server = instance.spec_section("server")
        if (server.get("route") or {}).get("enabled"):
            route = self.cluster.get(kinds.ROUTE.api_version, kinds.ROUTE.kind, server_name(instance), instance.namespace)
            if route:
                ingresses = (route.get("status") or {}).get("ingress") or []
                if ingresses and ingresses[0].get("host"):
                    return ingresses[0]["host"]
                return (route.get("spec") or {}).get("host")
            return None
        if (server.get("ingress") or {}).get("enabled"):
            return server_host(instance)
        return None

    def _sso_phase(self, instance: ArgoCD, provider: ProviderState | None, sso_failed: bool) -> str | None:
        if sso_failed:
            return PHASE_FAILED
        if provider is ProviderState.DEX:
            return self._phase(kinds.DEPLOYMENT, dex_resource_name(instance), instance.namespace)
        if provider is ProviderState.KEYCLOAK:
            phase = self._phase(kinds.DEPLOYMENT, COMPONENT_KEYCLOAK, instance.namespace)
            if phase == PHASE_UNKNOWN:
                phase = self._phase(kinds.DEPLOYMENT_CONFIG, COMPONENT_KEYCLOAK, instance.namespace)
            return phase
        return None

    def project(
        self,
        instance: ArgoCD,
        provider: ProviderState | None,
        conditions: list[dict[str, Any]],
        sso_failed: bool = False,
    ) -> dict[str, Any]:
        """Compute the status document.

        Optional components are reported only while enabled; a None value
        removes a stale entry under merge-patch semantics.

        Args:
            instance: Instance being reported on
            provider: Provider currently in effect
            conditions: Conditions to publish
            sso_failed: Whether the provider configuration was rejected

        Returns:
            Status dict suitable for a merge patch
        """
        ns = instance.namespace
        status: dict[str, Any] = {
            "applicationController": self._phase(
                kinds.STATEFUL_SET, common.name_with_suffix(instance, "application-controller"), ns
            ),
            "server": self._phase(kinds.DEPLOYMENT, server_name(instance), ns),
            "repo": self._phase(kinds.DEPLOYMENT, common.name_with_suffix(instance, "repo-server"), ns),
            "redis": self._phase(kinds.DEPLOYMENT, common.name_with_suffix(instance, "redis"), ns),
        }
        status["phase"] = (
            PHASE_AVAILABLE if all(status[key] == PHASE_RUNNING for key in CORE_COMPONENTS) else PHASE_PENDING
        )
        status["sso"] = self._sso_phase(instance, provider, sso_failed)
        status["applicationSetController"] = (
            self._phase(kinds.DEPLOYMENT, common.name_with_suffix(instance, "applicationset-controller"), ns)
            if applicationset_enabled(instance)
            else None
        )
        status["notificationsController"] = (
            self._phase(kinds.DEPLOYMENT, common.name_with_suffix(instance, "notifications-controller"), ns)
            if notifications_enabled(instance)
            else None
        )
        status["rolloutsController"] = (
            self._phase(kinds.DEPLOYMENT, COMPONENT_ROLLOUTS, ns) if rollouts_enabled(instance) else None
        )
        status["host"] = self._host(instance)
        status["conditions"] = conditions
        status["observedGeneration"] = instance.generation
        return status

    def write(self, instance: ArgoCD, status: dict[str, Any]) -> bool:
        """Patch the status sub-resource. Failures are logged, never raised."""
        try:
            self.cluster.patch_status(API_GROUP_VERSION, KIND_ARGOCD, instance.name, instance.namespace, status)
            return True
        except Exception as e:
            metrics.stage_errors_total.labels(stage="status", severity="best-effort").inc()
            logger.warning(f"Failed to update status of {instance.identity}: {sanitize_exception(e)}")
            return False

    def publish(
        self,
        instance: ArgoCD,
        provider: ProviderState | None,
        conditions: list[dict[str, Any]],
        sso_failed: bool = False,
    ) -> bool:
        """Project and write in one best-effort step."""
        try:
            status = self.project(instance, provider, conditions, sso_failed)
        except Exception as e:
            metrics.stage_errors_total.labels(stage="status", severity="best-effort").inc()
            logger.warning(f"Failed to compute status of {instance.identity}: {sanitize_exception(e)}")
            return False
        return self.write(instance, status)
