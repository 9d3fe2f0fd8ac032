"""Prometheus, service monitors and alert rules."""

from __future__ import annotations

from typing import Any

from ..constants import (
    COMPONENT_APPLICATION_CONTROLLER,
    COMPONENT_REPO_SERVER,
    COMPONENT_SERVER,
    PROMETHEUS_RULE_COMPONENT_STATUS,
)
from ..engine import kinds
from ..engine.apply import DesiredResource
from ..models import ArgoCD
from . import common
from .network import METRICS_LABEL

_MONITORED = (
    ("metrics", COMPONENT_APPLICATION_CONTROLLER),
    ("server-metrics", COMPONENT_SERVER),
    ("repo-server", COMPONENT_REPO_SERVER),
)


def _service_monitor(instance: ArgoCD, service_suffix: str, component: str, enabled: bool) -> DesiredResource:
    service = common.name_with_suffix(instance, service_suffix)
    return DesiredResource(
        kinds.SERVICE_MONITOR,
        {
            "apiVersion": "monitoring.coreos.com/v1",
            "kind": "ServiceMonitor",
            "metadata": common.object_meta(instance, service, component=component, extra_labels=METRICS_LABEL),
            "spec": {
                "selector": {"matchLabels": common.selector_labels(service)},
                "endpoints": [{"port": "metrics"}],
            },
        },
        enabled=enabled,
    )


def _component_status_rule(instance: ArgoCD, enabled: bool) -> DesiredResource:
    rules: list[dict[str, Any]] = []
    for suffix, component, kind in (
        ("application-controller", COMPONENT_APPLICATION_CONTROLLER, "statefulset"),
        ("server", COMPONENT_SERVER, "deployment"),
        ("repo-server", COMPONENT_REPO_SERVER, "deployment"),
    ):
        workload = common.name_with_suffix(instance, suffix)
        rules.append(
            {
                "alert": f"{component.title().replace('-', '')}NotReady",
                "annotations": {
                    "message": f"{component} {workload} in namespace {instance.namespace} is not ready",
                },
                "expr": (
                    f'kube_{kind}_status_replicas{{{kind}="{workload}", namespace="{instance.namespace}"}} != '
                    f'kube_{kind}_status_ready_replicas{{{kind}="{workload}", namespace="{instance.namespace}"}}'
                ),
                "for": "1m",
                "labels": {"severity": "critical"},
            }
        )
    return DesiredResource(
        kinds.PROMETHEUS_RULE,
        {
            "apiVersion": "monitoring.coreos.com/v1",
            "kind": "PrometheusRule",
            "metadata": common.object_meta(instance, PROMETHEUS_RULE_COMPONENT_STATUS),
            "spec": {"groups": [{"name": "ArgoCDComponentStatus", "rules": rules}]},
        },
        enabled=enabled,
    )


def build_monitoring(instance: ArgoCD) -> list[DesiredResource]:
    """Prometheus instance and service monitors follow spec.prometheus.enabled,
    the component alert rule follows spec.monitoring.enabled.
    """
    prometheus_enabled = bool(instance.spec_section("prometheus").get("enabled"))
    alerts_enabled = bool(instance.spec_section("monitoring").get("enabled"))
    resources = [
        DesiredResource(
            kinds.PROMETHEUS,
            {
                "apiVersion": "monitoring.coreos.com/v1",
                "kind": "Prometheus",
                "metadata": common.object_meta(instance, instance.name),
                "spec": {
                    "replicas": 1,
                    "serviceAccountName": "prometheus-k8s",
                    "serviceMonitorSelector": {"matchLabels": METRICS_LABEL},
                },
            },
            enabled=prometheus_enabled,
        )
    ]
    resources.extend(
        _service_monitor(instance, suffix, component, prometheus_enabled) for suffix, component in _MONITORED
    )
    resources.append(_component_status_rule(instance, alerts_enabled))
    return resources
