"""Argo Rollouts controller resources."""

from __future__ import annotations

from typing import Any

from ..constants import (
    COMPONENT_ROLLOUTS,
    DEFAULT_ROLLOUTS_IMAGE,
    DEFAULT_ROLLOUTS_VERSION,
    PORT_ROLLOUTS_METRICS,
    SECRET_ROLLOUTS_NOTIFICATION,
)
from ..engine import kinds
from ..engine.apply import DesiredResource
from ..models import ArgoCD
from ..utils.images import resolve_image
from . import common

PORT_ROLLOUTS_HEALTHZ = 8080
ROLLOUTS_COMPONENT_LABEL = "rollouts-controller"

_READ = ["get", "list", "watch"]
_WRITE = ["create", "get", "list", "watch", "update", "patch", "delete"]

ROLLOUTS_RULES: list[dict[str, Any]] = [
    {
        "apiGroups": ["argoproj.io"],
        "resources": ["rollouts", "rollouts/status", "rollouts/finalizers"],
        "verbs": ["get", "list", "watch", "update", "patch"],
    },
    {
        "apiGroups": ["argoproj.io"],
        "resources": ["analysisruns", "analysisruns/finalizers", "experiments", "experiments/finalizers"],
        "verbs": _WRITE,
    },
    {"apiGroups": ["argoproj.io"], "resources": ["analysistemplates", "clusteranalysistemplates"], "verbs": _READ},
    {"apiGroups": ["apps"], "resources": ["replicasets"], "verbs": _WRITE},
    {"apiGroups": ["", "apps"], "resources": ["deployments", "podtemplates"], "verbs": _READ},
    {"apiGroups": [""], "resources": ["services"], "verbs": ["get", "list", "watch", "patch", "create", "delete"]},
    {"apiGroups": ["coordination.k8s.io"], "resources": ["leases"], "verbs": ["create", "get", "update"]},
    {"apiGroups": [""], "resources": ["secrets", "configmaps"], "verbs": _READ},
    {"apiGroups": [""], "resources": ["pods"], "verbs": ["list", "update", "watch"]},
    {"apiGroups": [""], "resources": ["pods/eviction"], "verbs": ["create"]},
    {"apiGroups": [""], "resources": ["events"], "verbs": ["create", "update", "patch"]},
    {"apiGroups": ["networking.k8s.io", "extensions"], "resources": ["ingresses"], "verbs": ["create", "get", "list", "watch", "patch"]},
    {"apiGroups": ["batch"], "resources": ["jobs"], "verbs": _WRITE},
]


def rollouts_enabled(instance: ArgoCD) -> bool:
    return bool(instance.spec_section("rollouts").get("enabled"))


def rollouts_image(instance: ArgoCD) -> str:
    settings = instance.spec_section("rollouts")
    return resolve_image(
        "rollouts",
        settings.get("image"),
        settings.get("version"),
        DEFAULT_ROLLOUTS_IMAGE,
        DEFAULT_ROLLOUTS_VERSION,
    )


def _container(instance: ArgoCD) -> dict[str, Any]:
    settings = instance.spec_section("rollouts")
    container: dict[str, Any] = {
        "name": COMPONENT_ROLLOUTS,
        "image": rollouts_image(instance),
        "imagePullPolicy": "Always",
        "ports": [
            common.container_port("healthz", PORT_ROLLOUTS_HEALTHZ),
            common.container_port("metrics", PORT_ROLLOUTS_METRICS),
        ],
        "livenessProbe": {
            "httpGet": {"path": "/healthz", "port": "healthz"},
            "initialDelaySeconds": 30,
            "periodSeconds": 20,
            "timeoutSeconds": 10,
            "failureThreshold": 3,
        },
        "readinessProbe": {
            "httpGet": {"path": "/metrics", "port": "metrics"},
            "initialDelaySeconds": 10,
            "periodSeconds": 5,
            "timeoutSeconds": 4,
            "failureThreshold": 5,
        },
        "resources": common.resources(settings),
        "securityContext": common.restricted_security_context(),
    }
    if settings.get("env"):
        container["env"] = list(settings["env"])
    if settings.get("extraCommandArgs"):
        container["command"] = list(settings["extraCommandArgs"])
    return container


def build_rollouts(instance: ArgoCD) -> list[DesiredResource]:
    """Rollouts controller set; every object, the metrics service included,
    is deleted when spec.rollouts.enabled is false.
    """
    enabled = rollouts_enabled(instance)
    name = COMPONENT_ROLLOUTS
    return [
        DesiredResource(
            kinds.SERVICE_ACCOUNT,
            common.service_account(instance, name, ROLLOUTS_COMPONENT_LABEL),
            enabled=enabled,
        ),
        DesiredResource(
            kinds.ROLE,
            common.role(instance, name, ROLLOUTS_RULES, component=ROLLOUTS_COMPONENT_LABEL),
            enabled=enabled,
        ),
        DesiredResource(
            kinds.ROLE_BINDING,
            common.role_binding(
                instance,
                name,
                common.role_ref(name),
                [common.service_account_subject(name, instance.namespace)],
                component=ROLLOUTS_COMPONENT_LABEL,
            ),
            enabled=enabled,
        ),
        DesiredResource(
            kinds.SECRET,
            common.secret(instance, SECRET_ROLLOUTS_NOTIFICATION, component=ROLLOUTS_COMPONENT_LABEL),
            enabled=enabled,
        ),
        DesiredResource(
            kinds.DEPLOYMENT,
            common.deployment(
                instance,
                name,
                [_container(instance)],
                component=ROLLOUTS_COMPONENT_LABEL,
                service_account=name,
            ),
            enabled=enabled,
        ),
        DesiredResource(
            kinds.SERVICE,
            common.service(
                instance,
                f"{name}-metrics",
                [common.service_port("metrics", PORT_ROLLOUTS_METRICS, "metrics")],
                component=ROLLOUTS_COMPONENT_LABEL,
                selector_name=name,
            ),
            enabled=enabled,
        ),
    ]
