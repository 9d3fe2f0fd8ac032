"""Notifications controller resources."""

from __future__ import annotations

from typing import Any

from ..constants import (
    COMPONENT_NOTIFICATIONS,
    CONFIGMAP_NOTIFICATIONS,
    PORT_REPO_SERVER,
    SECRET_NOTIFICATIONS,
)
from ..engine import kinds
from ..engine.apply import DesiredResource
from ..models import ArgoCD
from . import common
from .workloads import argocd_image

NOTIFICATIONS_RULES: list[dict[str, Any]] = [
    {"apiGroups": ["argoproj.io"], "resources": ["applications", "appprojects"], "verbs": ["get", "list", "watch", "update", "patch"]},
    {"apiGroups": [""], "resources": ["configmaps", "secrets"], "verbs": ["list", "watch"]},
    {
        "apiGroups": [""],
        "resourceNames": [CONFIGMAP_NOTIFICATIONS],
        "resources": ["configmaps"],
        "verbs": ["get"],
    },
    {
        "apiGroups": [""],
        "resourceNames": [SECRET_NOTIFICATIONS],
        "resources": ["secrets"],
        "verbs": ["get"],
    },
]


def notifications_enabled(instance: ArgoCD) -> bool:
    return bool(instance.spec_section("notifications").get("enabled"))


def build_notifications(instance: ArgoCD) -> list[DesiredResource]:
    """Notifications controller set, removed when spec.notifications.enabled is false.

    The config map and secret are created empty for users to fill; their
    contents are not asserted.
    """
    enabled = notifications_enabled(instance)
    settings = instance.spec_section("notifications")
    name = common.name_with_suffix(instance, "notifications-controller")
    container = {
        "name": COMPONENT_NOTIFICATIONS,
        "image": argocd_image(instance, settings),
        "command": [
            "argocd-notifications",
            "--loglevel",
            settings.get("logLevel") or "info",
            "--argocd-repo-server",
            f"{common.name_with_suffix(instance, 'repo-server')}.{instance.namespace}.svc.cluster.local:{PORT_REPO_SERVER}",
        ],
        "resources": common.resources(settings),
        "securityContext": common.restricted_security_context(),
        "workingDir": "/app",
    }
    return [
        DesiredResource(
            kinds.SERVICE_ACCOUNT,
            common.service_account(instance, name, COMPONENT_NOTIFICATIONS),
            enabled=enabled,
        ),
        DesiredResource(
            kinds.ROLE,
            common.role(instance, name, NOTIFICATIONS_RULES, component=COMPONENT_NOTIFICATIONS),
            enabled=enabled,
        ),
        DesiredResource(
            kinds.ROLE_BINDING,
            common.role_binding(
                instance,
                name,
                common.role_ref(name),
                [common.service_account_subject(name, instance.namespace)],
                component=COMPONENT_NOTIFICATIONS,
            ),
            enabled=enabled,
        ),
        DesiredResource(
            kinds.CONFIG_MAP,
            common.config_map(instance, CONFIGMAP_NOTIFICATIONS, None, COMPONENT_NOTIFICATIONS),
            enabled=enabled,
        ),
        DesiredResource(
            kinds.SECRET,
            common.secret(instance, SECRET_NOTIFICATIONS, component=COMPONENT_NOTIFICATIONS),
            enabled=enabled,
        ),
        DesiredResource(
            kinds.DEPLOYMENT,
            common.deployment(
                instance,
                name,
                [container],
                component=COMPONENT_NOTIFICATIONS,
                service_account=name,
            ),
            enabled=enabled,
        ),
    ]
