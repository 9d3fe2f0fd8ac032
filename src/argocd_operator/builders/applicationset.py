"""ApplicationSet controller resources."""

from __future__ import annotations

from typing import Any

from ..constants import (
    COMPONENT_APPLICATIONSET,
    CONFIGMAP_APPSET_GITLAB_SCM_TLS,
    PORT_APPSET_METRICS,
    PORT_APPSET_WEBHOOK,
    PORT_REPO_SERVER,
)
from ..engine import kinds
from ..engine.apply import DesiredResource
from ..models import ArgoCD
from . import common
from .workloads import argocd_image

LOG_LEVELS = ("debug", "info", "warn", "error")
SCM_ROOT_CA_PATH = "/app/tls/scm/cert"

APPSET_RULES: list[dict[str, Any]] = [
    {
        "apiGroups": ["argoproj.io"],
        "resources": ["applications", "applicationsets", "applicationsets/finalizers", "applicationsets/status"],
        "verbs": ["create", "delete", "get", "list", "patch", "update", "watch"],
    },
    {"apiGroups": ["argoproj.io"], "resources": ["appprojects"], "verbs": ["get"]},
    {"apiGroups": [""], "resources": ["events"], "verbs": ["create", "get", "list", "patch", "watch"]},
    {"apiGroups": [""], "resources": ["secrets", "configmaps"], "verbs": ["get", "list", "watch"]},
    {"apiGroups": ["apps", "extensions"], "resources": ["deployments"], "verbs": ["get", "list", "watch"]},
    {"apiGroups": ["coordination.k8s.io"], "resources": ["leases"], "verbs": ["create", "delete", "get", "list", "patch", "update", "watch"]},
]


def applicationset_enabled(instance: ArgoCD) -> bool:
    """The ApplicationSet controller runs whenever spec.applicationSet is present."""
    return instance.spec.get("applicationSet") is not None


def _command(instance: ArgoCD, settings: dict[str, Any], scm_root_ca: bool) -> list[str]:
    log_level = settings.get("logLevel") or "info"
    if log_level not in LOG_LEVELS:
        log_level = "info"
    cmd = [
        "entrypoint.sh",
        "argocd-applicationset-controller",
        "--argocd-repo-server",
        f"{common.name_with_suffix(instance, 'repo-server')}.{instance.namespace}.svc.cluster.local:{PORT_REPO_SERVER}",
        "--loglevel",
        log_level,
    ]
    if scm_root_ca:
        cmd += ["--scm-root-ca-path", SCM_ROOT_CA_PATH]
    # User arguments are appended unless they repeat a flag already set
    extra = list(settings.get("extraCommandArgs") or [])
    if not any(arg in cmd for arg in extra if arg.startswith("--")):
        cmd.extend(extra)
    return cmd


def build_applicationset(instance: ArgoCD, scm_root_ca: bool = False) -> list[DesiredResource]:
    """ApplicationSet controller set, removed when spec.applicationSet is absent.

    Args:
        instance: Owning instance
        scm_root_ca: Whether the GitLab SCM root CA config map exists in the
            instance namespace; when it does it is mounted and passed to the
            controller
    """
    enabled = applicationset_enabled(instance)
    settings = instance.spec_section("applicationSet")
    name = common.name_with_suffix(instance, "applicationset-controller")
    container = {
        "name": COMPONENT_APPLICATIONSET,
        "image": argocd_image(instance, settings),
        "command": _command(instance, settings, scm_root_ca),
        "env": [{"name": "NAMESPACE", "valueFrom": {"fieldRef": {"fieldPath": "metadata.namespace"}}}],
        "ports": [
            common.container_port("webhook", PORT_APPSET_WEBHOOK),
            common.container_port("metrics", PORT_APPSET_METRICS),
        ],
        "resources": common.resources(settings),
        "securityContext": common.restricted_security_context(),
    }
    volumes = None
    if scm_root_ca:
        container["volumeMounts"] = [{"name": "appset-gitlab-scm-tls-cert", "mountPath": "/app/tls/scm"}]
        volumes = [
            {"name": "appset-gitlab-scm-tls-cert", "configMap": {"name": CONFIGMAP_APPSET_GITLAB_SCM_TLS}},
        ]
    return [
        DesiredResource(
            kinds.SERVICE_ACCOUNT,
            common.service_account(instance, name, COMPONENT_APPLICATIONSET),
            enabled=enabled,
        ),
        DesiredResource(
            kinds.ROLE,
            common.role(instance, name, APPSET_RULES, component=COMPONENT_APPLICATIONSET),
            enabled=enabled,
        ),
        DesiredResource(
            kinds.ROLE_BINDING,
            common.role_binding(
                instance,
                name,
                common.role_ref(name),
                [common.service_account_subject(name, instance.namespace)],
                component=COMPONENT_APPLICATIONSET,
            ),
            enabled=enabled,
        ),
        DesiredResource(
            kinds.DEPLOYMENT,
            common.deployment(
                instance,
                name,
                [container],
                component=COMPONENT_APPLICATIONSET,
                service_account=name,
                volumes=volumes,
            ),
            enabled=enabled,
        ),
        DesiredResource(
            kinds.SERVICE,
            common.service(
                instance,
                name,
                [
                    common.service_port("webhook", PORT_APPSET_WEBHOOK),
                    common.service_port("metrics", PORT_APPSET_METRICS),
                ],
                component=COMPONENT_APPLICATIONSET,
            ),
            enabled=enabled,
        ),
    ]
