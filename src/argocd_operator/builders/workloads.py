"""Deployments, stateful sets and autoscalers of the core components."""

from __future__ import annotations

from typing import Any

from ..constants import (
    COMPONENT_APPLICATION_CONTROLLER,
    COMPONENT_REDIS,
    COMPONENT_REPO_SERVER,
    COMPONENT_SERVER,
    CONFIGMAP_GPG_KEYS,
    CONFIGMAP_SSH_KNOWN_HOSTS,
    CONFIGMAP_TLS_CERTS,
    DEFAULT_ARGOCD_IMAGE,
    DEFAULT_ARGOCD_VERSION,
    DEFAULT_REDIS_IMAGE,
    DEFAULT_REDIS_VERSION,
    PORT_CONTROLLER_METRICS,
    PORT_DEX_HTTP,
    PORT_REDIS,
    PORT_REPO_SERVER,
    PORT_REPO_SERVER_METRICS,
    PORT_SERVER_HTTP,
    PORT_SERVER_METRICS,
)
from ..engine import kinds
from ..engine.apply import DesiredResource
from ..models import ArgoCD, ProviderState
from ..utils.images import resolve_image
from . import common
from .rbac import service_account_name
from .secrets import tls_secret_name


def argocd_image(instance: ArgoCD, section: dict[str, Any] | None = None) -> str:
    """Argo CD image, optionally overridden by a component section of the instance."""
    section = section or {}
    return resolve_image(
        "argocd",
        section.get("image") or instance.spec.get("image"),
        section.get("version") or instance.spec.get("version"),
        DEFAULT_ARGOCD_IMAGE,
        DEFAULT_ARGOCD_VERSION,
    )


def redis_image(instance: ArgoCD) -> str:
    redis = instance.spec_section("redis")
    return resolve_image("redis", redis.get("image"), redis.get("version"), DEFAULT_REDIS_IMAGE, DEFAULT_REDIS_VERSION)


def _service_address(instance: ArgoCD, suffix: str, port: int) -> str:
    return f"{common.name_with_suffix(instance, suffix)}.{instance.namespace}.svc.cluster.local:{port}"


def _config_volume(name: str, config_map: str) -> dict[str, Any]:
    return {"name": name, "configMap": {"name": config_map}}


def _tls_volume(instance: ArgoCD) -> dict[str, Any]:
    return {"name": "tls", "secret": {"secretName": tls_secret_name(instance), "optional": True}}


def _application_namespaces_args(source_namespaces: list[str]) -> list[str]:
    if not source_namespaces:
        return []
    return ["--application-namespaces", ",".join(source_namespaces)]


def server_autoscale_enabled(instance: ArgoCD) -> bool:
    return bool(instance.spec_section("server", "autoscale").get("enabled"))


def build_server_deployment(
    instance: ArgoCD,
    provider: ProviderState,
    source_namespaces: list[str],
) -> DesiredResource:
    server_spec = instance.spec_section("server")
    name = common.name_with_suffix(instance, "server")
    command = [
        "argocd-server",
        "--staticassets",
        "/shared/app",
        "--repo-server",
        _service_address(instance, "repo-server", PORT_REPO_SERVER),
        "--redis",
        _service_address(instance, "redis", PORT_REDIS),
    ]
    if provider is ProviderState.DEX:
        command += ["--dex-server", f"http://{_service_address(instance, 'dex-server', PORT_DEX_HTTP)}"]
    if server_spec.get("insecure"):
        command.append("--insecure")
    command += _application_namespaces_args(source_namespaces)
    container = {
        "name": COMPONENT_SERVER,
        "image": argocd_image(instance),
        "command": command,
        "ports": [
            common.container_port("http", PORT_SERVER_HTTP),
            common.container_port("metrics", PORT_SERVER_METRICS),
        ],
        "resources": common.resources(server_spec),
        "volumeMounts": [
            {"name": "ssh-known-hosts", "mountPath": "/app/config/ssh"},
            {"name": "tls-certs", "mountPath": "/app/config/tls"},
            {"name": "tls", "mountPath": "/app/config/server/tls"},
        ],
        "readinessProbe": {"httpGet": {"path": "/healthz", "port": PORT_SERVER_HTTP}, "periodSeconds": 30},
        "securityContext": common.restricted_security_context(),
    }
    replicas = None if server_autoscale_enabled(instance) else server_spec.get("replicas", 1)
    return DesiredResource(
        kinds.DEPLOYMENT,
        common.deployment(
            instance,
            name,
            [container],
            component=COMPONENT_SERVER,
            replicas=replicas,
            service_account=service_account_name(instance, COMPONENT_SERVER),
            volumes=[
                _config_volume("ssh-known-hosts", CONFIGMAP_SSH_KNOWN_HOSTS),
                _config_volume("tls-certs", CONFIGMAP_TLS_CERTS),
                _tls_volume(instance),
            ],
        ),
    )


def build_repo_server_deployment(instance: ArgoCD) -> DesiredResource:
    repo_spec = instance.spec_section("repo")
    name = common.name_with_suffix(instance, "repo-server")
    container = {
        "name": COMPONENT_REPO_SERVER,
        "image": argocd_image(instance),
        "command": [
            "uid_entrypoint.sh",
            "argocd-repo-server",
            "--redis",
            _service_address(instance, "redis", PORT_REDIS),
        ],
        "ports": [
            common.container_port("server", PORT_REPO_SERVER),
            common.container_port("metrics", PORT_REPO_SERVER_METRICS),
        ],
        "resources": common.resources(repo_spec),
        "volumeMounts": [
            {"name": "ssh-known-hosts", "mountPath": "/app/config/ssh"},
            {"name": "tls-certs", "mountPath": "/app/config/tls"},
            {"name": "gpg-keys", "mountPath": "/app/config/gpg/source"},
            {"name": "tls", "mountPath": "/app/config/reposerver/tls"},
        ],
        "readinessProbe": {"tcpSocket": {"port": PORT_REPO_SERVER}, "periodSeconds": 10},
    }
    return DesiredResource(
        kinds.DEPLOYMENT,
        common.deployment(
            instance,
            name,
            [container],
            component=COMPONENT_REPO_SERVER,
            replicas=repo_spec.get("replicas", 1),
            volumes=[
                _config_volume("ssh-known-hosts", CONFIGMAP_SSH_KNOWN_HOSTS),
                _config_volume("tls-certs", CONFIGMAP_TLS_CERTS),
                _config_volume("gpg-keys", CONFIGMAP_GPG_KEYS),
                _tls_volume(instance),
            ],
        ),
    )


def build_redis_deployment(instance: ArgoCD) -> DesiredResource:
    name = common.name_with_suffix(instance, "redis")
    container = {
        "name": "redis",
        "image": redis_image(instance),
        "args": ["--save", "", "--appendonly", "no"],
        "ports": [common.container_port("redis", PORT_REDIS)],
        "resources": common.resources(instance.spec_section("redis")),
    }
    return DesiredResource(
        kinds.DEPLOYMENT,
        common.deployment(instance, name, [container], component=COMPONENT_REDIS),
    )


def build_controller_statefulset(instance: ArgoCD, source_namespaces: list[str]) -> DesiredResource:
    name = common.name_with_suffix(instance, "application-controller")
    command = [
        "argocd-application-controller",
        "--operation-processors",
        "10",
        "--status-processors",
        "20",
        "--repo-server",
        _service_address(instance, "repo-server", PORT_REPO_SERVER),
        "--redis",
        _service_address(instance, "redis", PORT_REDIS),
        *_application_namespaces_args(source_namespaces),
    ]
    container = {
        "name": COMPONENT_APPLICATION_CONTROLLER,
        "image": argocd_image(instance),
        "command": command,
        "ports": [common.container_port("metrics", PORT_CONTROLLER_METRICS)],
        "resources": common.resources(instance.spec_section("controller")),
        "readinessProbe": {"httpGet": {"path": "/healthz", "port": PORT_CONTROLLER_METRICS}, "periodSeconds": 10},
    }
    return DesiredResource(
        kinds.STATEFUL_SET,
        {
            "apiVersion": "apps/v1",
            "kind": "StatefulSet",
            "metadata": common.object_meta(instance, name, component=COMPONENT_APPLICATION_CONTROLLER),
            "spec": {
                "replicas": 1,
                "serviceName": name,
                "selector": {"matchLabels": common.selector_labels(name)},
                "template": common.pod_template(
                    instance,
                    name,
                    [container],
                    component=COMPONENT_APPLICATION_CONTROLLER,
                    service_account=service_account_name(instance, COMPONENT_APPLICATION_CONTROLLER),
                ),
            },
        },
    )


def build_server_autoscaler(instance: ArgoCD) -> DesiredResource:
    name = common.name_with_suffix(instance, "server")
    hpa = instance.spec_section("server", "autoscale", "hpa")
    spec: dict[str, Any] = {
        "scaleTargetRef": {"apiVersion": "apps/v1", "kind": "Deployment", "name": name},
        "minReplicas": hpa.get("minReplicas", 1),
        "maxReplicas": hpa.get("maxReplicas", 3),
        "metrics": [
            {
                "type": "Resource",
                "resource": {
                    "name": "cpu",
                    "target": {
                        "type": "Utilization",
                        "averageUtilization": hpa.get("targetCPUUtilizationPercentage", 50),
                    },
                },
            }
        ],
    }
    return DesiredResource(
        kinds.HORIZONTAL_POD_AUTOSCALER,
        {
            "apiVersion": "autoscaling/v2",
            "kind": "HorizontalPodAutoscaler",
            "metadata": common.object_meta(instance, name, component=COMPONENT_SERVER),
            "spec": spec,
        },
        enabled=server_autoscale_enabled(instance),
    )


def build_workloads(
    instance: ArgoCD,
    provider: ProviderState,
    source_namespaces: list[str],
) -> list[DesiredResource]:
    """Deployments first, then the controller stateful set, then autoscalers."""
    return [
        build_server_deployment(instance, provider, source_namespaces),
        build_repo_server_deployment(instance),
        build_redis_deployment(instance),
        build_controller_statefulset(instance, source_namespaces),
        build_server_autoscaler(instance),
    ]
