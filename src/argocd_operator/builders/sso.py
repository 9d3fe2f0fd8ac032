"""Resource sets of the two authentication providers."""

from __future__ import annotations

import base64
from typing import Any

from ..constants import (
    COMPONENT_DEX,
    COMPONENT_KEYCLOAK,
    DEFAULT_ARGOCD_IMAGE,
    DEFAULT_ARGOCD_VERSION,
    DEFAULT_DEX_IMAGE,
    DEFAULT_DEX_VERSION,
    DEFAULT_KEYCLOAK_IMAGE,
    DEFAULT_KEYCLOAK_VERSION,
    PORT_DEX_GRPC,
    PORT_DEX_HTTP,
    PORT_KEYCLOAK,
    SECRET_KEYCLOAK,
)
from ..engine import kinds
from ..engine.apply import DesiredResource
from ..models import ArgoCD
from ..utils import tls
from ..utils.images import resolve_image
from . import common

PORT_DEX_METRICS = 5558

DEX_RULES: list[dict[str, Any]] = [
    {"apiGroups": [""], "resources": ["secrets", "configmaps"], "verbs": ["get", "list", "watch"]},
]


def dex_settings(instance: ArgoCD) -> dict[str, Any]:
    """Dex settings from spec.sso.dex, falling back to the deprecated spec.dex."""
    return instance.spec_section("sso", "dex") or instance.spec_section("dex")


def keycloak_settings(instance: ArgoCD) -> dict[str, Any]:
    return instance.spec_section("sso", "keycloak")


def dex_resource_name(instance: ArgoCD) -> str:
    return common.name_with_suffix(instance, "dex-server")


def keycloak_host(instance: ArgoCD) -> str:
    return keycloak_settings(instance).get("host") or f"{COMPONENT_KEYCLOAK}-{instance.namespace}"


def keycloak_verify_tls(instance: ArgoCD) -> bool:
    """spec.sso.keycloak.verifyTLS wins over spec.sso.verifyTLS; default true."""
    for section in (keycloak_settings(instance), instance.spec_section("sso")):
        if section.get("verifyTLS") is not None:
            return bool(section["verifyTLS"])
    return True


def dex_image(instance: ArgoCD) -> str:
    settings = dex_settings(instance)
    return resolve_image("dex", settings.get("image"), settings.get("version"), DEFAULT_DEX_IMAGE, DEFAULT_DEX_VERSION)


def keycloak_image(instance: ArgoCD) -> str:
    settings = keycloak_settings(instance)
    sso = instance.spec_section("sso")
    return resolve_image(
        "keycloak",
        settings.get("image") or sso.get("image"),
        settings.get("version") or sso.get("version"),
        DEFAULT_KEYCLOAK_IMAGE,
        DEFAULT_KEYCLOAK_VERSION,
    )


def build_dex_resources(instance: ArgoCD, enabled: bool) -> list[DesiredResource]:
    """Dex service account, role, binding, deployment and service.

    The deployment is listed before the service so its existence marks Dex
    as the active provider as early as possible.
    """
    name = dex_resource_name(instance)
    settings = dex_settings(instance)
    argocd_image = resolve_image(
        "argocd",
        instance.spec.get("image"),
        instance.spec.get("version"),
        DEFAULT_ARGOCD_IMAGE,
        DEFAULT_ARGOCD_VERSION,
    )
    init = {
        "name": "copyutil",
        "image": argocd_image,
        "command": ["cp", "-n", "/usr/local/bin/argocd", "/shared/argocd-dex"],
        "volumeMounts": [{"name": "static-files", "mountPath": "/shared"}],
        "securityContext": common.restricted_security_context(),
    }
    container = {
        "name": "dex",
        "image": dex_image(instance),
        "command": ["/shared/argocd-dex", "rundex"],
        "ports": [
            common.container_port("http", PORT_DEX_HTTP),
            common.container_port("grpc", PORT_DEX_GRPC),
            common.container_port("metrics", PORT_DEX_METRICS),
        ],
        "resources": common.resources(settings),
        "volumeMounts": [{"name": "static-files", "mountPath": "/shared"}],
        "securityContext": common.restricted_security_context(),
    }
    return [
        DesiredResource(kinds.SERVICE_ACCOUNT, common.service_account(instance, name, COMPONENT_DEX), enabled=enabled),
        DesiredResource(
            kinds.ROLE,
            common.role(instance, name, DEX_RULES, component=COMPONENT_DEX),
            enabled=enabled,
        ),
        DesiredResource(
            kinds.ROLE_BINDING,
            common.role_binding(
                instance,
                name,
                common.role_ref(name),
                [common.service_account_subject(name, instance.namespace)],
                component=COMPONENT_DEX,
            ),
            enabled=enabled,
        ),
        DesiredResource(
            kinds.DEPLOYMENT,
            common.deployment(
                instance,
                name,
                [container],
                component=COMPONENT_DEX,
                service_account=name,
                volumes=[{"name": "static-files", "emptyDir": {}}],
                init_containers=[init],
            ),
            enabled=enabled,
        ),
        DesiredResource(
            kinds.SERVICE,
            common.service(
                instance,
                name,
                [common.service_port("http", PORT_DEX_HTTP), common.service_port("grpc", PORT_DEX_GRPC)],
                component=COMPONENT_DEX,
            ),
            enabled=enabled,
        ),
    ]


def _keycloak_credentials() -> dict[str, Any]:
    return {
        "data": {
            "SSO_USERNAME": base64.b64encode(b"admin").decode(),
            "SSO_PASSWORD": base64.b64encode(tls.generate_password().encode()).decode(),
        }
    }


def build_keycloak_resources(
    instance: ArgoCD, enabled: bool, route_available: bool, template_available: bool = False
) -> list[DesiredResource]:
    """Keycloak admin secret, workload, service and its ingress or route.

    Both workload kinds and both exposure objects (Route and Ingress) are
    emitted, and only the ones matching the cluster are enabled, so objects
    left over from an earlier probe result are removed. Switching away from
    Keycloak removes all of them. The admin secret is generated on create and
    never rewritten.
    """
    name = COMPONENT_KEYCLOAK
    settings = keycloak_settings(instance)
    host = keycloak_host(instance)
    secret_ref = {"name": SECRET_KEYCLOAK}
    container = {
        "name": name,
        "image": keycloak_image(instance),
        "args": ["start-dev", "--http-relative-path=/auth", "--proxy=edge"],
        "env": [
            {"name": "KEYCLOAK_ADMIN", "valueFrom": {"secretKeyRef": {**secret_ref, "key": "SSO_USERNAME"}}},
            {"name": "KEYCLOAK_ADMIN_PASSWORD", "valueFrom": {"secretKeyRef": {**secret_ref, "key": "SSO_PASSWORD"}}},
            {"name": "KC_HOSTNAME_STRICT_HTTPS", "value": str(keycloak_verify_tls(instance)).lower()},
        ],
        "ports": [common.container_port("http", PORT_KEYCLOAK)],
        "readinessProbe": {
            "httpGet": {"path": "/auth/realms/master", "port": PORT_KEYCLOAK},
            "initialDelaySeconds": 30,
            "periodSeconds": 10,
        },
        "resources": common.resources(settings, instance.spec_section("sso")),
    }
    resources = [
        DesiredResource(
            kinds.SECRET,
            common.secret(instance, SECRET_KEYCLOAK, component=COMPONENT_KEYCLOAK),
            enabled=enabled,
            data_factory=_keycloak_credentials,
        ),
        DesiredResource(
            kinds.DEPLOYMENT,
            common.deployment(instance, name, [container], component=COMPONENT_KEYCLOAK),
            enabled=enabled and not template_available,
        ),
        DesiredResource(
            kinds.DEPLOYMENT_CONFIG,
            common.deployment_config(instance, name, [container], component=COMPONENT_KEYCLOAK),
            enabled=enabled and template_available,
        ),
        DesiredResource(
            kinds.SERVICE,
            common.service(instance, name, [common.service_port("http", PORT_KEYCLOAK)], component=COMPONENT_KEYCLOAK),
            enabled=enabled,
        ),
    ]
    resources.append(
        DesiredResource(
            kinds.ROUTE,
            {
                "apiVersion": "route.openshift.io/v1",
                "kind": "Route",
                "metadata": common.object_meta(instance, name, component=COMPONENT_KEYCLOAK),
                "spec": {
                    "host": host,
                    "to": {"kind": "Service", "name": name, "weight": 100},
                    "port": {"targetPort": "http"},
                    "tls": {"termination": "edge", "insecureEdgeTerminationPolicy": "Redirect"},
                    "wildcardPolicy": "None",
                },
            },
            enabled=enabled and route_available,
        )
    )
    resources.append(
        DesiredResource(
            kinds.INGRESS,
            common.ingress_manifest(
                instance,
                name,
                {"tls": [{"hosts": [host]}]},
                host,
                name,
                "http",
                {"nginx.ingress.kubernetes.io/backend-protocol": "HTTP"},
                component=COMPONENT_KEYCLOAK,
            ),
            enabled=enabled and not route_available,
        )
    )
    return resources


def keycloak_issuer(instance: ArgoCD) -> str:
    return f"https://{keycloak_host(instance)}/auth/realms/argocd"
