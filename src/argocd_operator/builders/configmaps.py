"""Configuration maps consumed by the Argo CD components."""

from __future__ import annotations

from typing import Any

import yaml

from ..constants import (
    COMPONENT_SERVER,
    CONFIGMAP_ARGOCD,
    CONFIGMAP_GPG_KEYS,
    CONFIGMAP_RBAC,
    CONFIGMAP_SSH_KNOWN_HOSTS,
    CONFIGMAP_TLS_CERTS,
)
from ..engine import kinds
from ..engine.apply import DesiredResource
from ..models import ArgoCD, ProviderState
from . import common
from .sso import dex_resource_name, dex_settings, keycloak_issuer

DEFAULT_INSTANCE_LABEL_KEY = "app.kubernetes.io/instance"
DEFAULT_RBAC_SCOPES = "[groups]"

DEFAULT_SSH_KNOWN_HOSTS = "\n".join(
    [
        "github.com ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIOMqqnkVzrm0SdG6UOoqKLsabgH5C9okWi0dh2l9GKJl",
        "gitlab.com ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIAfuCHKVTjquxvt6CM6tdG4SLp1Btn/nOeHHE5UOzRdf",
    ]
)


def _flag(value: Any) -> str:
    return "true" if value else "false"


def server_host(instance: ArgoCD) -> str:
    return instance.spec_section("server").get("host") or common.name_with_suffix(instance, "server")


def dex_config(instance: ArgoCD) -> str:
    """dex.config for argocd-cm.

    With openShiftOAuth the OpenShift connector is generated; otherwise the
    user-supplied configuration is passed through.
    """
    settings = dex_settings(instance)
    if not settings.get("openShiftOAuth"):
        return settings.get("config") or ""
    connector: dict[str, Any] = {
        "type": "openshift",
        "id": "openshift",
        "name": "OpenShift",
        "config": {
            "issuer": "https://kubernetes.default.svc",
            "clientID": f"system:serviceaccount:{instance.namespace}:{dex_resource_name(instance)}",
            "clientSecret": "$oidc.dex.clientSecret",
            "redirectURI": f"https://{server_host(instance)}/api/dex/callback",
            "insecureCA": True,
        },
    }
    if settings.get("groups"):
        connector["config"]["groups"] = list(settings["groups"])
    return yaml.safe_dump({"connectors": [connector]}, sort_keys=False)


def oidc_config(instance: ArgoCD) -> str:
    config = {
        "name": "Keycloak",
        "issuer": keycloak_issuer(instance),
        "clientID": "argocd",
        "clientSecret": "$oidc.keycloak.clientSecret",
        "requestedScopes": ["openid", "profile", "email", "groups"],
    }
    return yaml.safe_dump(config, sort_keys=False)


def argocd_cm_data(instance: ArgoCD, provider: ProviderState) -> dict[str, str]:
    spec = instance.spec
    data = {
        "admin.enabled": "true",
        "application.instanceLabelKey": spec.get("applicationInstanceLabelKey") or DEFAULT_INSTANCE_LABEL_KEY,
        "statusbadge.enabled": _flag(spec.get("statusBadgeEnabled")),
        "users.anonymous.enabled": _flag(spec.get("usersAnonymousEnabled")),
        "url": f"https://{server_host(instance)}",
    }
    if provider is ProviderState.DEX:
        data["dex.config"] = dex_config(instance)
    elif provider is ProviderState.KEYCLOAK:
        data["oidc.config"] = oidc_config(instance)
    return data


def rbac_cm_data(instance: ArgoCD) -> dict[str, str]:
    rbac = instance.spec_section("rbac")
    return {
        "policy.csv": rbac.get("policy") or "",
        "policy.default": rbac.get("defaultPolicy") or "",
        "scopes": rbac.get("scopes") or DEFAULT_RBAC_SCOPES,
    }


def ssh_known_hosts_data(instance: ArgoCD) -> dict[str, str]:
    known_hosts = instance.spec_section("initialSSHKnownHosts")
    lines = [] if known_hosts.get("excludedefaulthosts") else [DEFAULT_SSH_KNOWN_HOSTS]
    if known_hosts.get("keys"):
        lines.append(known_hosts["keys"].strip())
    return {"ssh_known_hosts": "\n".join(lines) + "\n"}


def build_config_maps(instance: ArgoCD, provider: ProviderState) -> list[DesiredResource]:
    """argocd-cm, argocd-rbac-cm, known hosts, TLS certs and GPG keys.

    The TLS certificate and GPG key maps are created empty and then left to
    users, so their data is never asserted.
    """
    return [
        DesiredResource(
            kinds.CONFIG_MAP,
            common.config_map(instance, CONFIGMAP_ARGOCD, argocd_cm_data(instance, provider), COMPONENT_SERVER),
        ),
        DesiredResource(
            kinds.CONFIG_MAP,
            common.config_map(instance, CONFIGMAP_RBAC, rbac_cm_data(instance), COMPONENT_SERVER),
        ),
        DesiredResource(
            kinds.CONFIG_MAP,
            common.config_map(instance, CONFIGMAP_SSH_KNOWN_HOSTS, ssh_known_hosts_data(instance)),
        ),
        DesiredResource(kinds.CONFIG_MAP, common.config_map(instance, CONFIGMAP_TLS_CERTS, None)),
        DesiredResource(kinds.CONFIG_MAP, common.config_map(instance, CONFIGMAP_GPG_KEYS, None)),
    ]
