"""Trust material and generated credentials."""

from __future__ import annotations

import base64
from typing import Any, Callable

from ..constants import COMPONENT_SERVER, SECRET_ARGOCD
from ..engine import kinds
from ..engine.apply import DesiredResource
from ..models import ArgoCD
from ..utils import tls
from . import common


def _b64(value: bytes | str) -> str:
    if isinstance(value, str):
        value = value.encode()
    return base64.b64encode(value).decode()


def ca_secret_name(instance: ArgoCD) -> str:
    return common.name_with_suffix(instance, "ca")


def tls_secret_name(instance: ArgoCD) -> str:
    return common.name_with_suffix(instance, "tls")


def cluster_secret_name(instance: ArgoCD) -> str:
    return common.name_with_suffix(instance, "cluster")


def serving_dns_names(instance: ArgoCD) -> list[str]:
    """DNS names the generated serving certificate is valid for."""
    names = []
    for component in ("server", "server-grpc", "repo-server", "redis"):
        svc = common.name_with_suffix(instance, component)
        names.extend([svc, f"{svc}.{instance.namespace}.svc", f"{svc}.{instance.namespace}.svc.cluster.local"])
    host = instance.spec_section("server").get("host")
    if host:
        names.append(host)
    return names


def build_ca_secret(instance: ArgoCD) -> DesiredResource:
    """Self-signed CA, generated once on create."""

    def generate() -> dict[str, Any]:
        cert, key = tls.generate_ca(f"argocd-operator@{instance.namespace}.{instance.name}")
        return {"data": {"ca.crt": _b64(cert), "tls.crt": _b64(cert), "tls.key": _b64(key)}}

    return DesiredResource(
        kinds.SECRET,
        common.secret(instance, ca_secret_name(instance), secret_type="kubernetes.io/tls"),
        data_factory=generate,
    )


def tls_data_factory(instance: ArgoCD, ca_secret: dict[str, Any] | None) -> Callable[[], dict[str, Any]]:
    """Data factory signing a serving certificate with the live CA secret."""

    def generate() -> dict[str, Any]:
        data = (ca_secret or {}).get("data") or {}
        if "tls.crt" not in data or "tls.key" not in data:
            raise ValueError(f"CA secret {ca_secret_name(instance)} has no key material")
        cert, key = tls.generate_signed_cert(
            base64.b64decode(data["tls.crt"]),
            base64.b64decode(data["tls.key"]),
            common.name_with_suffix(instance, "server"),
            serving_dns_names(instance),
        )
        return {"data": {"tls.crt": _b64(cert), "tls.key": _b64(key)}}

    return generate


def build_tls_secret(instance: ArgoCD, ca_secret: dict[str, Any] | None) -> DesiredResource:
    return DesiredResource(
        kinds.SECRET,
        common.secret(instance, tls_secret_name(instance), secret_type="kubernetes.io/tls"),
        data_factory=tls_data_factory(instance, ca_secret),
    )


def build_credential_secrets(instance: ArgoCD) -> list[DesiredResource]:
    """Admin credentials for the instance and the server signing key."""

    def cluster_data() -> dict[str, Any]:
        return {"data": {"admin.password": _b64(tls.generate_password())}}

    def argocd_data() -> dict[str, Any]:
        return {"data": {"server.secretkey": _b64(tls.generate_password(32))}}

    return [
        DesiredResource(
            kinds.SECRET,
            common.secret(instance, cluster_secret_name(instance)),
            data_factory=cluster_data,
        ),
        DesiredResource(
            kinds.SECRET,
            common.secret(instance, SECRET_ARGOCD, component=COMPONENT_SERVER),
            data_factory=argocd_data,
        ),
    ]


def build_trust_stage(instance: ArgoCD, ca_secret: dict[str, Any] | None) -> list[DesiredResource]:
    """TLS and credential secrets; the CA is applied separately and passed in."""
    return [build_tls_secret(instance, ca_secret), *build_credential_secrets(instance)]

