"""Services, ingresses and routes exposing the core components."""

from __future__ import annotations

from typing import Any

from ..constants import (
    COMPONENT_APPLICATION_CONTROLLER,
    COMPONENT_REDIS,
    COMPONENT_REPO_SERVER,
    COMPONENT_SERVER,
    PORT_CONTROLLER_METRICS,
    PORT_REDIS,
    PORT_REPO_SERVER,
    PORT_REPO_SERVER_METRICS,
    PORT_SERVER_HTTP,
    PORT_SERVER_METRICS,
)
from ..engine import kinds
from ..engine.apply import DesiredResource
from ..models import ArgoCD
from . import common
from .configmaps import server_host

METRICS_LABEL = {"app.kubernetes.io/metrics": "true"}


def server_name(instance: ArgoCD) -> str:
    return common.name_with_suffix(instance, "server")


def build_services(instance: ArgoCD) -> list[DesiredResource]:
    server = server_name(instance)
    repo = common.name_with_suffix(instance, "repo-server")
    redis = common.name_with_suffix(instance, "redis")
    controller = common.name_with_suffix(instance, "application-controller")
    server_spec = instance.spec_section("server", "service")
    return [
        DesiredResource(
            kinds.SERVICE,
            common.service(
                instance,
                server,
                [
                    common.service_port("http", 80, PORT_SERVER_HTTP),
                    common.service_port("https", 443, PORT_SERVER_HTTP),
                ],
                component=COMPONENT_SERVER,
                service_type=server_spec.get("type") or "ClusterIP",
            ),
        ),
        DesiredResource(
            kinds.SERVICE,
            common.service(
                instance,
                common.name_with_suffix(instance, "server-metrics"),
                [common.service_port("metrics", PORT_SERVER_METRICS)],
                component=COMPONENT_SERVER,
                selector_name=server,
                extra_labels=METRICS_LABEL,
            ),
        ),
        DesiredResource(
            kinds.SERVICE,
            common.service(
                instance,
                repo,
                [
                    common.service_port("server", PORT_REPO_SERVER),
                    common.service_port("metrics", PORT_REPO_SERVER_METRICS),
                ],
                component=COMPONENT_REPO_SERVER,
                extra_labels=METRICS_LABEL,
            ),
        ),
        DesiredResource(
            kinds.SERVICE,
            common.service(
                instance,
                redis,
                [common.service_port("tcp-redis", PORT_REDIS)],
                component=COMPONENT_REDIS,
            ),
        ),
        DesiredResource(
            kinds.SERVICE,
            common.service(
                instance,
                common.name_with_suffix(instance, "metrics"),
                [common.service_port("metrics", PORT_CONTROLLER_METRICS)],
                component=COMPONENT_APPLICATION_CONTROLLER,
                selector_name=controller,
                extra_labels=METRICS_LABEL,
            ),
        ),
    ]


def build_ingresses(instance: ArgoCD) -> list[DesiredResource]:
    """Server ingress and gRPC ingress, each deleted when not enabled."""
    server = server_name(instance)
    host = server_host(instance)
    ingress = instance.spec_section("server", "ingress")
    grpc = instance.spec_section("server", "grpc", "ingress")
    grpc_host = instance.spec_section("server", "grpc").get("host") or f"{server}-grpc"
    return [
        DesiredResource(
            kinds.INGRESS,
            common.ingress_manifest(
                instance,
                server,
                ingress,
                host,
                server,
                "http",
                {
                    "nginx.ingress.kubernetes.io/force-ssl-redirect": "true",
                    "nginx.ingress.kubernetes.io/ssl-passthrough": "true",
                },
                component=COMPONENT_SERVER,
            ),
            enabled=bool(ingress.get("enabled")),
        ),
        DesiredResource(
            kinds.INGRESS,
            common.ingress_manifest(
                instance,
                f"{server}-grpc",
                grpc,
                grpc_host,
                server,
                "https",
                {"nginx.ingress.kubernetes.io/backend-protocol": "GRPC"},
                component=COMPONENT_SERVER,
            ),
            enabled=bool(grpc.get("enabled")),
        ),
    ]


def build_route(instance: ArgoCD) -> DesiredResource:
    """OpenShift route for the server; only built when the route API is served."""
    server = server_name(instance)
    route = instance.spec_section("server", "route")
    insecure = bool(instance.spec_section("server").get("insecure"))
    tls: dict[str, Any] = route.get("tls") or (
        {"termination": "edge", "insecureEdgeTerminationPolicy": "Redirect"}
        if insecure
        else {"termination": "passthrough", "insecureEdgeTerminationPolicy": "Redirect"}
    )
    spec: dict[str, Any] = {
        "to": {"kind": "Service", "name": server, "weight": 100},
        "port": {"targetPort": "http" if insecure else "https"},
        "tls": tls,
        "wildcardPolicy": "None",
    }
    host = instance.spec_section("server").get("host")
    if host:
        spec["host"] = host
    return DesiredResource(
        kinds.ROUTE,
        {
            "apiVersion": "route.openshift.io/v1",
            "kind": "Route",
            "metadata": common.object_meta(
                instance, server, component=COMPONENT_SERVER, annotations=route.get("annotations")
            ),
            "spec": spec,
        },
        enabled=bool(route.get("enabled")),
    )
