"""Shared pieces for desired-state builders.

Builders are pure: they read the instance (and whatever the caller passes
in) and return manifests. They never talk to the cluster.
"""

from __future__ import annotations

from typing import Any

from ..constants import (
    DEFAULT_NODE_SELECTOR,
    LABEL_COMPONENT,
    LABEL_MANAGED_BY,
    LABEL_NAME,
    LABEL_PART_OF,
    LABEL_PART_OF_VALUE,
    LABEL_RBAC_SCOPE,
)
from ..models import ArgoCD


def name_with_suffix(instance: ArgoCD, suffix: str) -> str:
    """Return "<instance>-<suffix>", the naming scheme of every managed object."""
    return f"{instance.name}-{suffix}"


def labels(instance: ArgoCD, name: str, component: str | None = None) -> dict[str, str]:
    result = {
        LABEL_NAME: name,
        LABEL_PART_OF: LABEL_PART_OF_VALUE,
        LABEL_MANAGED_BY: instance.name,
    }
    if component:
        result[LABEL_COMPONENT] = component
    return result


def object_meta(
    instance: ArgoCD,
    name: str,
    namespace: str | None = None,
    component: str | None = None,
    extra_labels: dict[str, str] | None = None,
    annotations: dict[str, str] | None = None,
    namespaced: bool = True,
) -> dict[str, Any]:
    """Build metadata for a managed object.

    Args:
        instance: Owning instance
        name: Object name
        namespace: Target namespace, defaults to the instance namespace
        component: Value of the component label
        extra_labels: Labels added on top of the common set
        annotations: Annotations to set
        namespaced: False for cluster-scoped kinds

    Returns:
        Metadata dict
    """
    meta: dict[str, Any] = {"name": name, "labels": labels(instance, name, component)}
    if extra_labels:
        meta["labels"].update(extra_labels)
    if namespaced:
        meta["namespace"] = namespace or instance.namespace
    if annotations:
        meta["annotations"] = dict(annotations)
    return meta


def rbac_scope_labels(scope: str) -> dict[str, str]:
    return {LABEL_RBAC_SCOPE: scope}


def selector_labels(name: str) -> dict[str, str]:
    return {LABEL_NAME: name}


def resources(*sections: dict[str, Any]) -> dict[str, Any]:
    """First non-empty resources block among the given spec sections."""
    for section in sections:
        value = (section or {}).get("resources")
        if value:
            return dict(value)
    return {}


def node_placement(instance: ArgoCD) -> dict[str, Any]:
    """Pod-level node selector and tolerations.

    The default linux selector is always present; spec.nodePlacement adds to it.
    """
    placement = instance.spec_section("nodePlacement")
    selector = dict(DEFAULT_NODE_SELECTOR)
    selector.update(placement.get("nodeSelector") or {})
    result: dict[str, Any] = {"nodeSelector": selector}
    tolerations = placement.get("tolerations")
    if tolerations:
        result["tolerations"] = list(tolerations)
    return result


def restricted_security_context() -> dict[str, Any]:
    return {
        "allowPrivilegeEscalation": False,
        "capabilities": {"drop": ["ALL"]},
        "readOnlyRootFilesystem": True,
        "runAsNonRoot": True,
    }


def container_port(name: str, port: int) -> dict[str, Any]:
    return {"name": name, "containerPort": port, "protocol": "TCP"}


def service_port(name: str, port: int, target: int | str | None = None) -> dict[str, Any]:
    return {"name": name, "port": port, "protocol": "TCP", "targetPort": target if target is not None else port}


def pod_template(
    instance: ArgoCD,
    name: str,
    containers: list[dict[str, Any]],
    component: str | None = None,
    service_account: str | None = None,
    volumes: list[dict[str, Any]] | None = None,
    init_containers: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    spec: dict[str, Any] = {"containers": containers, **node_placement(instance)}
    if service_account:
        spec["serviceAccountName"] = service_account
    if volumes:
        spec["volumes"] = volumes
    if init_containers:
        spec["initContainers"] = init_containers
    return {
        "metadata": {"labels": labels(instance, name, component)},
        "spec": spec,
    }


def deployment(
    instance: ArgoCD,
    name: str,
    containers: list[dict[str, Any]],
    component: str | None = None,
    replicas: int | None = 1,
    service_account: str | None = None,
    volumes: list[dict[str, Any]] | None = None,
    init_containers: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Deployment manifest; replicas=None leaves scaling to an autoscaler."""
    spec: dict[str, Any] = {
        "selector": {"matchLabels": selector_labels(name)},
        "template": pod_template(
            instance,
            name,
            containers,
            component=component,
            service_account=service_account,
            volumes=volumes,
            init_containers=init_containers,
        ),
    }
    if replicas is not None:
        spec["replicas"] = replicas
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": object_meta(instance, name, component=component),
        "spec": spec,
    }


def deployment_config(
    instance: ArgoCD,
    name: str,
    containers: list[dict[str, Any]],
    component: str | None = None,
) -> dict[str, Any]:
    """OpenShift DeploymentConfig manifest, redeployed on config change."""
    return {
        "apiVersion": "apps.openshift.io/v1",
        "kind": "DeploymentConfig",
        "metadata": object_meta(instance, name, component=component),
        "spec": {
            "replicas": 1,
            "selector": selector_labels(name),
            "strategy": {"type": "Recreate"},
            "triggers": [{"type": "ConfigChange"}],
            "template": pod_template(instance, name, containers, component=component),
        },
    }


def service(
    instance: ArgoCD,
    name: str,
    ports: list[dict[str, Any]],
    component: str | None = None,
    selector_name: str | None = None,
    service_type: str | None = None,
    annotations: dict[str, str] | None = None,
    extra_labels: dict[str, str] | None = None,
) -> dict[str, Any]:
    spec: dict[str, Any] = {
        "selector": selector_labels(selector_name or name),
        "ports": ports,
    }
    if service_type:
        spec["type"] = service_type
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": object_meta(
            instance,
            name,
            component=component,
            annotations=annotations,
            extra_labels=extra_labels,
        ),
        "spec": spec,
    }


def service_account(instance: ArgoCD, name: str, component: str | None = None) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": object_meta(instance, name, component=component),
    }


def role(
    instance: ArgoCD,
    name: str,
    rules: list[dict[str, Any]],
    namespace: str | None = None,
    component: str | None = None,
    scope: str | None = None,
) -> dict[str, Any]:
    return {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "Role",
        "metadata": object_meta(
            instance,
            name,
            namespace=namespace,
            component=component,
            extra_labels=rbac_scope_labels(scope) if scope else None,
        ),
        "rules": rules,
    }


def role_ref(name: str, kind: str = "Role") -> dict[str, str]:
    return {"apiGroup": "rbac.authorization.k8s.io", "kind": kind, "name": name}


def service_account_subject(name: str, namespace: str) -> dict[str, str]:
    return {"kind": "ServiceAccount", "name": name, "namespace": namespace}


def role_binding(
    instance: ArgoCD,
    name: str,
    ref: dict[str, str],
    subjects: list[dict[str, str]],
    namespace: str | None = None,
    component: str | None = None,
    scope: str | None = None,
) -> dict[str, Any]:
    return {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "RoleBinding",
        "metadata": object_meta(
            instance,
            name,
            namespace=namespace,
            component=component,
            extra_labels=rbac_scope_labels(scope) if scope else None,
        ),
        "roleRef": ref,
        "subjects": subjects,
    }


def secret(
    instance: ArgoCD,
    name: str,
    component: str | None = None,
    secret_type: str = "Opaque",
    extra_labels: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Secret shell without data; generated material comes from a data factory."""
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": object_meta(instance, name, component=component, extra_labels=extra_labels),
        "type": secret_type,
    }


def config_map(
    instance: ArgoCD,
    name: str,
    data: dict[str, str] | None,
    component: str | None = None,
) -> dict[str, Any]:
    """ConfigMap manifest; data=None leaves the contents to users."""
    manifest: dict[str, Any] = {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": object_meta(instance, name, component=component),
    }
    if data is not None:
        manifest["data"] = data
    return manifest


def ingress_manifest(
    instance: ArgoCD,
    name: str,
    settings: dict[str, Any],
    host: str,
    backend_service: str,
    backend_port: str,
    default_annotations: dict[str, str],
    component: str | None = None,
) -> dict[str, Any]:
    """Ingress exposing one service on one host.

    Args:
        instance: Owning instance
        name: Ingress name
        settings: Ingress section of the instance spec (ingressClassName, annotations, path, tls)
        host: Host routed to the backend
        backend_service: Service name
        backend_port: Service port name
        default_annotations: Used when the instance sets no annotations
        component: Component label value
    """
    annotations = settings.get("annotations") or default_annotations
    spec: dict[str, Any] = {
        "rules": [
            {
                "host": host,
                "http": {
                    "paths": [
                        {
                            "path": settings.get("path") or "/",
                            "pathType": "ImplementationSpecific",
                            "backend": {
                                "service": {"name": backend_service, "port": {"name": backend_port}},
                            },
                        }
                    ]
                },
            }
        ],
        "tls": settings.get("tls") or [{"hosts": [host], "secretName": "argocd-secret"}],
    }
    if settings.get("ingressClassName"):
        spec["ingressClassName"] = settings["ingressClassName"]
    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "Ingress",
        "metadata": object_meta(instance, name, component=component, annotations=annotations),
        "spec": spec,
    }
