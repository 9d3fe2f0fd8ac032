"""Service accounts, roles and bindings for the core components."""

from __future__ import annotations

from typing import Any

from ..constants import (
    COMPONENT_APPLICATION_CONTROLLER,
    COMPONENT_SERVER,
    RBAC_SCOPE_INSTANCE,
    RBAC_SCOPE_MANAGED,
    RBAC_SCOPE_SOURCE,
)
from ..engine import kinds
from ..engine.apply import DesiredResource
from ..models import ArgoCD
from . import common

_ALL = ["*"]

CONTROLLER_RULES: list[dict[str, Any]] = [
    {"apiGroups": _ALL, "resources": _ALL, "verbs": _ALL},
]

SERVER_RULES: list[dict[str, Any]] = [
    {"apiGroups": _ALL, "resources": _ALL, "verbs": ["get", "delete", "patch"]},
    {"apiGroups": ["argoproj.io"], "resources": ["applications", "appprojects"], "verbs": _ALL},
    {"apiGroups": [""], "resources": ["events"], "verbs": ["create", "list"]},
]

CONTROLLER_CLUSTER_RULES: list[dict[str, Any]] = [
    {"apiGroups": _ALL, "resources": _ALL, "verbs": _ALL},
    {"nonResourceURLs": _ALL, "verbs": _ALL},
]

SERVER_CLUSTER_RULES: list[dict[str, Any]] = [
    {"apiGroups": _ALL, "resources": _ALL, "verbs": ["get", "delete", "patch"]},
    {"apiGroups": ["argoproj.io"], "resources": ["applications"], "verbs": ["list", "watch"]},
    {"apiGroups": [""], "resources": ["events"], "verbs": ["list"]},
]

SOURCE_NAMESPACE_RULES: list[dict[str, Any]] = [
    {
        "apiGroups": ["argoproj.io"],
        "resources": ["applications"],
        "verbs": ["create", "get", "list", "patch", "update", "watch", "delete"],
    },
    {"apiGroups": [""], "resources": ["events"], "verbs": ["create", "list"]},
]

# Components bound in every managed namespace: (component, namespaced rules, cluster rules)
_WORKLOADS = (
    (COMPONENT_APPLICATION_CONTROLLER, CONTROLLER_RULES, CONTROLLER_CLUSTER_RULES),
    (COMPONENT_SERVER, SERVER_RULES, SERVER_CLUSTER_RULES),
)


def service_account_name(instance: ArgoCD, component: str) -> str:
    return common.name_with_suffix(instance, component)


def cluster_resource_name(instance: ArgoCD, component: str) -> str:
    """Cluster-scoped names embed the namespace so instances never collide."""
    return f"{instance.name}-{instance.namespace}-{component}"


def source_namespace_rbac_name(instance: ArgoCD, namespace: str) -> str:
    return f"{instance.name}_{namespace}"


def build_rbac(
    instance: ArgoCD,
    managed_namespaces: list[str],
    source_namespaces: list[str],
    cluster_rbac_allowed: bool,
    custom_cluster_roles: dict[str, str | None],
) -> list[DesiredResource]:
    """Desired RBAC for the application controller and the server.

    Args:
        instance: Owning instance
        managed_namespaces: Instance namespace plus namespaces delegated to it
        source_namespaces: Namespaces whose Applications the instance may read
        cluster_rbac_allowed: Whether the instance may hold cluster-scoped RBAC
        custom_cluster_roles: Component to ClusterRole override; when set the
            binding references that ClusterRole and the generated Role is removed

    Returns:
        Ordered list: service accounts, roles, role bindings, cluster roles,
        cluster role bindings, source-namespace roles and bindings
    """
    accounts: list[DesiredResource] = []
    roles: list[DesiredResource] = []
    bindings: list[DesiredResource] = []
    cluster_roles: list[DesiredResource] = []
    cluster_bindings: list[DesiredResource] = []

    for component, rules, cluster_rules in _WORKLOADS:
        sa_name = service_account_name(instance, component)
        subject = common.service_account_subject(sa_name, instance.namespace)
        accounts.append(
            DesiredResource(kinds.SERVICE_ACCOUNT, common.service_account(instance, sa_name, component))
        )

        custom_role = custom_cluster_roles.get(component)
        ref = common.role_ref(custom_role, "ClusterRole") if custom_role else common.role_ref(sa_name)
        for namespace in managed_namespaces:
            scope = RBAC_SCOPE_INSTANCE if namespace == instance.namespace else RBAC_SCOPE_MANAGED
            roles.append(
                DesiredResource(
                    kinds.ROLE,
                    common.role(instance, sa_name, rules, namespace=namespace, component=component, scope=scope),
                    enabled=not custom_role,
                )
            )
            bindings.append(
                DesiredResource(
                    kinds.ROLE_BINDING,
                    common.role_binding(
                        instance, sa_name, ref, [subject], namespace=namespace, component=component, scope=scope
                    ),
                )
            )

        cluster_name = cluster_resource_name(instance, component)
        cluster_roles.append(
            DesiredResource(
                kinds.CLUSTER_ROLE,
                {
                    "apiVersion": "rbac.authorization.k8s.io/v1",
                    "kind": "ClusterRole",
                    "metadata": common.object_meta(instance, cluster_name, component=component, namespaced=False),
                    "rules": cluster_rules,
                },
                enabled=cluster_rbac_allowed,
            )
        )
        cluster_bindings.append(
            DesiredResource(
                kinds.CLUSTER_ROLE_BINDING,
                {
                    "apiVersion": "rbac.authorization.k8s.io/v1",
                    "kind": "ClusterRoleBinding",
                    "metadata": common.object_meta(instance, cluster_name, component=component, namespaced=False),
                    "roleRef": common.role_ref(cluster_name, "ClusterRole"),
                    "subjects": [subject],
                },
                enabled=cluster_rbac_allowed,
            )
        )

    source: list[DesiredResource] = []
    server_subject = common.service_account_subject(
        service_account_name(instance, COMPONENT_SERVER), instance.namespace
    )
    for namespace in source_namespaces:
        name = source_namespace_rbac_name(instance, namespace)
        source.append(
            DesiredResource(
                kinds.ROLE,
                common.role(
                    instance,
                    name,
                    SOURCE_NAMESPACE_RULES,
                    namespace=namespace,
                    component=COMPONENT_SERVER,
                    scope=RBAC_SCOPE_SOURCE,
                ),
            )
        )
        source.append(
            DesiredResource(
                kinds.ROLE_BINDING,
                common.role_binding(
                    instance,
                    name,
                    common.role_ref(name),
                    [server_subject],
                    namespace=namespace,
                    component=COMPONENT_SERVER,
                    scope=RBAC_SCOPE_SOURCE,
                ),
            )
        )

    return accounts + roles + bindings + cluster_roles + cluster_bindings + source
