"""Shared fixtures for unit tests."""

from __future__ import annotations

from typing import Any
from unittest.mock import patch

import pytest

from argocd_operator.constants import API_GROUP_VERSION, FINALIZER, KIND_ARGOCD
from argocd_operator.engine.apply import ApplyEngine
from argocd_operator.hooks import HookRegistry
from argocd_operator.models import ArgoCD
from argocd_operator.utils.cache import invalidate_cache
from fake_cluster import FakeCluster

OPERATOR_ENV = (
    "ARGOCD_IMAGE",
    "ARGOCD_DEX_IMAGE",
    "ARGOCD_KEYCLOAK_IMAGE",
    "ARGOCD_REDIS_IMAGE",
    "ARGO_ROLLOUTS_IMAGE",
    "DISABLE_DEX",
    "CONTROLLER_CLUSTER_ROLE",
    "SERVER_CLUSTER_ROLE",
    "ARGOCD_CLUSTER_CONFIG_NAMESPACES",
    "REMOVE_MANAGED_BY_LABEL_ON_ARGOCD_DELETION",
)


def argocd_body(
    name: str = "argocd",
    namespace: str = "argocd",
    spec: dict[str, Any] | None = None,
    finalizers: list[str] | None = None,
    **metadata: Any,
) -> dict[str, Any]:
    body = {
        "apiVersion": API_GROUP_VERSION,
        "kind": KIND_ARGOCD,
        "metadata": {
            "name": name,
            "namespace": namespace,
            "uid": f"uid-{namespace}-{name}",
            "generation": 1,
            **metadata,
        },
        "spec": spec or {},
    }
    if finalizers is not None:
        body["metadata"]["finalizers"] = finalizers
    return body


def make_instance(**kwargs: Any) -> ArgoCD:
    kwargs.setdefault("finalizers", [FINALIZER])
    return ArgoCD(argocd_body(**kwargs))


def namespace_obj(name: str, labels: dict[str, str] | None = None) -> dict[str, Any]:
    return {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": name, "labels": labels or {}}}


@pytest.fixture(autouse=True)
def _isolate(monkeypatch):
    """Clear operator environment, feature-probe cache and Kubernetes events."""
    for name in OPERATOR_ENV:
        monkeypatch.delenv(name, raising=False)
    invalidate_cache()
    with patch("argocd_operator.utils.events.kopf.event") as mock_event:
        yield mock_event
    invalidate_cache()


@pytest.fixture
def events(_isolate):
    return _isolate


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def hooks() -> HookRegistry:
    return HookRegistry()


@pytest.fixture
def engine(cluster, hooks) -> ApplyEngine:
    return ApplyEngine(cluster, hooks)
