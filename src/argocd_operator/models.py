"""Wrapper around the raw ArgoCD custom resource body."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .constants import API_GROUP_VERSION, FINALIZER, KIND_ARGOCD


class ProviderState(str, Enum):
    """Authentication provider of an instance."""

    NONE = "none"
    DEX = "dex"
    KEYCLOAK = "keycloak"


@dataclass(frozen=True)
class Identity:
    """Namespace and name of an instance, the unit of serialization."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class ArgoCD:
    """Read-only view over an ArgoCD body as returned by the API server."""

    def __init__(self, body: dict[str, Any]):
        self.body = body

    @property
    def metadata(self) -> dict[str, Any]:
        return self.body.get("metadata") or {}

    @property
    def spec(self) -> dict[str, Any]:
        return self.body.get("spec") or {}

    @property
    def status(self) -> dict[str, Any]:
        return self.body.get("status") or {}

    @property
    def name(self) -> str:
        return self.metadata["name"]

    @property
    def namespace(self) -> str:
        return self.metadata["namespace"]

    @property
    def uid(self) -> str:
        return self.metadata.get("uid", "")

    @property
    def generation(self) -> int:
        return int(self.metadata.get("generation") or 0)

    @property
    def deletion_timestamp(self) -> str | None:
        return self.metadata.get("deletionTimestamp")

    @property
    def finalizers(self) -> list[str]:
        return list(self.metadata.get("finalizers") or [])

    @property
    def has_finalizer(self) -> bool:
        return FINALIZER in self.finalizers

    @property
    def identity(self) -> Identity:
        return Identity(self.namespace, self.name)

    def owner_reference(self) -> dict[str, Any]:
        """Controller owner reference pointing at this instance."""
        return {
            "apiVersion": API_GROUP_VERSION,
            "kind": KIND_ARGOCD,
            "name": self.name,
            "uid": self.uid,
            "controller": True,
            "blockOwnerDeletion": True,
        }

    def spec_section(self, *path: str) -> dict[str, Any]:
        """Walk nested spec keys, treating missing or null sections as empty."""
        node: Any = self.spec
        for key in path:
            if not isinstance(node, dict):
                return {}
            node = node.get(key)
        return node if isinstance(node, dict) else {}

    def __repr__(self) -> str:
        return f"ArgoCD({self.namespace}/{self.name})"
