"""Cluster client interface used by the reconciliation engine."""

from __future__ import annotations

from typing import Any, Protocol


class ClusterClient(Protocol):
    """Protocol defining the cluster operations the engine needs.

    Objects are plain manifest dicts. Not-found, including a kind the
    cluster does not serve, is reported as None from get, an empty list
    from list and False from delete; every other API failure raises.
    """

    def get(self, api_version: str, kind: str, name: str, namespace: str | None = None) -> dict[str, Any] | None:
        """Fetch one object, None when it does not exist."""
        ...

    def list(
        self,
        api_version: str,
        kind: str,
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        """List objects, across all namespaces when namespace is None."""
        ...

    def create(self, manifest: dict[str, Any]) -> dict[str, Any]:
        """Create an object from a manifest."""
        ...

    def update(self, manifest: dict[str, Any]) -> dict[str, Any]:
        """Replace an existing object; manifest carries its resourceVersion."""
        ...

    def delete(self, api_version: str, kind: str, name: str, namespace: str | None = None) -> bool:
        """Delete an object, False when it was already gone."""
        ...

    def patch_metadata(
        self,
        api_version: str,
        kind: str,
        name: str,
        namespace: str | None,
        metadata: dict[str, Any],
        resource_version: str | None = None,
    ) -> dict[str, Any] | None:
        """Merge-patch metadata (labels, annotations, finalizers).

        With resource_version set the patch only applies to that version of
        the object; otherwise the API server answers 409 Conflict.
        """
        ...

    def patch_status(self, api_version: str, kind: str, name: str, namespace: str, status: dict[str, Any]) -> None:
        """Merge-patch the status sub-resource."""
        ...

    def has_api_group(self, group: str) -> bool:
        """Whether the API server serves the given group."""
        ...
