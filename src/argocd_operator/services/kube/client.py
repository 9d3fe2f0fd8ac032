"""Kubernetes implementation of the cluster client."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from kubernetes import client, config, dynamic
from kubernetes.client.exceptions import ApiException
from kubernetes.dynamic.exceptions import ResourceNotFoundError

from ... import metrics
from ...constants import FIELD_MANAGER
from ...utils.errors import is_not_found
from ...utils.rate_limit import handle_rate_limit_error, rate_limit_k8s

logger = logging.getLogger(__name__)

MERGE_PATCH = "application/merge-patch+json"


def load_kube_config() -> None:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


class KubernetesClusterClient:
    """Cluster client backed by the dynamic client.

    Every call is rate limited, retried on 429 and counted in the
    api_call_total and api_call_duration_seconds metrics.
    """

    def __init__(self, api_client: client.ApiClient | None = None) -> None:
        self.api_client = api_client or client.ApiClient()
        self.dynamic = dynamic.DynamicClient(self.api_client)
        self.apis = client.ApisApi(self.api_client)

    def _resource(self, api_version: str, kind: str) -> Any:
        return self.dynamic.resources.get(api_version=api_version, kind=kind)

    def _served(self, api_version: str, kind: str) -> Any | None:
        """Resource for a kind, or None when the cluster does not serve it."""
        try:
            return self._resource(api_version, kind)
        except ResourceNotFoundError:
            return None

    def _call(self, operation: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        start_time = time.time()
        attempt = 0
        try:
            while True:
                try:
                    result = rate_limit_k8s(fn)(*args, **kwargs)
                    metrics.api_call_total.labels(api_type="k8s", operation=operation, result="success").inc()
                    return result
                except ApiException as e:
                    if is_not_found(e):
                        metrics.api_call_total.labels(api_type="k8s", operation=operation, result="not_found").inc()
                        raise
                    metrics.api_call_total.labels(api_type="k8s", operation=operation, result="error").inc()
                    if handle_rate_limit_error(e, attempt):
                        attempt += 1
                        continue
                    raise
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(duration)

    def get(self, api_version: str, kind: str, name: str, namespace: str | None = None) -> dict[str, Any] | None:
        resource = self._served(api_version, kind)
        if resource is None:
            return None
        try:
            obj = self._call("get", resource.get, name=name, namespace=namespace)
        except ApiException as e:
            if is_not_found(e):
                return None
            raise
        return obj.to_dict()

    def list(
        self,
        api_version: str,
        kind: str,
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        resource = self._served(api_version, kind)
        if resource is None:
            return []
        kwargs: dict[str, Any] = {}
        if namespace is not None:
            kwargs["namespace"] = namespace
        if label_selector:
            kwargs["label_selector"] = label_selector
        result = self._call("list", resource.get, **kwargs)
        return [item.to_dict() for item in result.items]

    def create(self, manifest: dict[str, Any]) -> dict[str, Any]:
        resource = self._resource(manifest["apiVersion"], manifest["kind"])
        namespace = manifest.get("metadata", {}).get("namespace")
        obj = self._call(
            "create",
            resource.create,
            body=manifest,
            namespace=namespace,
            field_manager=FIELD_MANAGER,
        )
        return obj.to_dict()

    def update(self, manifest: dict[str, Any]) -> dict[str, Any]:
        resource = self._resource(manifest["apiVersion"], manifest["kind"])
        namespace = manifest.get("metadata", {}).get("namespace")
        obj = self._call(
            "update",
            resource.replace,
            body=manifest,
            namespace=namespace,
            field_manager=FIELD_MANAGER,
        )
        return obj.to_dict()

    def delete(self, api_version: str, kind: str, name: str, namespace: str | None = None) -> bool:
        resource = self._served(api_version, kind)
        if resource is None:
            return False
        try:
            self._call(
                "delete",
                resource.delete,
                name=name,
                namespace=namespace,
                body={"propagationPolicy": "Background"},
            )
        except ApiException as e:
            if is_not_found(e):
                return False
            raise
        return True

    def patch_metadata(
        self,
        api_version: str,
        kind: str,
        name: str,
        namespace: str | None,
        metadata: dict[str, Any],
        resource_version: str | None = None,
    ) -> dict[str, Any] | None:
        resource = self._resource(api_version, kind)
        if resource_version is not None:
            metadata = {**metadata, "resourceVersion": resource_version}
        try:
            obj = self._call(
                "patch",
                resource.patch,
                body={"metadata": metadata},
                name=name,
                namespace=namespace,
                content_type=MERGE_PATCH,
            )
        except ApiException as e:
            if is_not_found(e):
                return None
            raise
        return obj.to_dict()

    def patch_status(self, api_version: str, kind: str, name: str, namespace: str, status: dict[str, Any]) -> None:
        resource = self._resource(api_version, kind)
        self._call(
            "patch_status",
            resource.status.patch,
            body={"status": status},
            name=name,
            namespace=namespace,
            content_type=MERGE_PATCH,
        )

    def has_api_group(self, group: str) -> bool:
        api_groups = self._call("get_api_versions", self.apis.get_api_versions)
        return any(g.name == group for g in api_groups.groups or [])
