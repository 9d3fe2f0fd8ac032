"""In-memory cluster client used by the unit tests."""

from __future__ import annotations

import copy
import uuid
from typing import Any

from kubernetes.client.exceptions import ApiException


def _merge(target: dict[str, Any], patch: dict[str, Any]) -> None:
    for key, value in patch.items():
        if value is None:
            target.pop(key, None)
        elif isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


def _matches(labels: dict[str, str], selector: str | None) -> bool:
    if not selector:
        return True
    for term in selector.split(","):
        if "=" in term:
            key, value = term.split("=", 1)
            if labels.get(key) != value:
                return False
        elif term not in labels:
            return False
    return True


class FakeCluster:
    """Stores objects by (kind, namespace, name) and counts writes."""

    def __init__(self, api_groups: tuple[str, ...] = ()):
        self.objects: dict[tuple[str, str | None, str], dict[str, Any]] = {}
        self.api_groups = set(api_groups)
        self.writes: list[tuple[str, str, str | None, str]] = []
        self.status_patches: list[dict[str, Any]] = []
        self.fail_on: dict[tuple[str, str], Exception] = {}

    def _key(self, kind: str, name: str, namespace: str | None) -> tuple[str, str | None, str]:
        return (kind, namespace, name)

    def _check(self, operation: str, kind: str) -> None:
        error = self.fail_on.get((operation, kind))
        if error is not None:
            raise error

    def add(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Seed an object without counting it as a write."""
        obj = copy.deepcopy(obj)
        metadata = obj.setdefault("metadata", {})
        metadata.setdefault("uid", uuid.uuid4().hex)
        metadata.setdefault("resourceVersion", "1")
        self.objects[self._key(obj["kind"], metadata["name"], metadata.get("namespace"))] = obj
        return obj

    def find(self, kind: str, name: str, namespace: str | None = None) -> dict[str, Any] | None:
        return self.objects.get(self._key(kind, name, namespace))

    def of_kind(self, kind: str) -> list[dict[str, Any]]:
        return [obj for (k, _, _), obj in self.objects.items() if k == kind]

    def writes_of(self, operation: str) -> list[tuple[str, str, str | None, str]]:
        return [w for w in self.writes if w[0] == operation]

    def get(self, api_version: str, kind: str, name: str, namespace: str | None = None) -> dict[str, Any] | None:
        self._check("get", kind)
        obj = self.find(kind, name, namespace)
        return copy.deepcopy(obj) if obj is not None else None

    def list(
        self,
        api_version: str,
        kind: str,
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        self._check("list", kind)
        return [
            copy.deepcopy(obj)
            for (k, ns, _), obj in sorted(self.objects.items(), key=lambda item: (item[0][0], item[0][1] or "", item[0][2]))
            if k == kind
            and (namespace is None or ns == namespace)
            and _matches(obj["metadata"].get("labels") or {}, label_selector)
        ]

    def create(self, manifest: dict[str, Any]) -> dict[str, Any]:
        self._check("create", manifest["kind"])
        metadata = manifest["metadata"]
        key = self._key(manifest["kind"], metadata["name"], metadata.get("namespace"))
        if key in self.objects:
            raise ApiException(status=409, reason="AlreadyExists")
        self.writes.append(("create", manifest["kind"], metadata.get("namespace"), metadata["name"]))
        return copy.deepcopy(self.add(manifest))

    def update(self, manifest: dict[str, Any]) -> dict[str, Any]:
        self._check("update", manifest["kind"])
        metadata = manifest["metadata"]
        key = self._key(manifest["kind"], metadata["name"], metadata.get("namespace"))
        if key not in self.objects:
            raise ApiException(status=404, reason="NotFound")
        self.writes.append(("update", manifest["kind"], metadata.get("namespace"), metadata["name"]))
        obj = copy.deepcopy(manifest)
        obj["metadata"]["resourceVersion"] = str(int(obj["metadata"].get("resourceVersion", "1")) + 1)
        self.objects[key] = obj
        return copy.deepcopy(obj)

    def delete(self, api_version: str, kind: str, name: str, namespace: str | None = None) -> bool:
        self._check("delete", kind)
        key = self._key(kind, name, namespace)
        if key not in self.objects:
            return False
        self.writes.append(("delete", kind, namespace, name))
        del self.objects[key]
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
        self._check("patch", kind)
        obj = self.find(kind, name, namespace)
        if obj is None:
            return None
        current = obj["metadata"].get("resourceVersion", "1")
        if resource_version is not None and resource_version != current:
            raise ApiException(status=409, reason="Conflict")
        self.writes.append(("patch", kind, namespace, name))
        _merge(obj.setdefault("metadata", {}), metadata)
        obj["metadata"]["resourceVersion"] = str(int(current) + 1)
        # The API server removes an object once its last finalizer is gone
        if obj["metadata"].get("deletionTimestamp") and not obj["metadata"].get("finalizers"):
            del self.objects[self._key(kind, name, namespace)]
            return None
        return copy.deepcopy(obj)

    def patch_status(self, api_version: str, kind: str, name: str, namespace: str, status: dict[str, Any]) -> None:
        self._check("patch_status", kind)
        obj = self.find(kind, name, namespace)
        if obj is None:
            raise ApiException(status=404, reason="NotFound")
        self.status_patches.append(copy.deepcopy(status))
        _merge(obj.setdefault("status", {}), status)

    def has_api_group(self, group: str) -> bool:
        return group in self.api_groups
