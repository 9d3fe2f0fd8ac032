"""Unit tests for per-kind comparison rules."""

from __future__ import annotations

import pytest

from argocd_operator.engine import kinds
from argocd_operator.engine.kinds import contains, get_path, set_path


class TestContains:
    @pytest.mark.parametrize(
        "want,have,expected",
        [
            ({"a": 1}, {"a": 1, "b": 2}, True),
            ({"a": 1}, {"b": 2}, False),
            ({}, None, True),
            ({}, {"x": 1}, True),
            ([{"port": 80}], [{"port": 80, "protocol": "TCP"}], True),
            ([{"port": 80}], [{"port": 80}, {"port": 443}], False),
            ([], None, True),
            (8080, "8080", True),
            (True, "true", False),
            ("a", "b", False),
        ],
    )
    def test_contains(self, want, have, expected) -> None:
        assert contains(want, have) is expected


class TestPaths:
    def test_get_missing_path(self) -> None:
        assert get_path({"a": {"b": 1}}, "a.c") is kinds._MISSING
        assert get_path({"a": {"b": 1}}, "a.b") == 1

    def test_set_creates_intermediate_dicts(self) -> None:
        obj: dict = {}

        set_path(obj, "spec.template.spec", {"x": 1})

        assert obj == {"spec": {"template": {"spec": {"x": 1}}}}


class TestKindHandler:
    def test_unset_paths_never_differ(self) -> None:
        desired = {"metadata": {"labels": {"a": "b"}}}
        existing = {"metadata": {"labels": {"a": "b"}}, "spec": {"replicas": 3}}

        assert kinds.DEPLOYMENT.differing_fields(desired, existing) == []

    def test_exact_field(self) -> None:
        desired = {"metadata": {"labels": {}}, "data": {"a": "1"}}
        existing = {"metadata": {"labels": {}}, "data": {"a": "1", "extra": "2"}}

        assert kinds.CONFIG_MAP.differing_fields(desired, existing) == ["data"]

    def test_empty_exact_field_matches_absent(self) -> None:
        desired = {"rules": []}

        assert kinds.ROLE.differing_fields(desired, {}) == []

    def test_replicas_drift(self) -> None:
        desired = {"spec": {"replicas": 2}}

        assert kinds.DEPLOYMENT.differing_fields(desired, {"spec": {"replicas": 1}}) == ["spec.replicas"]

    def test_recreate_on_selector_change(self) -> None:
        desired = {"spec": {"selector": {"matchLabels": {"app": "new"}}}}
        existing = {"spec": {"selector": {"matchLabels": {"app": "old"}}}}

        assert kinds.DEPLOYMENT.needs_recreate(desired, existing)
        assert not kinds.DEPLOYMENT.needs_recreate(desired, desired)

    def test_copy_fields_merges_labels(self) -> None:
        existing = {"metadata": {"labels": {"keep": "me"}}, "data": {"old": "x"}}

        kinds.CONFIG_MAP.copy_fields({"metadata": {"labels": {"new": "y"}}, "data": {"a": "1"}}, existing, ["metadata.labels", "data"])

        assert existing == {"metadata": {"labels": {"keep": "me", "new": "y"}}, "data": {"a": "1"}}

    def test_cluster_scoped_kinds(self) -> None:
        assert all(not handler.namespaced for handler in kinds.CLUSTER_SCOPED_KINDS)
