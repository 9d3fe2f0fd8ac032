"""Tests for Kubernetes event utilities."""

from __future__ import annotations

from argocd_operator.utils.events import (
    emit_deprecation_notice,
    emit_event,
    emit_provider_switched,
    emit_reconcile_failed,
    emit_reconcile_started,
    emit_source_namespace_conflict,
    emit_teardown_completed,
    emit_validate_failed,
)

BODY = {"metadata": {"name": "argocd", "namespace": "argocd"}}


class TestEmitEvent:
    """Test cases for emit_event function."""

    def test_emit_event_normal(self, events):
        emit_event(BODY, "TestReason", "Test message")

        events.assert_called_once_with(BODY, reason="TestReason", message="Test message", type="Normal")

    def test_emit_event_warning(self, events):
        emit_event(BODY, "ErrorReason", "Error occurred", type_="Warning")

        events.assert_called_once_with(BODY, reason="ErrorReason", message="Error occurred", type="Warning")


class TestLifecycleEvents:
    def test_emit_reconcile_started(self, events):
        emit_reconcile_started(BODY)

        assert events.call_args.kwargs["reason"] == "ReconcileStarted"
        assert events.call_args.kwargs["type"] == "Normal"

    def test_emit_reconcile_failed(self, events):
        emit_reconcile_failed(BODY, "stage rbac failed")

        assert events.call_args.kwargs["message"] == "stage rbac failed"
        assert events.call_args.kwargs["type"] == "Warning"

    def test_emit_validate_failed(self, events):
        emit_validate_failed(BODY, "bad sso")

        assert events.call_args.kwargs["reason"] == "ValidateFailed"
        assert events.call_args.kwargs["type"] == "Warning"

    def test_emit_teardown_completed(self, events):
        emit_teardown_completed(BODY)

        assert events.call_args.kwargs["reason"] == "TeardownCompleted"


class TestProviderEvents:
    def test_emit_provider_switched(self, events):
        emit_provider_switched(BODY, "dex", "keycloak")

        assert events.call_args.kwargs["message"] == "Authentication provider switched from dex to keycloak"

    def test_emit_deprecation_notice(self, events):
        emit_deprecation_notice(BODY, "spec.dex is deprecated")

        assert events.call_args.kwargs["type"] == "Warning"


def test_emit_source_namespace_conflict(events):
    emit_source_namespace_conflict(BODY, "apps", "ops")

    assert events.call_args.kwargs["reason"] == "SourceNamespaceConflict"
    assert "apps" in events.call_args.kwargs["message"]
    assert "ops" in events.call_args.kwargs["message"]
