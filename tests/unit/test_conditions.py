"""Unit tests for condition utilities."""

from __future__ import annotations

from argocd_operator.utils.conditions import (
    get_condition,
    set_error_condition,
    set_reconciled_condition,
    set_source_namespace_conflict_condition,
    set_sso_condition,
    update_condition,
)


class TestConditions:
    """Test condition utilities."""

    def test_update_condition_new(self) -> None:
        result = update_condition([], "TestCondition", "True", "TestReason", "Test message", observed_generation=1)

        assert len(result) == 1
        assert result[0]["type"] == "TestCondition"
        assert result[0]["status"] == "True"
        assert result[0]["reason"] == "TestReason"
        assert result[0]["message"] == "Test message"
        assert result[0]["observedGeneration"] == 1

    def test_transition_time_kept_when_status_unchanged(self) -> None:
        conditions = [
            {
                "type": "TestCondition",
                "status": "True",
                "reason": "OldReason",
                "message": "Old message",
                "lastTransitionTime": "2023-01-01T00:00:00Z",
            }
        ]

        result = update_condition(conditions, "TestCondition", "True", "NewReason", "New message")

        assert result[0]["reason"] == "NewReason"
        assert result[0]["lastTransitionTime"] == "2023-01-01T00:00:00Z"

    def test_transition_time_moves_when_status_changes(self) -> None:
        conditions = [{"type": "TestCondition", "status": "False", "lastTransitionTime": "2023-01-01T00:00:00Z"}]

        result = update_condition(conditions, "TestCondition", "True", "Reason", "Message")

        assert result[0]["lastTransitionTime"] != "2023-01-01T00:00:00Z"

    def test_error_then_success(self) -> None:
        """A successful reconcile clears ErrorOccurred and flips Reconciled back."""
        conditions = set_error_condition([], "stage rbac failed", observed_generation=3)

        assert get_condition(conditions, "ErrorOccurred")["status"] == "True"
        assert get_condition(conditions, "Reconciled")["status"] == "False"

        conditions = set_reconciled_condition(conditions, "Reconciled", observed_generation=3)

        assert get_condition(conditions, "ErrorOccurred") is None
        assert get_condition(conditions, "Reconciled")["status"] == "True"

    def test_sso_condition(self) -> None:
        result = set_sso_condition([], False, "both dex and keycloak configured")

        assert result[0]["type"] == "SSOConfigured"
        assert result[0]["status"] == "False"
        assert result[0]["reason"] == "InvalidConfiguration"

    def test_source_namespace_conflict(self) -> None:
        conditions = set_source_namespace_conflict_condition([], {"b": "ops-2", "a": "ops-1"})

        message = get_condition(conditions, "SourceNamespaceConflict")["message"]
        assert message.endswith("a (claimed by ops-1), b (claimed by ops-2)")

        assert set_source_namespace_conflict_condition(conditions, {}) == []
