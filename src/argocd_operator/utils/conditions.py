"""Status conditions of an ArgoCD instance.

Conditions are plain dicts in the Kubernetes shape. Every helper returns a
new list and leaves its input untouched, so a cycle can build its conditions
step by step from the ones last written to status.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import (
    COND_ERROR_OCCURRED,
    COND_RECONCILED,
    COND_SOURCE_NAMESPACE_CONFLICT,
    COND_SSO_CONFIGURED,
)

Conditions = list[dict[str, Any]]


def get_condition(conditions: Conditions, condition_type: str) -> dict[str, Any] | None:
    return next((cond for cond in conditions if cond.get("type") == condition_type), None)


def remove_condition(conditions: Conditions, condition_type: str) -> Conditions:
    return [cond for cond in conditions if cond.get("type") != condition_type]


def update_condition(
    conditions: Conditions,
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> Conditions:
    """Replace or append one condition.

    lastTransitionTime only moves when the status of the condition changes.

    Args:
        conditions: Current conditions
        condition_type: Type of the condition to set
        status: "True", "False" or "Unknown"
        reason: CamelCase reason
        message: Human-readable message
        observed_generation: Instance generation the condition describes

    Returns:
        The new list of conditions
    """
    previous = get_condition(conditions, condition_type)
    if previous is not None and previous.get("status") == status and previous.get("lastTransitionTime"):
        transition_time = previous["lastTransitionTime"]
    else:
        transition_time = datetime.now(timezone.utc).isoformat()

    condition: dict[str, Any] = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": transition_time,
    }
    if observed_generation is not None:
        condition["observedGeneration"] = observed_generation

    if previous is None:
        return [*conditions, condition]
    return [condition if cond is previous else cond for cond in conditions]


def set_reconciled_condition(conditions: Conditions, message: str, observed_generation: int | None = None) -> Conditions:
    """Mark the cycle successful and clear any ErrorOccurred."""
    conditions = update_condition(conditions, COND_RECONCILED, "True", "Success", message, observed_generation)
    return remove_condition(conditions, COND_ERROR_OCCURRED)


def set_error_condition(conditions: Conditions, message: str, observed_generation: int | None = None) -> Conditions:
    """Record a failed cycle on both ErrorOccurred and Reconciled."""
    for condition_type, status in ((COND_ERROR_OCCURRED, "True"), (COND_RECONCILED, "False")):
        conditions = update_condition(conditions, condition_type, status, "ErrorOccurred", message, observed_generation)
    return conditions


def set_sso_condition(
    conditions: Conditions, configured: bool, message: str, observed_generation: int | None = None
) -> Conditions:
    reason = "Configured" if configured else "InvalidConfiguration"
    return update_condition(
        conditions, COND_SSO_CONFIGURED, str(configured), reason, message, observed_generation
    )


def set_source_namespace_conflict_condition(
    conditions: Conditions,
    conflicts: dict[str, str],
    observed_generation: int | None = None,
) -> Conditions:
    """Set or clear SourceNamespaceConflict.

    Args:
        conditions: Current conditions
        conflicts: Source namespace to the namespace of the instance holding the claim
        observed_generation: Instance generation the condition describes
    """
    if not conflicts:
        return remove_condition(conditions, COND_SOURCE_NAMESPACE_CONFLICT)
    details = ", ".join(f"{ns} (claimed by {owner})" for ns, owner in sorted(conflicts.items()))
    return update_condition(
        conditions,
        COND_SOURCE_NAMESPACE_CONFLICT,
        "True",
        "AlreadyClaimed",
        f"Source namespaces managed by another instance were skipped: {details}",
        observed_generation,
    )
