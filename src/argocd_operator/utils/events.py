"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_DEPRECATION_NOTICE,
    EVENT_REASON_PROVIDER_SWITCHED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_REASON_SOURCE_NAMESPACE_CONFLICT,
    EVENT_REASON_TEARDOWN_COMPLETED,
    EVENT_REASON_VALIDATE_FAILED,
)


def emit_event(
    body: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: Body of the object the event is about
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_started(body: dict[str, Any]) -> None:
    """Emit reconcile started event."""
    emit_event(body, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_failed(body: dict[str, Any], message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(body, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_validate_failed(body: dict[str, Any], message: str) -> None:
    """Emit validation failed event."""
    emit_event(body, EVENT_REASON_VALIDATE_FAILED, message, type_="Warning")


def emit_provider_switched(body: dict[str, Any], old: str, new: str) -> None:
    emit_event(body, EVENT_REASON_PROVIDER_SWITCHED, f"Authentication provider switched from {old} to {new}")


def emit_deprecation_notice(body: dict[str, Any], message: str) -> None:
    emit_event(body, EVENT_REASON_DEPRECATION_NOTICE, message, type_="Warning")


def emit_source_namespace_conflict(body: dict[str, Any], namespace: str, owner: str) -> None:
    emit_event(
        body,
        EVENT_REASON_SOURCE_NAMESPACE_CONFLICT,
        f"Namespace {namespace} is already a source namespace of the instance in {owner}",
        type_="Warning",
    )


def emit_teardown_completed(body: dict[str, Any]) -> None:
    emit_event(body, EVENT_REASON_TEARDOWN_COMPLETED, "Cluster resources removed, finalizer released")
