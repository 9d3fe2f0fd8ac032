"""Operator exceptions and error sanitization utilities."""

from __future__ import annotations

import re

from kubernetes.client.exceptions import ApiException


class OperatorError(Exception):
    """Base class for errors raised by the reconciliation engine."""


class ValidationError(OperatorError):
    """The instance spec is contradictory or malformed."""


class StageError(OperatorError):
    """A fatal pipeline stage failed; the cause is chained."""

    def __init__(self, stage: str, cause: Exception):
        super().__init__(f"stage {stage} failed: {sanitize_exception(cause)}")
        self.stage = stage
        self.cause = cause


class TeardownError(OperatorError):
    """Cleanup before finalizer removal failed."""


def is_not_found(error: Exception) -> bool:
    return isinstance(error, ApiException) and error.status == 404


def is_conflict(error: Exception) -> bool:
    return isinstance(error, ApiException) and error.status == 409


# Patterns that might expose sensitive information
SENSITIVE_PATTERNS = [
    r"password[:=\s]+([^\s,;\)]+)",
    r"secretkey[:=\s]+([^\s,;\)]+)",
    r"client[_\s]?secret[:=\s]+([^\s,;\)]+)",
    r"token[:=\s]+([^\s,;\)]+)",
    r"-----BEGIN [A-Z ]*PRIVATE KEY-----[^-]*-----END [A-Z ]*PRIVATE KEY-----",
]


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message
    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, "[REDACTED]", sanitized, flags=re.IGNORECASE)
    return sanitized


def sanitize_exception(error: Exception) -> str:
    """Sanitize exception message.

    ApiException bodies can echo whole manifests, so only the status and
    reason are kept for them.
    """
    if isinstance(error, ApiException):
        return sanitize_error_message(f"({error.status}) {error.reason}")
    return sanitize_error_message(str(error))
