"""JSON log lines for operator activity."""

import json
import logging
import sys
from typing import Any

from .constants import CONTROLLER_NAME
from .utils.context import get_context_dict

REDACTED = "***REDACTED***"
SECRET_FIELDS = {"password", "admin.password", "server.secretkey", "tls.key", "clientSecret"}

# Client libraries that log every request at INFO or DEBUG
NOISY_LOGGERS = ("kubernetes.client.rest", "urllib3")


def resolve_level(name: str) -> int:
    """Map a level name to its number, falling back to INFO for unknown names."""
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_structured_logging(level: str = "INFO") -> None:
    """Configure stdout logging with bare messages, since records are already JSON."""
    logging.basicConfig(
        level=resolve_level(level),
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def log_resource_event(
    logger: logging.Logger,
    resource_kind: str,
    resource_name: str,
    namespace: str,
    event: str,
    reason: str,
    message: str,
    controller: str = CONTROLLER_NAME,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log one line describing what happened to a resource.

    The correlation id of the running reconcile, if any, is included. Extra
    keyword arguments become fields of the line.
    """
    if not logger.isEnabledFor(level):
        return
    log_data = {
        "controller": controller,
        "resource": resource_kind,
        "name": resource_name,
        "namespace": namespace,
        "event": event,
        "reason": reason,
        "message": message,
    }
    log_data.update(get_context_dict())
    log_data.update(kwargs)
    logger.log(level, json.dumps(sanitize_secrets(log_data), default=str))


def sanitize_secrets(log_data: dict[str, Any]) -> dict[str, Any]:
    """Copy log data with secret fields redacted at any depth."""
    sanitized: dict[str, Any] = {}
    for key, value in log_data.items():
        if key in SECRET_FIELDS:
            sanitized[key] = REDACTED
        elif isinstance(value, dict):
            sanitized[key] = sanitize_secrets(value)
        else:
            sanitized[key] = value
    return sanitized
