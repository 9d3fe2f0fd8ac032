"""Unit tests for structured log lines."""

from __future__ import annotations

import json
import logging

from argocd_operator.logging import REDACTED, log_resource_event, resolve_level, sanitize_secrets
from argocd_operator.utils.context import with_correlation_id


class TestSanitizeSecrets:
    def test_nested_fields_redacted(self) -> None:
        data = {"name": "argocd-secret", "data": {"admin.password": "hunter2", "keep": "x"}}

        sanitized = sanitize_secrets(data)

        assert sanitized == {"name": "argocd-secret", "data": {"admin.password": REDACTED, "keep": "x"}}
        assert data["data"]["admin.password"] == "hunter2"


class TestLogResourceEvent:
    def test_line_is_json_with_correlation_id(self, caplog) -> None:
        logger = logging.getLogger("argocd_operator.test")

        with caplog.at_level(logging.INFO, logger="argocd_operator.test"), with_correlation_id("abc123"):
            log_resource_event(logger, "ConfigMap", "argocd-cm", "argocd", "created", "Created", "created", extra=1)

        line = json.loads(caplog.records[-1].getMessage())
        assert line["resource"] == "ConfigMap"
        assert line["correlation_id"] == "abc123"
        assert line["extra"] == 1

    def test_skipped_below_level(self, caplog) -> None:
        logger = logging.getLogger("argocd_operator.test")

        with caplog.at_level(logging.WARNING, logger="argocd_operator.test"):
            log_resource_event(logger, "ConfigMap", "argocd-cm", "argocd", "updated", "Updated", "updated")

        assert not caplog.records


def test_resolve_level() -> None:
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level("nonsense") == logging.INFO
