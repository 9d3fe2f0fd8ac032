"""Health check endpoints for the operator."""

from __future__ import annotations

import threading
from typing import Any, Callable

from prometheus_client import make_wsgi_app
from werkzeug.serving import make_server
from werkzeug.wrappers import Response

_ready = threading.Event()


def mark_ready() -> None:
    """Flag the operator as ready once startup has completed."""
    _ready.set()


def mark_not_ready() -> None:
    _ready.clear()


def is_ready() -> bool:
    return _ready.is_set()


def create_combined_wsgi_app(
    readiness_check: Callable[[], bool] = is_ready,
) -> Any:
    """Create a WSGI app that combines metrics and health check endpoints.

    Args:
        readiness_check: Callable deciding whether /readyz reports ready

    Returns:
        Combined WSGI application
    """
    metrics_app = make_wsgi_app()

    def combined_app(environ: dict[str, Any], start_response: Any) -> list[bytes]:
        """WSGI app that routes /healthz and /readyz, delegates /metrics to prometheus."""
        path = environ.get("PATH_INFO", "")

        if path == "/healthz":
            response = Response('{"status":"ok"}', mimetype="application/json", status=200)
            return response(environ, start_response)
        if path == "/readyz":
            if readiness_check():
                response = Response('{"status":"ready"}', mimetype="application/json", status=200)
            else:
                response = Response('{"status":"not ready"}', mimetype="application/json", status=503)
            return response(environ, start_response)
        # Delegate all other paths (including /metrics) to prometheus app
        return metrics_app(environ, start_response)

    return combined_app


def start_metrics_server(port: int) -> threading.Thread:
    """Serve metrics and health endpoints from a background thread."""
    server = make_server("", port, create_combined_wsgi_app(), threaded=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return thread
