"""Health check endpoints for the operator."""

import threading
from typing import Any

from prometheus_client import make_wsgi_app
from werkzeug.serving import make_server
from werkzeug.wrappers import Response


def health_check_app(environ: dict[str, Any], start_response: Any) -> list[bytes]:
    """WSGI application for health check endpoints.

    When mounted under a prefix the path arrives as "/" and the prefix is in
    SCRIPT_NAME, so both are checked.
    """
    path = environ.get("PATH_INFO", "") or "/"
    script_name = environ.get("SCRIPT_NAME", "")

    if path == "/healthz" or (path == "/" and script_name == "/healthz"):
        response = Response('{"status":"ok"}', mimetype="application/json", status=200)
    elif path == "/readyz" or (path == "/" and script_name == "/readyz"):
        response = Response('{"status":"ready"}', mimetype="application/json", status=200)
    else:
        response = Response('{"error":"not found"}', mimetype="application/json", status=404)

    return response(environ, start_response)


def create_combined_wsgi_app() -> Any:
    """Create a WSGI app that combines metrics and health check endpoints.

    Returns:
        WSGI application serving /healthz and /readyz, and /metrics via prometheus
    """
    metrics_app = make_wsgi_app()

    def combined_app(environ: dict[str, Any], start_response: Any) -> list[bytes]:
        path = environ.get("PATH_INFO", "")
        if path in ("/healthz", "/readyz"):
            return health_check_app(environ, start_response)
        return metrics_app(environ, start_response)

    return combined_app


def start_health_server(port: int) -> None:
    """Serve metrics and health endpoints on ``port`` from a daemon thread."""
    server = make_server("", port, create_combined_wsgi_app(), threaded=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
