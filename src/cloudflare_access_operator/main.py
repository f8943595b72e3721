"""Main entry point for the Cloudflare Access Operator."""

from __future__ import annotations

import os
from typing import Any

import kopf

from . import handlers  # noqa: F401
from . import health
from . import logging as structured_logging
from .tracing import initialize_tracing


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    structured_logging.setup_structured_logging()
    initialize_tracing()

    # Use AnnotationsProgressStorage to avoid conflicts with status updates
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = 0
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = int(os.getenv("MAX_WORKERS", "4"))

    # Start metrics HTTP server with health check endpoints
    health.start_health_server(int(os.getenv("METRICS_PORT", "8080")))


def main() -> None:
    """Run the operator against all namespaces, or WATCH_NAMESPACE if set."""
    namespace = os.getenv("WATCH_NAMESPACE")
    if namespace:
        kopf.run(namespaces=[namespace], standalone=True)
    else:
        kopf.run(clusterwide=True, standalone=True)


if __name__ == "__main__":
    main()
