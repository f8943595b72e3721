"""Structured JSON logging for the Cloudflare Access Operator."""

import json
import logging
import os
import sys
from typing import Any

from .constants import CONTROLLER_NAME
from .utils.context import context_fields
from .utils.errors import sanitize_dict


def setup_structured_logging() -> None:
    """Send log records to stdout as bare messages at ``LOG_LEVEL``."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())


def log_resource_event(
    logger: logging.Logger,
    kind: str,
    meta: dict[str, Any],
    reason: str,
    message: str,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """Log one event about a custom resource as a single JSON document.

    The correlation and trace ids of the current context are attached, and
    fields that look like credentials are redacted before the line is written.
    """
    document = {
        "controller": CONTROLLER_NAME,
        "resource": kind,
        "name": meta.get("name", "unknown"),
        "namespace": meta.get("namespace", "default"),
        "uid": meta.get("uid", "unknown"),
        "reason": reason,
        "message": message,
        **context_fields(),
        **fields,
    }
    logger.log(level, json.dumps(sanitize_dict(document), default=str))
