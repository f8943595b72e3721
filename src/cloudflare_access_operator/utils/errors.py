"""Operator exceptions and error sanitization utilities."""

import re
from typing import Any


class OperatorError(Exception):
    """Base class for errors raised by the operator's reconcilers."""


class ValidationError(OperatorError, ValueError):
    """Declared state is invalid; retrying will not help."""


class ContainerResolutionError(ValidationError):
    """Resource cannot be resolved to an account or zone container."""


class ImportIdError(ValidationError):
    """Composite import identifier is malformed."""


class CertificateOperationError(OperatorError):
    """An Access CA certificate call against Cloudflare failed."""


class ImportStateError(OperatorError):
    """State of an imported Access CA certificate could not be read."""


class OperationCancelledError(OperatorError):
    """The caller cancelled the operation before an external call was made."""


REDACTED = "[REDACTED]"

# Credential shapes that appear inline in Cloudflare error text and headers.
_INLINE_CREDENTIALS = [
    re.compile(r"(bearer)\s+[A-Za-z0-9\-_\.=]+", re.IGNORECASE),
    re.compile(r"(api[_\s]?token)[:=\s]+[A-Za-z0-9\-_]+", re.IGNORECASE),
    re.compile(r"(api[_\s]?key)[:=\s]+[A-Za-z0-9\-_]+", re.IGNORECASE),
    re.compile(r"(x-auth-key)[:=\s]+[A-Za-z0-9\-_]+", re.IGNORECASE),
]

# Key names whose values are never logged. Matched as substrings.
SENSITIVE_FIELDS = frozenset(
    {"api_token", "authorization", "password", "secret", "credentials", "token"}
)

_KEY_VALUE_CREDENTIALS = {
    field: re.compile(rf"\b{field}[:=]\s*[^\s,;\)]+", re.IGNORECASE)
    for field in SENSITIVE_FIELDS
}


def sanitize_error_message(message: str) -> str:
    """Redact API tokens, auth headers and ``key: value`` secrets from text."""
    for pattern in _INLINE_CREDENTIALS:
        message = pattern.sub(rf"\1 {REDACTED}", message)
    for field, pattern in _KEY_VALUE_CREDENTIALS.items():
        message = pattern.sub(f"{field}: {REDACTED}", message)
    return message


def sanitize_exception(error: Exception) -> str:
    """Return ``str(error)`` with credentials redacted."""
    return sanitize_error_message(str(error))


def _is_sensitive(key: str, names: frozenset[str]) -> bool:
    lowered = key.lower()
    return any(name in lowered for name in names)


def _sanitize_value(value: Any, names: frozenset[str]) -> Any:
    if isinstance(value, dict):
        return {
            key: REDACTED if _is_sensitive(key, names) else _sanitize_value(item, names)
            for key, item in value.items()
        }
    if isinstance(value, str):
        return sanitize_error_message(value)
    return value


def sanitize_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """Copy ``data`` with credential-bearing keys and inline secrets redacted.

    Nested dictionaries are walked. ``sensitive_keys`` extends
    ``SENSITIVE_FIELDS`` for a single call; the input is never modified.
    """
    return _sanitize_value(data, SENSITIVE_FIELDS | frozenset(sensitive_keys or ()))
