"""Short-lived cache of Provider objects read from the Kubernetes API."""

from __future__ import annotations

import os
import time
from typing import Any


class TTLCache:
    """Values that expire ``ttl`` seconds after they were stored."""

    def __init__(self, ttl: float):
        self.ttl = ttl
        self._entries: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None

        stored_at, value = entry
        if time.monotonic() - stored_at > self.ttl:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = (time.monotonic(), value)

    def invalidate(self, key: str | None = None) -> None:
        """Drop ``key``, or every entry when no key is given."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)


def provider_cache_key(namespace: str, name: str) -> str:
    return f"{namespace}/{name}"


# Providers change rarely; certificates referencing one re-read it at most this often
provider_cache = TTLCache(float(os.getenv("K8S_CACHE_TTL_SECONDS", "30")))
