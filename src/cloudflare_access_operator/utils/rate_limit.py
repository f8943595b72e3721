"""Client-side throttling of Kubernetes and Cloudflare API calls."""

from __future__ import annotations

import os
import threading
import time
from functools import wraps
from typing import Any, Callable, TypeVar

from kubernetes.client.exceptions import ApiException

from .. import metrics

_F = TypeVar("_F", bound=Callable[..., Any])


class Throttle:
    """Spaces calls to one API so at most ``rate`` start per second.

    Instances decorate the functions that perform the calls.
    """

    def __init__(self, api_type: str, rate: float):
        self.api_type = api_type
        self.rate = rate
        self._last_call = 0.0
        self._lock = threading.Lock()

    def wait(self) -> None:
        """Block until the next call is allowed to start."""
        with self._lock:
            delay = self._last_call + 1.0 / self.rate - time.monotonic()
            if delay > 0:
                metrics.rate_limit_hits_total.labels(api_type=self.api_type).inc()
                time.sleep(delay)
            self._last_call = time.monotonic()

    def __call__(self, func: _F) -> _F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            self.wait()
            return func(*args, **kwargs)

        return wrapper  # type: ignore


rate_limit_k8s = Throttle("k8s", float(os.getenv("K8S_RATE_LIMIT_PER_SECOND", "10")))
# Cloudflare allows 1200 requests per 5 minutes per user
rate_limit_cloudflare = Throttle("cloudflare", float(os.getenv("CLOUDFLARE_RATE_LIMIT_PER_SECOND", "4")))


def backoff_on_rate_limit(error: ApiException, attempt: int, max_retries: int = 3) -> bool:
    """Sleep before retrying a Kubernetes call the API server throttled.

    Args:
        error: Error raised by the Kubernetes client
        attempt: Number of retries already made for this call
        max_retries: Retries allowed before giving up

    Returns:
        True if the caller should retry, False otherwise
    """
    throttled = error.status == 429 or (error.status == 503 and "rate limit" in str(error).lower())
    if not throttled or attempt >= max_retries:
        return False

    metrics.rate_limit_hits_total.labels(api_type="k8s").inc()
    time.sleep(2 ** attempt)
    return True
