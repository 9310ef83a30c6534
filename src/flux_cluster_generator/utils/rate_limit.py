"""Rate limiting and retry backoff utilities for API calls."""

from __future__ import annotations

import os
import threading
import time
from functools import wraps
from typing import Any, Callable, TypeVar

from kubernetes.client.exceptions import ApiException

from .. import metrics
from ..constants import RETRY_BASE_DELAY, RETRY_MAX_DELAY

_F = TypeVar("_F", bound=Callable[..., Any])

# Rate limit configuration
_K8S_RATE_LIMIT_PER_SECOND = float(os.getenv("K8S_RATE_LIMIT_PER_SECOND", "20.0"))

# Track last call time; handlers run on a thread pool
_k8s_last_call_time: float = 0.0
_k8s_lock = threading.Lock()


def rate_limit_k8s(func: _F) -> _F:
    """Decorator to rate limit Kubernetes API calls.

    Spaces calls at least ``1 / K8S_RATE_LIMIT_PER_SECOND`` seconds apart across
    all worker threads.
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        global _k8s_last_call_time
        min_interval = 1.0 / _K8S_RATE_LIMIT_PER_SECOND

        with _k8s_lock:
            time_since_last_call = time.time() - _k8s_last_call_time
            if time_since_last_call < min_interval:
                time.sleep(min_interval - time_since_last_call)
            _k8s_last_call_time = time.time()

        return func(*args, **kwargs)

    return wrapper  # type: ignore


def is_rate_limit_error(e: Exception) -> bool:
    """Kubernetes API rate limit errors return 429, or 503 mentioning rate limits."""
    if not isinstance(e, ApiException):
        return False
    return e.status == 429 or (e.status == 503 and "rate limit" in str(e).lower())


def call_with_rate_limit_retry(
    func: Callable[..., Any],
    *args: Any,
    max_retries: int = 3,
    **kwargs: Any,
) -> Any:
    """Call a rate-limited API method, retrying throttled calls with 1s, 2s, 4s backoff."""
    attempt = 0
    while True:
        try:
            return rate_limit_k8s(func)(*args, **kwargs)
        except ApiException as e:
            if not is_rate_limit_error(e) or attempt >= max_retries:
                raise
            metrics.rate_limit_hits_total.labels(api_type="k8s").inc()
            time.sleep(2 ** attempt)
            attempt += 1


def retry_delay(retry: int) -> float:
    """Bounded exponential delay for the n-th handler retry (0-based)."""
    return min(RETRY_BASE_DELAY * (2 ** min(max(retry, 0), 16)), RETRY_MAX_DELAY)
