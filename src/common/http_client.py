"""HTTP GET with retries and a short-lived response cache.

Registry reads go through ``robust_get`` so that every caller gets the same
timeout, retry and caching behavior. Failures never raise: the caller gets a
``(status, headers, text)`` triple where status 0 means no response arrived.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, Optional, Tuple

import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)

Response = Tuple[int, Dict[str, str], str]


class _ResponseCache:
    """Thread-safe TTL cache of successful responses keyed by URL and headers."""

    def __init__(self) -> None:
        self._entries: Dict[str, Tuple[Response, float]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def key(url: str, headers: Optional[Dict[str, str]]) -> str:
        return f"GET {url} {sorted(headers.items()) if headers else ''}"

    def get(self, key: str) -> Optional[Response]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            response, stored_at = entry
            if time.time() - stored_at >= Constants.HTTP_CACHE_TTL_SEC:
                del self._entries[key]
                return None
            return response

    def put(self, key: str, response: Response) -> None:
        with self._lock:
            self._entries[key] = (response, time.time())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


_cache = _ResponseCache()


def clear_cache() -> None:
    """Drop every cached response."""
    _cache.clear()


def _trace(message: str, **fields: Any) -> None:
    if is_debug_enabled(logger):
        logger.debug(
            message,
            extra=extra_context(component="http_client", action="GET", **fields)
        )


def _attempt(url: str, headers: Optional[Dict[str, str]], kwargs: Dict[str, Any],
             target: str, attempt: int) -> Tuple[Optional[Response], str]:
    """One request; returns (response, "") or (None, reason to retry)."""
    _trace("HTTP request", event="http_request", target=target, attempt=attempt)
    with Timer() as t:
        try:
            response = requests.get(
                url, timeout=Constants.REQUEST_TIMEOUT, headers=headers, **kwargs
            )
        except requests.Timeout:
            _trace("HTTP timeout", event="http_exception", outcome="timeout",
                   target=target, attempt=attempt)
            return None, "timeout"
        except requests.RequestException as exc:
            _trace("HTTP request exception", event="http_exception",
                   outcome="request_exception", target=target, attempt=attempt)
            return None, str(exc)

    if response.status_code >= 500:
        _trace("HTTP server error", event="http_response", outcome="retry",
               status_code=response.status_code, target=target, attempt=attempt)
        return None, f"HTTP {response.status_code}"

    _trace("HTTP response", event="http_response", outcome="success",
           status_code=response.status_code, duration_ms=t.duration_ms(), target=target)
    return (response.status_code, dict(response.headers), response.text), ""


def robust_get(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any
) -> Response:
    """GET ``url``, retrying connection failures, timeouts and 5xx responses.

    Non-5xx responses are cached for ``Constants.HTTP_CACHE_TTL_SEC``.

    Returns:
        Tuple of (status_code, headers_dict, body_text). A status code of 0
        means every attempt failed; the body then describes the last failure.
    """
    target = safe_url(url)
    cache_key = _ResponseCache.key(url, headers)
    cached = _cache.get(cache_key)
    if cached is not None:
        _trace("HTTP cache hit", event="cache_hit", target=target)
        return cached

    reason = ""
    for attempt in range(1, Constants.HTTP_RETRY_MAX + 1):
        if attempt > 1:
            time.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** (attempt - 2)))
        response, reason = _attempt(url, headers, kwargs, target, attempt)
        if response is not None:
            _cache.put(cache_key, response)
            return response

    return 0, {}, f"Request failed after {Constants.HTTP_RETRY_MAX} attempts: {reason}"
