"""Centralized logging helpers shared by the resolver, registries and CLI.

Provides a single ``configure_logging`` entry point plus small utilities for
structured DEBUG traces: ``extra_context`` builds the ``extra=`` payload,
``safe_url`` keeps credentials and query tokens out of logs, and ``Timer``
measures durations for response traces.
"""
from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional
from urllib.parse import urlsplit, urlunsplit

from constants import Constants

_CONFIGURED_ATTR = "_modresolve_configured"


def configure_logging(level: Optional[str] = None) -> None:
    """Install a stream handler on the root logger once.

    The level comes from the ``level`` argument, then the
    ``MODRESOLVE_LOG_LEVEL`` environment variable, then INFO.
    """
    root = logging.getLogger()
    level_name = (level or os.environ.get(Constants.ENV_LOG_LEVEL) or "INFO").upper()
    level_value = getattr(logging, level_name, logging.INFO)

    if not getattr(root, _CONFIGURED_ATTR, False):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
        root.addHandler(handler)
        setattr(root, _CONFIGURED_ATTR, True)
    root.setLevel(level_value)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records would be emitted by ``logger``."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra=`` mapping for structured log records.

    Fields whose value is None are dropped so records stay compact.
    """
    return {key: value for key, value in fields.items() if value is not None}


def safe_url(url: Optional[str]) -> str:
    """Return ``url`` without user info, query string or fragment."""
    if not url:
        return ""
    parts = urlsplit(url)
    if not parts.scheme:
        return url
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, "", ""))


class Timer:
    """Context manager measuring wall-clock duration in milliseconds."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        self._end = None
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        """Elapsed milliseconds; still running timers report time so far."""
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)
