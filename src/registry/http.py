"""Shared read helper for registry clients.

Encapsulates file and HTTP access so individual registry modules avoid
duplicating try/except blocks. Absent resources come back as None; every
other failure raises FetchError classified as transient or persistent.
"""
from __future__ import annotations

import logging
import os
from typing import Optional
from urllib.parse import unquote, urlsplit

from common.http_client import robust_get
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from resolution.errors import FetchError

logger = logging.getLogger(__name__)

HEADERS_TEXT = {"Accept": "application/json, text/plain, */*"}
_ABSENT_STATUSES = (404, 410)


def is_remote(url: str) -> bool:
    return urlsplit(url).scheme in ("http", "https")


def local_path(url: str) -> str:
    """Filesystem path for a ``file://`` URL or a bare path."""
    parts = urlsplit(url)
    if parts.scheme == "file":
        return unquote(parts.path)
    return url


def _read_file(path: str) -> Optional[str]:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return fh.read()
    except (FileNotFoundError, NotADirectoryError):
        return None
    except OSError as exc:
        raise FetchError(f"Cannot read {path}: {exc}") from exc


def read_url(url: str) -> Optional[str]:
    """Return the text at ``url``, or None when it does not exist.

    Supports ``http(s)://``, ``file://`` and plain filesystem paths.

    Raises:
        FetchError: the resource could not be read. Timeouts, connection
            failures and server errors are transient; other statuses are not.
    """
    if not is_remote(url):
        text = _read_file(local_path(url))
        if is_debug_enabled(logger):
            logger.debug(
                "Registry file read",
                extra=extra_context(
                    event="file_read",
                    component="registry_http",
                    action="read_url",
                    outcome="found" if text is not None else "absent",
                    target=url,
                )
            )
        return text

    status_code, _, text = robust_get(url, headers=HEADERS_TEXT)
    if status_code == 200:
        return text
    if status_code in _ABSENT_STATUSES:
        return None
    if is_debug_enabled(logger):
        logger.debug(
            "Registry read failed",
            extra=extra_context(
                event="http_response",
                component="registry_http",
                action="read_url",
                outcome="error",
                status_code=status_code,
                target=safe_url(url),
            )
        )
    if status_code == 0:
        raise FetchError(f"Failed to fetch {safe_url(url)}: {text}", transient=True)
    raise FetchError(f"Failed to fetch {safe_url(url)}: HTTP {status_code}")


def join_url(base: str, *parts: str) -> str:
    """Join path segments onto a registry URL or path."""
    if is_remote(base) or urlsplit(base).scheme == "file":
        return "/".join([base.rstrip("/")] + [part.strip("/") for part in parts])
    return os.path.join(base, *parts)
