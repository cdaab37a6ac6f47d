# as_platform/upstream.py
# AniScrobble - outbound HTTP wrapper shared by the AniList and mapping clients.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from typing import Any, Callable

import requests

from _logging import log as BASE_LOG

UA = "AniScrobble/1.0"
DEFAULT_TIMEOUT = 15.0


class UpstreamTransportError(RuntimeError):
    """Network-level failure talking to an upstream service."""

    def __init__(self, method: str, url: str, cause: BaseException):
        super().__init__(f"{method} {url} failed: {cause}")
        self.method = method
        self.url = url
        self.cause = cause


def _emit(logger: Callable[..., None] | None, msg: str, level: str = "INFO") -> None:
    if logger is not None:
        logger(msg, level=level, module="HTTP")
    else:
        BASE_LOG(msg, level=level, module="HTTP")


def request(
    method: str,
    url: str,
    *,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    logger: Callable[..., None] | None = None,
    **kwargs: Any,
) -> requests.Response:
    """Issue a single upstream call.

    No retries. Transport failures are logged and re-raised as
    UpstreamTransportError; HTTP error statuses are returned to the caller.
    """
    headers = {"User-Agent": UA, **(kwargs.pop("headers", None) or {})}
    sender = session if session is not None else requests
    try:
        r = sender.request(method, url, headers=headers, timeout=timeout, **kwargs)
    except requests.RequestException as e:
        _emit(logger, f"{method} {url} transport error: {e}", "ERROR")
        raise UpstreamTransportError(method, url, e) from e
    _emit(logger, f"{method} {url} -> {r.status_code}", "DEBUG")
    return r


def body_snippet(r: requests.Response, limit: int = 400) -> str:
    try:
        return (r.text or "")[:limit]
    except Exception:
        return "<unreadable body>"
