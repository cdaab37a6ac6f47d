# providers/auth/_auth_ANILIST.py
# AniScrobble - AniList OAuth authorization-code flow
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable
from urllib.parse import urlencode

import requests

from _logging import log as BASE_LOG
from as_platform.config_base import ClientCredentials
from as_platform.upstream import body_snippet, request

AUTH_URL = "https://anilist.co/api/v2/oauth/authorize"
TOKEN_URL = "https://anilist.co/api/v2/oauth/token"

__VERSION__ = "1.0.0"

_H: dict[str, str] = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


class UpstreamAuthError(RuntimeError):
    """AniList refused the authorization code."""

    def __init__(self, status: int, body: str = ""):
        super().__init__(f"AniList token endpoint returned {status}")
        self.status = status
        self.body = body


@dataclass(frozen=True)
class TokenExchangeResult:
    access_token: str = field(repr=False)


def log(msg: str, level: str = "INFO", logger: Callable[..., None] | None = None) -> None:
    (logger or BASE_LOG)(msg, level=level, module="AUTH")


def authorize_url(client_id: str, redirect_uri: str) -> str:
    params = {"client_id": client_id, "redirect_uri": redirect_uri, "response_type": "code"}
    return f"{AUTH_URL}?{urlencode(params)}"


def exchange_code(
    code: str,
    redirect_uri: str,
    credentials: ClientCredentials,
    *,
    session: requests.Session | None = None,
    timeout: float = 15.0,
    logger: Callable[..., None] | None = None,
) -> TokenExchangeResult:
    """Trade an authorization code for an access token.

    redirect_uri must be the exact value used on the authorize step.
    Raises UpstreamAuthError on any non-200 answer; transport failures
    surface as UpstreamTransportError from the HTTP wrapper.
    """
    payload: dict[str, Any] = {
        "grant_type": "authorization_code",
        "client_id": credentials.client_id,
        "client_secret": credentials.client_secret,
        "redirect_uri": redirect_uri,
        "code": code,
    }
    log(f"ANILIST: exchange code redirect_uri={redirect_uri}", logger=logger)

    r = request("POST", TOKEN_URL, json=payload, headers=_H, session=session, timeout=timeout, logger=logger)

    if r.status_code != 200:
        body = body_snippet(r)
        log(f"ANILIST: token exchange failed {r.status_code}: {body}", "ERROR", logger)
        raise UpstreamAuthError(r.status_code, body)

    try:
        tok: dict[str, Any] = r.json() or {}
    except ValueError:
        log("ANILIST: token exchange returned invalid JSON", "ERROR", logger)
        raise UpstreamAuthError(r.status_code, body_snippet(r)) from None

    acc = str(tok.get("access_token") or "").strip() if isinstance(tok, dict) else ""
    if not acc:
        log("ANILIST: token exchange succeeded but no access_token in response", "ERROR", logger)
        raise UpstreamAuthError(r.status_code, "missing access_token")

    log(f"ANILIST: access token received ({len(acc)} chars)", "SUCCESS", logger)
    return TokenExchangeResult(access_token=acc)


__all__ = [
    "AUTH_URL",
    "TOKEN_URL",
    "TokenExchangeResult",
    "UpstreamAuthError",
    "authorize_url",
    "exchange_code",
    "__VERSION__",
]
