# /api/dispatcher.py
# AniScrobble - method/query based router for the single webhook endpoint
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import html
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Callable

from _logging import log as BASE_LOG
from as_platform.config_base import ClientCredentials, redact_query
from as_platform.token_store import TokenStore, new_handle
from as_platform.upstream import UpstreamTransportError
from as_platform.url_validation import base_url, build_webhook_url, validate_webhook_url
from providers.anilist.graphql import AniListGraphQL
from providers.auth._auth_ANILIST import UpstreamAuthError, authorize_url, exchange_code
from providers.mapping.anidb import AniDBMapper
from providers.webhooks.plexanilist import MalformedPayload, decode_payload, process_webhook

_HTML = {"Content-Type": "text/html; charset=UTF-8"}

# Single place where failures become HTTP statuses.
_ERROR_STATUS: dict[type[Exception], int] = {
    UpstreamAuthError: 401,
    MalformedPayload: 400,
    UpstreamTransportError: 502,
}


@dataclass(frozen=True)
class InboundRequest:
    method: str
    url: str
    query: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""
    # (name, value) pairs from the host's multipart decoder, in body order
    fields: Sequence[tuple[str, str]] = ()


@dataclass(frozen=True)
class DispatchResult:
    status: int
    body: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    outcome: Mapping[str, Any] | None = None


_AUTHORIZE_PAGE = """<html>
    <head>
        <title>Auth To AniList</title>
    </head>
    <body>
        <a href="{href}">Login with AniList</a>
    </body>
</html>
"""

_WEBHOOK_PAGE = """<html>
    <head>
        <title>Your Webhook URL</title>
    </head>
    <body>
        {greeting}Your authenticated webhook URL is

        <pre><code>{url}</code></pre>

        Treat this as you would your AniList password.

        Paste this URL into your PLEX account's "Webhooks" panel.
{warnings}    </body>
</html>
"""


class Dispatcher:
    """Routes one request through the authorize, exchange or webhook branch.

    Holds only immutable collaborators; handle() keeps no state between
    calls apart from what the token store records.
    """

    def __init__(
        self,
        credentials: ClientCredentials,
        *,
        mapper: AniDBMapper,
        anilist: AniListGraphQL,
        store: TokenStore | None = None,
        require_owner: bool = True,
        exchange: Callable[..., Any] = exchange_code,
        session: Any = None,
        timeout: float = 15.0,
        logger: Callable[..., None] | None = None,
    ):
        self.credentials = credentials
        self.mapper = mapper
        self.anilist = anilist
        self.store = store
        self.require_owner = require_owner
        self.exchange = exchange
        self.session = session
        self.timeout = timeout
        self.logger = logger

    def _log(self, msg: str, level: str = "INFO") -> None:
        (self.logger or BASE_LOG)(msg, level=level, module="DISPATCH")

    def handle(self, request: InboundRequest) -> DispatchResult:
        method = (request.method or "").upper()
        query = request.query or {}
        self._log(
            f"{method} {base_url(request.url)} query='{redact_query(query)}' "
            f"fields={[name for name, _ in request.fields]} body={len(request.body or b'')} bytes",
            "DEBUG",
        )

        try:
            if method == "GET" and not query.get("code"):
                return self._authorize(request)
            if method == "GET":
                return self._exchange(request, str(query["code"]))
            if method == "POST" and query.get("token"):
                return self._webhook(request, str(query["token"]))
        except tuple(_ERROR_STATUS) as e:
            status = next(s for t, s in _ERROR_STATUS.items() if isinstance(e, t))
            self._log(f"{method} failed with {type(e).__name__}: {e} -> {status}", "WARN" if status < 500 else "ERROR")
            return DispatchResult(status=status)

        return DispatchResult(status=404)

    def _authorize(self, request: InboundRequest) -> DispatchResult:
        href = authorize_url(self.credentials.client_id, base_url(request.url))
        self._log("authorize page served")
        return DispatchResult(200, _AUTHORIZE_PAGE.format(href=html.escape(href)), _HTML)

    def _exchange(self, request: InboundRequest, code: str) -> DispatchResult:
        redirect_uri = base_url(request.url)
        result = self.exchange(
            code, redirect_uri, self.credentials,
            session=self.session, timeout=self.timeout, logger=self.logger,
        )
        token = result.access_token

        if self.store is not None:
            handle = new_handle()
            try:
                self.store.put(handle, token)
            except (OSError, ValueError) as e:
                self._log(f"token store write failed: {e}", "ERROR")
                return DispatchResult(status=500)
            url = build_webhook_url(redirect_uri, handle)
        else:
            url = build_webhook_url(redirect_uri, token)

        greeting = ""
        try:
            viewer = self.anilist.viewer(token)
        except UpstreamTransportError:
            viewer = None
        if viewer and viewer.get("name"):
            greeting = f"Connected as <b>{html.escape(str(viewer['name']))}</b>.\n\n        "

        warns = validate_webhook_url(url)
        for w in warns:
            self._log(w, "WARN")
        warnings = "".join(f"        <p><b>Warning:</b> {html.escape(w)}</p>\n" for w in warns)

        self._log(f"webhook URL issued ({len(url)} chars, {'handle' if self.store is not None else 'inline token'})", "SUCCESS")
        body = _WEBHOOK_PAGE.format(greeting=greeting, url=html.escape(url), warnings=warnings)
        return DispatchResult(200, body, _HTML)

    def _webhook(self, request: InboundRequest, value: str) -> DispatchResult:
        if self.store is not None:
            try:
                token = self.store.get(value)
            except (OSError, ValueError) as e:
                self._log(f"token store read failed: {e}", "ERROR")
                return DispatchResult(status=500)
            if not token:
                self._log("webhook called with unknown or expired handle", "WARN")
                return DispatchResult(status=401)
        else:
            token = value

        event = decode_payload(request.body, request.fields)
        res = process_webhook(
            event, token,
            mapper=self.mapper,
            anilist=self.anilist,
            require_owner=self.require_owner,
            logger=self.logger,
        )
        self._log(f"webhook outcome={res.get('outcome')} anidb={res.get('anidb')} anilist={res.get('anilist')}", "DEBUG")
        return DispatchResult(status=200, outcome=res)
