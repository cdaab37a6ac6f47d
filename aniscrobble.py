# /aniscrobble.py
# AniScrobble main application entry point
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import sys
import time
from typing import Any

import requests
import uvicorn
from fastapi import FastAPI, Request

from _logging import BLUE, DIM, GREEN, RESET, log as LOG
from api import scrobbleAPI
from api.dispatcher import Dispatcher
from as_platform.config_base import ConfigError, Settings, load_settings, redact_config, redact_query
from as_platform.token_store import build_store
from providers.anilist.graphql import AniListGraphQL
from providers.mapping.anidb import AniDBMapper

__VERSION__ = "1.0.0"


def _c(text: str, color: str) -> str:
    return f"{color}{text}{RESET}" if LOG.use_color else text


def build_dispatcher(settings: Settings, session: requests.Session | None = None) -> Dispatcher:
    timeout = settings.http_timeout
    return Dispatcher(
        settings.credentials,
        mapper=AniDBMapper(settings.mapping_url, session=session, timeout=timeout),
        anilist=AniListGraphQL(session=session, timeout=timeout),
        store=build_store(settings.token_store, settings.token_store_path, settings.token_ttl_seconds),
        require_owner=settings.require_owner,
        session=session,
        timeout=timeout,
    )


def create_app(settings: Settings, dispatcher: Dispatcher | None = None) -> FastAPI:
    app = FastAPI(title="AniScrobble", version=__VERSION__, docs_url=None, redoc_url=None)
    app.state.dispatcher = dispatcher or build_dispatcher(settings)

    @app.middleware("http")
    async def access_logger(request: Request, call_next: Any):
        t0 = time.time()
        status = 500
        try:
            response = await call_next(request)
            status = getattr(response, "status_code", 0) or 0
            return response
        finally:
            if status >= 400 or settings.debug:
                dt_ms = int((time.time() - t0) * 1000)
                client = request.client
                host = f"{client.host}:{client.port}" if client else "-"
                qs = redact_query(request.url.query) if request.url.query else ""
                path_qs = request.url.path + (f"?{qs}" if qs else "")
                LOG(f'{host} - "{request.method} {path_qs}" {status} ({dt_ms} ms)', level="INFO", module="HTTP")

    app.include_router(scrobbleAPI.router)
    return app


def main() -> None:
    try:
        settings = load_settings()
    except ConfigError as e:
        LOG.child("BOOT").error(f"[!] {e}")
        raise SystemExit(2) from None

    LOG.enable_debug(settings.debug)
    app = create_app(settings)
    boot = LOG.child("BOOT")
    boot.info(_c(f"ANISCROBBLE {__VERSION__} running:", BLUE))
    boot.info(f"  {_c('Bind:', DIM)}     {_c(f'{settings.host}:{settings.port}', GREEN)}")
    boot.info(f"  {_c('Webhook:', DIM)}  {scrobbleAPI.WEBHOOK_PATH}")
    boot.info(f"  {_c('Tokens:', DIM)}   {settings.token_store}"
              + (f" ({settings.token_store_path})" if settings.token_store == "json" else ""))
    boot.info(f"  {_c('Mapping:', DIM)}  {settings.mapping_url}")
    boot.info("")
    boot.debug(f"settings: {redact_config(settings.as_dict())}")

    # uvicorn's own access log prints raw query strings; access_logger above redacts them
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=("debug" if settings.debug else "warning"),
        access_log=False,
        proxy_headers=True,
    )


if __name__ == "__main__":
    sys.exit(main())
