# /api/scrobbleAPI.py
# AniScrobble - FastAPI binding for the webhook endpoint
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from _logging import log as BASE_LOG
from api.dispatcher import DispatchResult, Dispatcher, InboundRequest

WEBHOOK_PATH = "/webhook/anilist"

router = APIRouter(tags=["scrobble"])


def _dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


async def _inbound(request: Request) -> InboundRequest:
    raw = await request.body()
    ct = (request.headers.get("content-type") or "").lower()
    fields: list[tuple[str, str]] = []
    if "multipart/form-data" in ct or "application/x-www-form-urlencoded" in ct:
        try:
            form = await request.form()
        except Exception as e:
            BASE_LOG(f"webhook: form decode failed: {e}", level="WARN", module="SCROBBLE")
        else:
            for name, value in form.multi_items():
                # uploaded parts (PLEX attaches a thumbnail) carry no event data
                if isinstance(value, str):
                    fields.append((name, value))
    return InboundRequest(
        method=request.method,
        url=str(request.url),
        query=dict(request.query_params),
        body=raw,
        fields=tuple(fields),
    )


def _to_response(res: DispatchResult) -> Response:
    if res.outcome is not None:
        return JSONResponse(dict(res.outcome), status_code=res.status, headers={"Cache-Control": "no-store"})
    headers = {"Cache-Control": "no-store", **dict(res.headers)}
    return Response(content=res.body, status_code=res.status, headers=headers)


@router.api_route(WEBHOOK_PATH, methods=["GET", "POST", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def anilist_webhook(request: Request) -> Response:
    inbound = await _inbound(request)
    res = await run_in_threadpool(_dispatcher(request).handle, inbound)
    return _to_response(res)


@router.get("/healthz")
def healthz() -> dict[str, bool]:
    return {"ok": True}
