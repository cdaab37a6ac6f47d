# /providers/webhooks/plexanilist.py
# AniScrobble - Plex -> AniList scrobble webhook module
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import json
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from _logging import log as BASE_LOG
from providers.anilist.graphql import AniListGraphQL
from providers.mapping.anidb import AniDBMapper

SCROBBLE_EVENT = "media.scrobble"

# com.plexapp.agents.hama://anidb-12345/1/2?lang=en
_PAT_HAMA = re.compile(r"(?:com\.plexapp\.agents\.hama|hama)://anidb-(\d+)", re.I)

Outcome = Literal["handled", "ignored", "mapping_failed"]


class MalformedPayload(ValueError):
    """Webhook body could not be decoded into a Plex event."""


class PlexAccount(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int | None = None
    title: str | None = None


class PlexMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    guid: str | None = None
    type: str | None = None
    title: str | None = None
    grandparentTitle: str | None = None
    parentIndex: int | None = None
    index: int | None = None


class PlexWebhookEvent(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    event: str = ""
    user: bool = False
    owner: bool = False
    account: PlexAccount | None = Field(default=None, alias="Account")
    metadata: PlexMetadata | None = Field(default=None, alias="Metadata")


@dataclass(frozen=True)
class MediaIdentifier:
    anidb_id: int
    season: int | None
    episode: int | None


def _emit(logger: Callable[..., None] | None, msg: str, level: str = "INFO") -> None:
    (logger or BASE_LOG)(msg, level=level, module="SCROBBLE")


def decode_payload(body: bytes | str | None, fields: Sequence[tuple[str, str]] = ()) -> PlexWebhookEvent:
    """Turn a webhook body into a PlexWebhookEvent.

    *fields* are the (name, value) pairs of a multipart body, already split
    by the host's form decoder. PLEX sends the JSON event as the first
    field ("payload", followed by an optional "thumb"), so field 0 is read
    without looking at its name. Any other field layout is unsupported.
    Without fields the raw body itself must be the JSON event.
    """
    if fields:
        raw: bytes | str = fields[0][1]
    else:
        raw = body or b""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not raw.strip():
        raise MalformedPayload("empty webhook body")

    try:
        doc = json.loads(raw)
    except ValueError as e:
        raise MalformedPayload(f"webhook body is not JSON: {e}") from e
    if not isinstance(doc, dict):
        raise MalformedPayload(f"webhook body is a JSON {type(doc).__name__}, expected an object")

    try:
        return PlexWebhookEvent.model_validate(doc)
    except ValidationError as e:
        raise MalformedPayload(f"webhook body has unexpected shape: {e.error_count()} error(s)") from e


def extract_media_identifier(event: PlexWebhookEvent) -> MediaIdentifier | None:
    md = event.metadata
    if md is None or not md.guid:
        return None
    m = _PAT_HAMA.search(md.guid)
    if not m:
        return None
    return MediaIdentifier(anidb_id=int(m.group(1)), season=md.parentIndex, episode=md.index)


def _media_name(md: PlexMetadata | None) -> str:
    if md is None:
        return "?"
    show = (md.grandparentTitle or "").strip()
    ep = (md.title or "").strip()
    s, e = md.parentIndex, md.index
    if show and isinstance(s, int) and isinstance(e, int):
        return f"{show} S{s:02d}E{e:02d}" + (f" - {ep}" if ep else "")
    return show or ep or "?"


def _result(outcome: Outcome, **extra: Any) -> dict[str, Any]:
    return {"ok": True, "outcome": outcome, **extra}


def process_webhook(
    event: PlexWebhookEvent,
    token: str,
    *,
    mapper: AniDBMapper,
    anilist: AniListGraphQL,
    require_owner: bool = True,
    logger: Callable[..., None] | None = None,
) -> dict[str, Any]:
    """Sync one PLEX event to AniList.

    Returns {"ok", "outcome", ...}; outcome is "handled", "ignored" or
    "mapping_failed". Only transport failures raise.
    """
    acc_title = (event.account.title if event.account else "") or ""
    media_name = _media_name(event.metadata)
    _emit(logger, f"incoming '{event.event}' user='{acc_title}' media='{media_name}'", "DEBUG")

    if event.event != SCROBBLE_EVENT:
        return _result("ignored", reason="event")

    if require_owner and not (event.user or event.owner):
        _emit(logger, f"ignored non-owner user '{acc_title}'", "DEBUG")
        return _result("ignored", reason="user")

    ident = extract_media_identifier(event)
    if ident is None:
        guid = event.metadata.guid if event.metadata else ""
        _emit(logger, f"ignored guid '{guid}' (not a hama anidb guid)", "DEBUG")
        return _result("ignored", reason="guid")

    if ident.anidb_id <= 0:
        return _result("ignored", reason="guid")
    if ident.season == 0:
        # hama files specials under season 0; AniList progress counts regular episodes only
        _emit(logger, f"ignored special anidb:{ident.anidb_id} episode {ident.episode}", "DEBUG")
        return _result("ignored", reason="special", anidb=ident.anidb_id)
    if not ident.episode or ident.episode <= 0:
        return _result("ignored", reason="episode", anidb=ident.anidb_id)

    anilist_id = mapper.resolve_anilist_id(ident.anidb_id)
    if anilist_id is None:
        _emit(logger, f"no AniList id for anidb:{ident.anidb_id} ({media_name})", "WARN")
        return _result("mapping_failed", anidb=ident.anidb_id)

    res = anilist.sync_progress(token, anilist_id, ident.episode)
    if res.get("ok"):
        action = "updated" if res.get("updated") else "up to date"
        _emit(logger, f"user='{acc_title}' anilist:{anilist_id} episode {ident.episode} {action} - {media_name}", "INFO")
    else:
        _emit(logger, f"anilist:{anilist_id} sync failed: {res.get('error')}", "ERROR")

    return _result(
        "handled",
        anidb=ident.anidb_id,
        anilist=anilist_id,
        episode=ident.episode,
        synced=bool(res.get("ok")),
        updated=bool(res.get("updated")),
    )
