# providers/anilist/graphql.py
# AniScrobble - AniList GraphQL client and episode progress sync
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable

import requests

from _logging import log as BASE_LOG
from as_platform.upstream import body_snippet, request

GQL_URL = "https://graphql.anilist.co"

GQL_VIEWER = "query { Viewer { id name } }"

GQL_MEDIA_PROGRESS = """
query ($mediaId: Int!) {
  Media(id: $mediaId, type: ANIME) {
    id
    episodes
    title { romaji english }
    mediaListEntry { id progress status }
  }
}
""".strip()

GQL_SAVE_PROGRESS = """
mutation ($mediaId: Int!, $progress: Int!, $status: MediaListStatus) {
  SaveMediaListEntry(mediaId: $mediaId, progress: $progress, status: $status) {
    id
    progress
    status
  }
}
""".strip()


def errors_of(doc: Mapping[str, Any] | None) -> list[str]:
    errs = (doc or {}).get("errors")
    if not errs:
        return []
    if not isinstance(errs, list):
        return [str(errs)]
    out: list[str] = []
    for e in errs:
        if isinstance(e, Mapping):
            out.append(str(e.get("message") or "AniList GraphQL error"))
        else:
            out.append(str(e))
    return out


def _next_status(current: str | None, progress: int, episodes: int | None) -> str:
    if episodes and progress >= episodes:
        return "COMPLETED"
    if current == "REPEATING":
        return "REPEATING"
    return "CURRENT"


class AniListGraphQL:
    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        timeout: float = 15.0,
        logger: Callable[..., None] | None = None,
    ):
        self.session = session
        self.timeout = timeout
        self.logger = logger

    def _log(self, msg: str, level: str = "INFO") -> None:
        (self.logger or BASE_LOG)(msg, level=level, module="ANILIST")

    def query(self, document: str, variables: Mapping[str, Any] | None, token: str) -> dict[str, Any]:
        """POST a query or mutation and return the JSON document as-is.

        GraphQL answers 200 even when the query fails, so callers inspect
        the "errors" key. A body that is not JSON is folded into that key.
        """
        payload: dict[str, Any] = {"query": document, "variables": dict(variables or {})}
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        r = request(
            "POST", GQL_URL,
            json=payload, headers=headers,
            session=self.session, timeout=self.timeout, logger=self.logger,
        )
        try:
            doc = r.json()
        except ValueError:
            doc = None
        if not isinstance(doc, dict):
            return {"errors": [{"message": f"non-JSON response: {body_snippet(r, 200)}", "status": r.status_code}]}
        return doc

    def viewer(self, token: str) -> dict[str, Any] | None:
        doc = self.query(GQL_VIEWER, None, token)
        if errors_of(doc):
            return None
        v = (doc.get("data") or {}).get("Viewer")
        return dict(v) if isinstance(v, Mapping) else None

    def sync_progress(self, token: str, media_id: int, episode: int) -> dict[str, Any]:
        """Mark *episode* watched on *media_id* unless AniList is already ahead."""
        doc = self.query(GQL_MEDIA_PROGRESS, {"mediaId": int(media_id)}, token)
        errs = errors_of(doc)
        if errs:
            self._log(f"media {media_id} lookup failed: {errs[0]}", "ERROR")
            return {"ok": False, "error": errs[0]}

        media = (doc.get("data") or {}).get("Media") or {}
        entry = media.get("mediaListEntry") or {}
        current = int(entry.get("progress") or 0)
        episodes = media.get("episodes")
        episodes = int(episodes) if isinstance(episodes, int) and episodes > 0 else None

        # absolute episode numbers can run past the AniList episode count
        progress = min(episode, episodes) if episodes else episode
        if current >= progress:
            self._log(f"media {media_id} already at episode {current} (>= {progress}); skip", "DEBUG")
            return {"ok": True, "updated": False, "progress": current}

        status = _next_status(entry.get("status"), progress, episodes)
        res = self.query(
            GQL_SAVE_PROGRESS,
            {"mediaId": int(media_id), "progress": progress, "status": status},
            token,
        )
        errs = errors_of(res)
        if errs:
            self._log(f"media {media_id} progress update failed: {errs[0]}", "ERROR")
            return {"ok": False, "error": errs[0]}

        saved = (res.get("data") or {}).get("SaveMediaListEntry") or {}
        self._log(f"media {media_id} progress {current} -> {saved.get('progress', progress)} ({status})", "SUCCESS")
        return {
            "ok": True,
            "updated": True,
            "progress": int(saved.get("progress") or progress),
            "status": str(saved.get("status") or status),
        }
