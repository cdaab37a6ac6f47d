# providers/mapping/anidb.py
# AniScrobble - AniDB -> AniList id resolution via the arm mapping service
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from typing import Any, Callable

import requests

from _logging import log as BASE_LOG
from as_platform.config_base import DEFAULT_MAPPING_URL
from as_platform.upstream import request


class AniDBMapper:
    def __init__(
        self,
        base_url: str = DEFAULT_MAPPING_URL,
        *,
        session: requests.Session | None = None,
        timeout: float = 15.0,
        logger: Callable[..., None] | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.timeout = timeout
        self.logger = logger

    def _log(self, msg: str, level: str = "INFO") -> None:
        (self.logger or BASE_LOG)(msg, level=level, module="MAPPING")

    def resolve_anilist_id(self, anidb_id: int) -> int | None:
        """Return the AniList id for *anidb_id*, or None when unknown.

        Bad statuses and malformed answers read as "unknown" so one odd id
        never aborts an event. Transport failures still raise.
        """
        if not isinstance(anidb_id, int) or anidb_id <= 0:
            return None

        r = request(
            "GET", f"{self.base_url}/api/ids",
            params={"source": "anidb", "id": anidb_id},
            headers={"Accept": "application/json"},
            session=self.session, timeout=self.timeout, logger=self.logger,
        )
        if r.status_code != 200:
            self._log(f"anidb:{anidb_id} lookup returned {r.status_code}", "WARN")
            return None

        try:
            body: Any = r.json()
        except ValueError:
            self._log(f"anidb:{anidb_id} lookup returned invalid JSON", "WARN")
            return None

        raw = body.get("anilist") if isinstance(body, dict) else None
        if isinstance(raw, bool) or raw is None:
            self._log(f"anidb:{anidb_id} has no AniList mapping", "DEBUG")
            return None
        try:
            anilist_id = int(raw)
        except (TypeError, ValueError):
            return None
        if anilist_id <= 0:
            return None
        self._log(f"anidb:{anidb_id} -> anilist:{anilist_id}", "DEBUG")
        return anilist_id
