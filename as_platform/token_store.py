# as_platform/token_store.py
# AniScrobble - opaque webhook handle -> AniList access token store.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import secrets
import threading
import time
from pathlib import Path
from typing import Any, Callable, Protocol

from _logging import log as BASE_LOG
from as_platform.config_base import _read_json, _write_json_atomic


def new_handle() -> str:
    # 16 random bytes -> 22 url-safe characters
    return secrets.token_urlsafe(16)


class TokenStore(Protocol):
    def put(self, handle: str, token: str) -> None: ...

    def get(self, handle: str) -> str | None: ...


class MemoryTokenStore:
    """Process-local store; handles die with the process."""

    def __init__(self, ttl: float, clock: Callable[[], float] = time.time):
        self.ttl = float(ttl)
        self._clock = clock
        self._data: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def put(self, handle: str, token: str) -> None:
        now = self._clock()
        with self._lock:
            self._data = {h: v for h, v in self._data.items() if v[1] > now}
            self._data[handle] = (token, now + self.ttl)

    def get(self, handle: str) -> str | None:
        with self._lock:
            hit = self._data.get(handle)
        if not hit or hit[1] <= self._clock():
            return None
        return hit[0]


def _expires_at(entry: Any) -> float:
    if not isinstance(entry, dict):
        return 0.0
    try:
        return float(entry.get("expires_at") or 0)
    except (TypeError, ValueError):
        return 0.0


class JsonTokenStore:
    """Handles persisted to a JSON file, rewritten atomically on every put.

    A file that is not valid JSON reads as empty; the next put replaces it.
    """

    def __init__(self, path: Path, ttl: float, clock: Callable[[], float] = time.time):
        self.path = Path(path)
        self.ttl = float(ttl)
        self._clock = clock
        self._lock = threading.Lock()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = _read_json(self.path)
        except ValueError as e:
            BASE_LOG(f"token store {self.path} is not valid JSON, treating as empty: {e}", level="WARN", module="TOKENS")
            return {}
        return data if isinstance(data, dict) else {}

    def put(self, handle: str, token: str) -> None:
        now = self._clock()
        with self._lock:
            data = {h: v for h, v in self._load().items() if _expires_at(v) > now}
            data[handle] = {"token": token, "created_at": int(now), "expires_at": now + self.ttl}
            _write_json_atomic(self.path, data)

    def get(self, handle: str) -> str | None:
        with self._lock:
            entry = self._load().get(handle)
        if _expires_at(entry) <= self._clock():
            return None
        tok = str(entry.get("token") or "")
        return tok or None


def build_store(mode: str, path: Path, ttl: float) -> TokenStore | None:
    if mode == "json":
        return JsonTokenStore(path, ttl)
    if mode == "memory":
        return MemoryTokenStore(ttl)
    return None
