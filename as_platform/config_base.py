# as_platform/config_base.py
# AniScrobble - process configuration, loaded once from the environment.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import copy
import json
import os
import secrets
import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import parse_qsl, quote, urlencode


class ConfigError(RuntimeError):
    """Raised at start-up when required settings are missing or invalid."""


def CONFIG_BASE(env: Mapping[str, str] | None = None) -> Path:
    env = os.environ if env is None else env
    raw = (env.get("CONFIG_BASE") or "").strip()
    if raw:
        return Path(raw)

    if Path("/app").exists():
        # In container image mount /config as a writable volume
        return Path("/config")
    return Path(__file__).resolve().parents[1]


DEFAULT_MAPPING_URL = "https://arm.haglund.dev"
TOKEN_STORE_MODES = ("json", "memory", "none")


@dataclass(frozen=True)
class ClientCredentials:
    client_id: str
    client_secret: str = field(repr=False)

    def __post_init__(self) -> None:
        if not (self.client_id or "").strip():
            raise ConfigError("ANILIST_CLIENT_ID is not set")
        if not (self.client_secret or "").strip():
            raise ConfigError("ANILIST_CLIENT_SECRET is not set")


@dataclass(frozen=True)
class Settings:
    credentials: ClientCredentials
    config_dir: Path
    debug: bool = False
    require_owner: bool = True
    token_store: str = "json"
    token_ttl_days: int = 365
    mapping_url: str = DEFAULT_MAPPING_URL
    http_timeout: float = 15.0
    host: str = "0.0.0.0"
    port: int = 8787

    @property
    def token_store_path(self) -> Path:
        return self.config_dir / "tokens.json"

    @property
    def token_ttl_seconds(self) -> int:
        return int(self.token_ttl_days) * 86400

    def as_dict(self) -> dict[str, Any]:
        return {
            "anilist": {
                "client_id": self.credentials.client_id,
                "client_secret": self.credentials.client_secret,
            },
            "runtime": {
                "debug": self.debug,
                "require_owner": self.require_owner,
                "http_timeout": self.http_timeout,
                "host": self.host,
                "port": self.port,
            },
            "token_store": {
                "mode": self.token_store,
                "path": str(self.token_store_path),
                "ttl_days": self.token_ttl_days,
            },
            "mapping": {"base_url": self.mapping_url},
        }


def _flag(raw: str | None, default: bool) -> bool:
    s = (raw or "").strip().lower()
    if not s:
        return default
    if s in ("1", "true", "yes", "on"):
        return True
    if s in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"invalid boolean value: {raw!r}")


def _number(env: Mapping[str, str], key: str, default: float, cast: type = int) -> Any:
    raw = (env.get(key) or "").strip()
    if not raw:
        return cast(default)
    try:
        val = cast(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from None
    if val <= 0:
        raise ConfigError(f"{key} must be positive, got {raw!r}")
    return val


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build the immutable process settings.

    Called once at start-up; components receive the result instead of
    reading the environment themselves. Missing credentials fail fast.
    """
    env = os.environ if env is None else env
    credentials = ClientCredentials(
        client_id=(env.get("ANILIST_CLIENT_ID") or "").strip(),
        client_secret=(env.get("ANILIST_CLIENT_SECRET") or "").strip(),
    )

    mode = (env.get("ANISCROBBLE_TOKEN_STORE") or "json").strip().lower()
    if mode not in TOKEN_STORE_MODES:
        raise ConfigError(f"ANISCROBBLE_TOKEN_STORE must be one of {', '.join(TOKEN_STORE_MODES)}")

    mapping_url = (env.get("ANISCROBBLE_MAPPING_URL") or DEFAULT_MAPPING_URL).strip().rstrip("/")
    if "://" not in mapping_url:
        raise ConfigError(f"ANISCROBBLE_MAPPING_URL is not an absolute URL: {mapping_url!r}")

    return Settings(
        credentials=credentials,
        config_dir=CONFIG_BASE(env),
        debug=_flag(env.get("ANISCROBBLE_DEBUG"), False),
        require_owner=_flag(env.get("ANISCROBBLE_REQUIRE_OWNER"), True),
        token_store=mode,
        token_ttl_days=_number(env, "ANISCROBBLE_TOKEN_TTL_DAYS", 365),
        mapping_url=mapping_url,
        http_timeout=_number(env, "ANISCROBBLE_HTTP_TIMEOUT", 15.0, float),
        host=(env.get("ANISCROBBLE_HOST") or "0.0.0.0").strip(),
        port=_number(env, "ANISCROBBLE_PORT", 8787),
    )


_REDACT = "••••••••"

# Secret field paths inside Settings.as_dict(), then secret query-string keys.
_SECRET_PATHS: list[tuple[str, ...]] = [
    ("anilist", "client_secret"),
]

_SECRET_QUERY_KEYS = frozenset({"code", "token", "access_token", "client_secret"})


def _redact_path(d: dict[str, Any], path: tuple[str, ...]) -> None:
    """Walk *path* inside *d* and replace the leaf with _REDACT if truthy."""
    node: Any = d
    for key in path[:-1]:
        if not isinstance(node, dict):
            return
        node = node.get(key)
    if isinstance(node, dict):
        leaf = path[-1]
        if node.get(leaf):
            node[leaf] = _REDACT


def redact_config(cfg: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = copy.deepcopy(cfg or {})
    for path in _SECRET_PATHS:
        _redact_path(out, path)
    return out


def redact_query(query: Mapping[str, str] | str) -> str:
    if isinstance(query, str):
        pairs = parse_qsl(query, keep_blank_values=True)
    else:
        pairs = list(query.items())
    parts: list[str] = []
    for k, v in pairs:
        if k in _SECRET_QUERY_KEYS and v:
            parts.append(f"{quote(k)}={_REDACT}")
        else:
            parts.append(urlencode({k: v}))
    return "&".join(parts)


def _read_json(p: Path) -> dict[str, Any]:
    with p.open("r", encoding="utf-8") as f:
        return json.load(f)


def _write_json_atomic(p: Path, data: dict[str, Any]) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    suffix = f".{time.time_ns()}.{os.getpid()}.{threading.get_ident()}.{secrets.token_hex(4)}.tmp"
    tmp = p.with_suffix(suffix)

    with tmp.open("w", encoding="utf-8", newline="\n") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write("\n")
    tmp.replace(p)
