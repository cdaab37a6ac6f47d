# as_platform/url_validation.py
# Redirect and webhook URL helpers.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

# PLEX rejects webhook URLs longer than this.
PLEX_WEBHOOK_URL_LIMIT = 512


def base_url(url: str) -> str:
    """Return *url* without query string or fragment.

    The same value is sent as redirect_uri on authorize and on exchange;
    AniList rejects the exchange if they differ.
    """
    parts = urlsplit((url or "").strip())
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def build_webhook_url(base: str, token: str) -> str:
    return f"{base_url(base)}?{urlencode({'token': token})}"


def token_from_url(url: str) -> str | None:
    values = parse_qs(urlsplit(url or "").query, keep_blank_values=True).get("token")
    if not values:
        return None
    return values[0]


def validate_webhook_url(url: str, field_name: str = "webhook_url") -> list[str]:
    """Return a list of warning strings for a webhook URL handed to PLEX."""
    warnings: list[str] = []
    raw = (url or "").strip()
    if not raw:
        return warnings

    parts = urlsplit(raw)

    if parts.scheme not in ("http", "https"):
        warnings.append(f"{field_name}: scheme '{parts.scheme}' is not http or https")

    if not parts.hostname:
        warnings.append(f"{field_name}: no hostname found in URL")

    if parts.scheme == "http" and parts.hostname not in (None, "localhost", "127.0.0.1"):
        warnings.append(f"{field_name}: credential travels over plain http")

    if len(raw) > PLEX_WEBHOOK_URL_LIMIT:
        warnings.append(
            f"{field_name}: URL is {len(raw)} characters, PLEX accepts at most {PLEX_WEBHOOK_URL_LIMIT}"
        )

    return warnings
