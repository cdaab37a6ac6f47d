# tests/test_url_validation.py
from __future__ import annotations

from as_platform.url_validation import (
    PLEX_WEBHOOK_URL_LIMIT,
    base_url,
    build_webhook_url,
    token_from_url,
    validate_webhook_url,
)


def test_base_url_strips_query_and_fragment():
    assert base_url("https://host.example/api/hook?code=abc&x=1#frag") == "https://host.example/api/hook"


def test_base_url_keeps_port_and_path():
    assert base_url("http://10.0.0.5:8787/webhook/anilist") == "http://10.0.0.5:8787/webhook/anilist"


def test_build_webhook_url_replaces_existing_query():
    url = build_webhook_url("https://host.example/webhook/anilist?code=old", "tok")
    assert url == "https://host.example/webhook/anilist?token=tok"


def test_long_token_survives_round_trip():
    token = "eyJ0eXAiOiJKV1QiLCJhbGciOiJSUzI1NiJ9." + "a1B2-c3_D4" * 110 + ".sig"
    assert len(token) > 1000
    url = build_webhook_url("https://host.example/webhook/anilist", token)
    assert token_from_url(url) == token


def test_token_from_url_missing():
    assert token_from_url("https://host.example/webhook/anilist") is None


def test_valid_https_url_no_warnings():
    assert validate_webhook_url("https://host.example/webhook/anilist?token=abc") == []


def test_empty_url_no_warnings():
    assert validate_webhook_url("") == []


def test_bad_scheme():
    warnings = validate_webhook_url("ftp://host/data")
    assert any("scheme" in w for w in warnings)


def test_missing_hostname():
    warnings = validate_webhook_url("https://")
    assert any("hostname" in w.lower() for w in warnings)


def test_plain_http_to_remote_host():
    warnings = validate_webhook_url("http://host.example/webhook/anilist?token=abc")
    assert any("plain http" in w for w in warnings)


def test_plain_http_localhost_allowed():
    assert validate_webhook_url("http://localhost:8787/webhook/anilist?token=abc") == []


def test_too_long_for_plex():
    url = "https://host.example/webhook/anilist?token=" + "x" * PLEX_WEBHOOK_URL_LIMIT
    warnings = validate_webhook_url(url)
    assert any(str(PLEX_WEBHOOK_URL_LIMIT) in w for w in warnings)
