# tests/test_plex_payload.py
from __future__ import annotations

import pytest

from conftest import plex_event, plex_payload
from providers.webhooks.plexanilist import (
    MalformedPayload,
    PlexWebhookEvent,
    decode_payload,
    extract_media_identifier,
)


def test_decode_raw_json_body():
    ev = decode_payload(plex_payload().encode("utf-8"))
    assert ev.event == "media.scrobble"
    assert ev.user is True
    assert ev.metadata is not None
    assert ev.metadata.parentIndex == 1
    assert ev.metadata.index == 2


def test_decode_reads_first_multipart_field():
    fields = [("payload", plex_payload(episode=7)), ("other", "{}")]
    ev = decode_payload(b"--ignored-multipart-framing--", fields)
    assert ev.metadata is not None and ev.metadata.index == 7


def test_decode_ignores_field_name():
    ev = decode_payload(b"", [("whatever", plex_payload())])
    assert ev.event == "media.scrobble"


@pytest.mark.parametrize("body", [b"", b"   ", b"not json", b"[1, 2]", b'"text"'])
def test_decode_rejects_malformed(body: bytes):
    with pytest.raises(MalformedPayload):
        decode_payload(body)


def test_decode_rejects_malformed_field():
    with pytest.raises(MalformedPayload):
        decode_payload(b"", [("payload", "{broken")])


def test_decode_rejects_wrong_types():
    with pytest.raises(MalformedPayload):
        decode_payload(b'{"event": "media.scrobble", "Metadata": {"index": "two"}}')


def test_decode_keeps_unknown_keys():
    ev = decode_payload(b'{"event": "media.play", "Player": {"local": true}}')
    assert ev.event == "media.play"
    assert ev.metadata is None


def test_extract_hama_guid():
    ident = extract_media_identifier(PlexWebhookEvent.model_validate(plex_event()))
    assert ident is not None
    assert ident.anidb_id == 12345
    assert ident.season == 1
    assert ident.episode == 2


def test_extract_leading_zeros_are_digits():
    ev = PlexWebhookEvent.model_validate(plex_event(guid="com.plexapp.agents.hama://anidb-00123/1/1?lang=en"))
    ident = extract_media_identifier(ev)
    assert ident is not None and ident.anidb_id == 123


@pytest.mark.parametrize(
    "guid",
    [
        "com.plexapp.agents.thetvdb://81797/1/1?lang=en",
        "plex://episode/5d9c086c46115600200aa2fe",
        "com.plexapp.agents.hama://tvdb-81797/1/1?lang=en",
        "com.plexapp.agents.hama://anidb-/1/1",
        "",
    ],
)
def test_extract_non_hama_guid(guid: str):
    assert extract_media_identifier(PlexWebhookEvent.model_validate(plex_event(guid=guid))) is None


def test_extract_without_metadata():
    assert extract_media_identifier(PlexWebhookEvent(event="media.scrobble")) is None
