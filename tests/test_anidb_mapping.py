# tests/test_anidb_mapping.py
from __future__ import annotations

import pytest
import requests
import responses
from responses import matchers

from as_platform.upstream import UpstreamTransportError
from providers.mapping.anidb import AniDBMapper

IDS_URL = "https://arm.haglund.dev/api/ids"


def _mapper(recorder) -> AniDBMapper:
    return AniDBMapper(logger=recorder)


@responses.activate
def test_resolves_anilist_id(recorder):
    responses.add(
        responses.GET,
        IDS_URL,
        json={"anidb": 12345, "anilist": 6789, "myanimelist": 1},
        match=[matchers.query_param_matcher({"source": "anidb", "id": "12345"})],
    )
    assert _mapper(recorder).resolve_anilist_id(12345) == 6789


@responses.activate
def test_null_mapping_is_absent(recorder):
    responses.add(responses.GET, IDS_URL, json={"anidb": 12345, "anilist": None})
    assert _mapper(recorder).resolve_anilist_id(12345) is None


@responses.activate
def test_missing_field_is_absent(recorder):
    responses.add(responses.GET, IDS_URL, json={"anidb": 12345})
    assert _mapper(recorder).resolve_anilist_id(12345) is None


@responses.activate
@pytest.mark.parametrize("status", [404, 500])
def test_non_200_is_absent(recorder, status):
    responses.add(responses.GET, IDS_URL, json={"error": "x"}, status=status)
    assert _mapper(recorder).resolve_anilist_id(12345) is None


@responses.activate
def test_invalid_json_is_absent(recorder):
    responses.add(responses.GET, IDS_URL, body="<html>oops</html>", status=200)
    assert _mapper(recorder).resolve_anilist_id(12345) is None


@responses.activate
def test_null_document_is_absent(recorder):
    responses.add(responses.GET, IDS_URL, body="null", status=200, content_type="application/json")
    assert _mapper(recorder).resolve_anilist_id(12345) is None


@responses.activate
def test_non_positive_id_skips_call(recorder):
    assert _mapper(recorder).resolve_anilist_id(0) is None
    assert len(responses.calls) == 0


@responses.activate
def test_custom_base_url(recorder):
    responses.add(responses.GET, "http://mapper.local:3000/api/ids", json={"anilist": 1})
    mapper = AniDBMapper("http://mapper.local:3000/", logger=recorder)
    assert mapper.resolve_anilist_id(5) == 1


@responses.activate
def test_transport_error_raises(recorder):
    responses.add(responses.GET, IDS_URL, body=requests.Timeout("slow"))
    with pytest.raises(UpstreamTransportError):
        _mapper(recorder).resolve_anilist_id(12345)
