# AniScrobble test scripts
from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from as_platform.config_base import ClientCredentials  # noqa: E402

HAMA_GUID = "com.plexapp.agents.hama://anidb-12345/1/2?lang=en"


class RecordingLogger:
    def __init__(self) -> None:
        self.lines: list[tuple[str, str, str]] = []

    def __call__(self, msg: str, *, level: str = "INFO", module: str | None = None, **_: Any) -> None:
        self.lines.append((level.upper(), module or "", msg))

    def text(self) -> str:
        return "\n".join(m for _, _, m in self.lines)


@pytest.fixture()
def config_base(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("CONFIG_BASE", str(tmp_path))
    return tmp_path


@pytest.fixture()
def credentials() -> ClientCredentials:
    return ClientCredentials(client_id="4242", client_secret="s3cr3t-value")


@pytest.fixture()
def recorder() -> RecordingLogger:
    return RecordingLogger()


def plex_event(
    event: str = "media.scrobble",
    guid: str = HAMA_GUID,
    season: int | None = 1,
    episode: int | None = 2,
    user: bool = True,
    owner: bool = True,
) -> dict[str, Any]:
    return {
        "event": event,
        "user": user,
        "owner": owner,
        "Account": {"id": 1, "title": "someone"},
        "Server": {"title": "box", "uuid": "abc"},
        "Metadata": {
            "type": "episode",
            "guid": guid,
            "title": "Episode Two",
            "grandparentTitle": "Some Show",
            "parentIndex": season,
            "index": episode,
        },
    }


def plex_payload(**kwargs: Any) -> str:
    return json.dumps(plex_event(**kwargs))
