# tests/test_logging.py
from __future__ import annotations

import io
import json

from _logging import Logger


def _logger(**kw) -> tuple[Logger, io.StringIO]:
    buf = io.StringIO()
    return Logger(stream=buf, use_color=False, show_time=False, **kw), buf


def test_module_tag_and_level():
    lg, buf = _logger()
    lg("token exchange failed", level="ERROR", module="AUTH")
    assert buf.getvalue() == "[AUTH] ERROR token exchange failed\n"


def test_child_keeps_module():
    lg, buf = _logger()
    lg.child("BOOT").info("ready")
    assert buf.getvalue().startswith("[BOOT] INFO ready")


def test_debug_is_off_until_enabled():
    lg, buf = _logger()
    lg("hidden", level="DEBUG")
    assert buf.getvalue() == ""

    lg.enable_debug()
    lg("shown", level="DEBUG", module="SCROBBLE")
    assert "[SCROBBLE] DEBUG shown" in buf.getvalue()


def test_debug_ignores_environment(monkeypatch):
    monkeypatch.setenv("ANISCROBBLE_DEBUG", "1")
    lg, buf = _logger()
    lg("hidden", level="DEBUG")
    assert buf.getvalue() == ""


def test_child_inherits_debug_gate():
    lg, buf = _logger(debug=True)
    lg.child("BOOT").debug("settings")
    assert "[BOOT] DEBUG settings" in buf.getvalue()


def test_level_threshold():
    lg, buf = _logger(level="warn")
    lg.info("quiet")
    lg.warn("loud")
    assert buf.getvalue() == "WARN loud\n"


def test_success_is_info_severity():
    lg, buf = _logger()
    lg("done", level="success", module="ANILIST")
    assert buf.getvalue() == "[ANILIST] SUCCESS done\n"


def test_json_sink(tmp_path):
    path = tmp_path / "log.jsonl"
    lg, _ = _logger()
    lg.enable_json(str(path))
    lg("mapped", level="INFO", module="MAPPING", extra={"anidb": 1})
    lg._json_stream.close()

    rec = json.loads(path.read_text(encoding="utf-8").strip())
    assert rec["level"] == "INFO"
    assert rec["msg"] == "mapped"
    assert rec["ctx"] == {"module": "MAPPING"}
    assert rec["extra"] == {"anidb": 1}
