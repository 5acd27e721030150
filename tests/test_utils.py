from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from traffic_stats.core.utils import JsonFormatter, clamp, env_flag, safe_json_dumps, setup_logging
from traffic_stats.monitoring.rate import RateSample


def test_clamp() -> None:
    assert clamp(-5, 0, 10) == 0
    assert clamp(5, 0, 10) == 5
    assert clamp(2**80, 0, 10) == 10


def test_safe_json_dumps_handles_dataclasses() -> None:
    assert json.loads(safe_json_dumps({"s": RateSample(1, 2)})) == {
        "s": {"download_kbps": 1, "upload_kbps": 2}
    }


def test_safe_json_dumps_normalizes_datetimes_to_utc() -> None:
    naive = datetime(2026, 1, 1, 12, 0, 0)
    aware = datetime(2026, 1, 1, 13, 0, 0, tzinfo=timezone(timedelta(hours=1)))
    out = json.loads(safe_json_dumps({"naive": naive, "aware": aware}))
    assert out == {"naive": "2026-01-01T12:00:00+00:00", "aware": "2026-01-01T12:00:00+00:00"}


def test_json_formatter_includes_extras() -> None:
    record = logging.LogRecord("traffic_stats.monitor", logging.INFO, __file__, 1, "tick", None, None)
    record.download_kbps = 8
    out = json.loads(JsonFormatter().format(record))
    assert out["msg"] == "tick"
    assert out["logger"] == "traffic_stats.monitor"
    assert out["download_kbps"] == 8
    assert "message" not in out
    assert "lineno" not in out


def test_env_flag(monkeypatch) -> None:
    monkeypatch.setenv("TS_FLAG", "yes")
    assert env_flag("TS_FLAG") is True
    monkeypatch.setenv("TS_FLAG", "off")
    assert env_flag("TS_FLAG") is False
    monkeypatch.delenv("TS_FLAG")
    assert env_flag("TS_FLAG", default=True) is True


@pytest.fixture
def _restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.usefixtures("_restore_root_logging")
def test_setup_logging_writes_text_and_jsonl(tmp_path: Path) -> None:
    setup_logging(str(tmp_path / "logs"), level="INFO")
    logging.getLogger("traffic_stats.test").info("hello", extra={"iface": "en0"})
    for h in logging.getLogger().handlers:
        h.flush()
    assert "hello" in (tmp_path / "logs" / "traffic_stats.log").read_text(encoding="utf-8")
    line = (tmp_path / "logs" / "traffic_stats.jsonl").read_text(encoding="utf-8").strip().splitlines()[-1]
    assert json.loads(line)["iface"] == "en0"
