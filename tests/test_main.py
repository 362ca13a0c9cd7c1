"""Tests for the command-line entry point."""

import json
from pathlib import Path

import pytest

from argus_tripwire.__main__ import main
from argus_tripwire.config import clear_settings_cache

ADDRESS = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


@pytest.fixture(autouse=True)
def cli_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    for name in ("MONITOR_ENABLED", "MONITOR_TARGET_ADDRESS", "MONITOR_TOPIC_FILTER", "DRY_RUN"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DEMO_EVENT_INTERVAL_SECONDS", "0.01")
    clear_settings_cache()
    yield
    clear_settings_cache()


def test_run_requires_enabled_monitor() -> None:
    assert main(["run"]) == 2


def test_demo_requires_address() -> None:
    assert main(["demo"]) == 2


def test_demo_prints_incident(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setenv("MONITOR_TARGET_ADDRESS", ADDRESS)

    assert main(["demo"]) == 0

    out = capsys.readouterr().out
    assert "Injected 8 synthetic events; status=triggered, count=8" in out
    assert "INCIDENT REPORT" in out
    assert "Event Count: 8 events" in out


def test_demo_resolve(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setenv("MONITOR_TARGET_ADDRESS", ADDRESS)

    assert main(["demo", "--resolve"]) == 0

    out = capsys.readouterr().out
    assert "Resolved; status=safe" in out
    feed = json.loads(out[out.index("[") :])
    assert feed[0]["level"] == "success"
    assert feed[0]["channel"] == "Recovery"


def test_unknown_command_exits() -> None:
    with pytest.raises(SystemExit):
        main(["watch"])
