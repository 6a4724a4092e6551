# tests/test_config.py

from __future__ import annotations

from pathlib import Path

from mission_control.config import Settings


def test_defaults_are_local_only(monkeypatch) -> None:
    for name in ("MC_API_URL", "MC_API_TOKEN", "MC_DATA_DIR", "MC_LEDGER_DB_PATH", "MC_MAX_RETRIES",
                 "MC_BASE_DELAY_MS", "MC_FAIL_FAST_STATUSES", "MC_FLUSH_ON_ENQUEUE"):
        monkeypatch.delenv(name, raising=False)

    s = Settings.from_env()

    assert s.api_url == ""
    assert s.api_token is None
    assert s.max_retries == 5
    assert s.base_delay_ms == 1000
    assert s.fail_fast_statuses == frozenset()
    assert s.flush_on_enqueue is False
    assert s.ledger_db_path == Path(".local/mission_control") / "ledger.sqlite3"


def test_env_overrides(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("MC_API_URL", " https://mc.example ")
    monkeypatch.setenv("MC_API_TOKEN", "secret")
    monkeypatch.setenv("MC_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("MC_LEDGER_DB_PATH", raising=False)
    monkeypatch.setenv("MC_MAX_RETRIES", "3")
    monkeypatch.setenv("MC_BASE_DELAY_MS", "not-a-number")
    monkeypatch.setenv("MC_FAIL_FAST_STATUSES", "400, 422 oops")
    monkeypatch.setenv("MC_FLUSH_ON_ENQUEUE", "yes")

    s = Settings.from_env()

    assert s.api_url == "https://mc.example"
    assert s.api_token == "secret"
    assert s.ledger_db_path == tmp_path / "ledger.sqlite3"
    assert s.max_retries == 3
    assert s.base_delay_ms == 1000
    assert s.fail_fast_statuses == frozenset({400, 422})
    assert s.flush_on_enqueue is True
