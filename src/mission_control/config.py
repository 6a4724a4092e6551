# src/mission_control/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- An empty API URL means local-only mode: nothing is sent, nothing is queued.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

ENV_PREFIX = "MC"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int_set(name: str) -> frozenset[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return frozenset()
    out: set[int] = set()
    for part in raw.replace(",", " ").split():
        try:
            out.add(int(part))
        except ValueError:
            continue
    return frozenset(out)


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Backend ----
    api_url: str
    api_token: Optional[str]
    http_connect_timeout: float
    http_read_timeout: float

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    ledger_db_path: Path

    # ---- Replay policy ----
    max_retries: int
    base_delay_ms: int
    fail_fast_statuses: frozenset[int]
    flush_on_enqueue: bool
    start_online: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "mission-control") or "mission-control"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        api_url = _env(_k("API_URL"), "").strip()
        api_token = (_env(_k("API_TOKEN"), "").strip()) or None

        connect_timeout = _env_float(_k("HTTP_CONNECT_TIMEOUT_SECONDS"), 5.0)
        read_timeout = _env_float(_k("HTTP_READ_TIMEOUT_SECONDS"), 15.0)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/mission_control"))
        ledger_db_path = _env_path(_k("LEDGER_DB_PATH"), data_dir / "ledger.sqlite3")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            api_url=api_url,
            api_token=api_token,
            http_connect_timeout=connect_timeout,
            http_read_timeout=max(read_timeout, connect_timeout),
            data_dir=data_dir,
            ledger_db_path=ledger_db_path,
            max_retries=max(0, _env_int(_k("MAX_RETRIES"), 5)),
            base_delay_ms=max(0, _env_int(_k("BASE_DELAY_MS"), 1000)),
            fail_fast_statuses=_env_int_set(_k("FAIL_FAST_STATUSES")),
            flush_on_enqueue=_env_bool(_k("FLUSH_ON_ENQUEUE"), False),
            start_online=_env_bool(_k("START_ONLINE"), True),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
