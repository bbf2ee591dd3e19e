"""Settings loaded from ``PLANSYNC_*`` environment variables.

Nothing here needs secrets at import time; missing keys simply disable the
matching remote store.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from plansync.infrastructure.backup.jsonbin_gateway import DEFAULT_BASE_URL
from plansync.infrastructure.network.connectivity import DEFAULT_PROBE_URL
from plansync.utils import get_base_path

ENV_PREFIX = "PLANSYNC"


def _k(suffix: str) -> str:
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


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


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    log_level: str

    # ---- Local data ----
    data_dir: Path
    db_path: Path
    cache_dir: Path

    # ---- Firebase (identity + Firestore) ----
    firebase_project_id: str
    firebase_api_key: str
    firestore_database: str

    # ---- JSONBin backup ----
    jsonbin_base_url: str
    jsonbin_api_key: str

    # ---- Network ----
    request_timeout: float
    connectivity_url: str
    connectivity_ttl: float
    sync_interval_ms: int


def load_settings() -> Settings:
    data_dir = _env_path(_k("DATA_DIR"), Path(get_base_path()) / "data")
    return Settings(
        log_level=_env(_k("LOG_LEVEL"), "INFO").upper(),
        data_dir=data_dir,
        db_path=_env_path(_k("DB_PATH"), data_dir / "plansync.db"),
        cache_dir=_env_path(_k("CACHE_DIR"), data_dir / "cache"),
        firebase_project_id=_env(_k("FIREBASE_PROJECT_ID")).strip(),
        firebase_api_key=_env(_k("FIREBASE_API_KEY")).strip(),
        firestore_database=_env(_k("FIRESTORE_DATABASE"), "(default)").strip() or "(default)",
        jsonbin_base_url=_env(_k("JSONBIN_BASE_URL"), DEFAULT_BASE_URL).strip() or DEFAULT_BASE_URL,
        jsonbin_api_key=_env(_k("JSONBIN_API_KEY")).strip(),
        request_timeout=max(_env_float(_k("REQUEST_TIMEOUT"), 30.0), 1.0),
        connectivity_url=_env(_k("CONNECTIVITY_URL"), DEFAULT_PROBE_URL).strip() or DEFAULT_PROBE_URL,
        connectivity_ttl=max(_env_float(_k("CONNECTIVITY_TTL"), 15.0), 0.0),
        sync_interval_ms=max(_env_int(_k("SYNC_INTERVAL_MS"), 60_000), 1_000),
    )
