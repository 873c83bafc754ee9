from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import streamlit as st

CONFIG_FILE_NAME = "settings.json"
ENV_DATA_DIR = "FARM_STALL_DATA_DIR"
ENV_LOG_LEVEL = "FARM_STALL_LOG_LEVEL"
SESSION_DATA_DIR_KEY = "farm_stall_data_dir"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    log_file: Path
    currency: str = "R"
    log_level: str = "INFO"


def _default_data_dir() -> Path:
    return Path.home() / ".farm_stall"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            return json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
    return {}


def build_settings(data_dir: Path, *, log_level: Optional[str] = None) -> Settings:
    data_dir = Path(data_dir).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)
    level = (log_level or os.getenv(ENV_LOG_LEVEL) or "INFO").strip().upper()
    return Settings(
        data_dir=data_dir,
        db_path=data_dir / "farm_stall.db",
        log_file=data_dir / "logs" / "farm_stall.log",
        log_level=level,
    )


def persist_data_dir(data_dir_str: str) -> None:
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    # The pointer lives in the default folder so the next start finds it.
    default_dir = _default_data_dir()
    default_dir.mkdir(parents=True, exist_ok=True)
    cfg = default_dir / CONFIG_FILE_NAME
    payload = {"data_dir": str(data_dir)}
    cfg.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    st.session_state[SESSION_DATA_DIR_KEY] = str(data_dir)


@st.cache_resource
def get_settings() -> Settings:
    # Priority order:
    # 1) Session state (set via Data Management page)
    # 2) Environment variable
    # 3) Persisted settings in default folder
    # 4) Default folder
    if SESSION_DATA_DIR_KEY in st.session_state:
        data_dir = Path(st.session_state[SESSION_DATA_DIR_KEY])
    elif os.getenv(ENV_DATA_DIR):
        data_dir = Path(os.getenv(ENV_DATA_DIR, ""))
    else:
        default_dir = _default_data_dir()
        persisted = _load_persisted_settings(default_dir)
        data_dir = Path(persisted.get("data_dir", default_dir))

    return build_settings(data_dir)
