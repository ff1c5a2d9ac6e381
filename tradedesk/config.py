from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

import streamlit as st

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "settings.json"
HISTORY_FILE_NAME = "ai_history_v3.json"
SESSION_DATA_DIR_KEY = "tradedesk_data_dir"

ENV_DATA_DIR = "TRADEDESK_DATA_DIR"
ENV_API_BASE_URL = "TRADEDESK_API_BASE_URL"
ENV_AI_BASE_URL = "TRADEDESK_AI_BASE_URL"
ENV_AI_MODEL = "TRADEDESK_AI_MODEL"
ENV_LOG_LEVEL = "TRADEDESK_LOG_LEVEL"

DEFAULT_AI_BASE_URL = "http://localhost:11434"
DEFAULT_AI_MODEL = "llama3.1:8b"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    history_path: Path
    log_dir: Path
    currency: str = "INR"
    api_base_url: str = ""
    ai_base_url: str = DEFAULT_AI_BASE_URL
    ai_model: str = DEFAULT_AI_MODEL
    ai_timeout_s: float = 120.0
    history_limit: int = 15
    log_level: str = "INFO"


def _default_data_dir() -> Path:
    return Path.home() / ".tradedesk"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            return json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable %s", cfg)
            return {}
    return {}


def persist_data_dir(data_dir_str: str, *, base_dir: Optional[Path] = None) -> Path:
    """Remember a data directory in the default folder's settings.json."""
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    base = base_dir or _default_data_dir()
    base.mkdir(parents=True, exist_ok=True)
    cfg = base / CONFIG_FILE_NAME
    payload = {"data_dir": str(data_dir)}
    cfg.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return data_dir


def load_settings(
    data_dir_override: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    *,
    base_dir: Optional[Path] = None,
) -> Settings:
    # Priority order:
    # 1) Explicit override (session state, set from the Settings page)
    # 2) Environment variable
    # 3) Persisted settings in default folder
    # 4) Default folder
    env = os.environ if env is None else env
    if data_dir_override:
        data_dir = Path(data_dir_override).expanduser().resolve()
    elif env.get(ENV_DATA_DIR):
        data_dir = Path(env.get(ENV_DATA_DIR, "")).expanduser().resolve()
    else:
        default_dir = base_dir or _default_data_dir()
        persisted = _load_persisted_settings(default_dir)
        data_dir = Path(persisted.get("data_dir", default_dir)).expanduser().resolve()

    data_dir.mkdir(parents=True, exist_ok=True)
    return Settings(
        data_dir=data_dir,
        history_path=data_dir / HISTORY_FILE_NAME,
        log_dir=data_dir / "logs",
        api_base_url=str(env.get(ENV_API_BASE_URL, "")).strip(),
        ai_base_url=str(env.get(ENV_AI_BASE_URL, "") or DEFAULT_AI_BASE_URL).rstrip("/"),
        ai_model=str(env.get(ENV_AI_MODEL, "") or DEFAULT_AI_MODEL),
        log_level=str(env.get(ENV_LOG_LEVEL, "") or "INFO").upper(),
    )


@st.cache_resource
def _cached_settings(data_dir_override: Optional[str]) -> Settings:
    return load_settings(data_dir_override)


def get_settings() -> Settings:
    return _cached_settings(st.session_state.get(SESSION_DATA_DIR_KEY))
