# config.py

#============================================================#
#                          Rubi To-Do                        #
#============================================================#
# Purpose     : Runtime settings. Streamlit secrets win,     #
#               then environment variables, then defaults.   #
#============================================================#

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

try:
    import streamlit as st
    _secrets = getattr(st, "secrets", {})
except Exception:
    _secrets = {}


def _lookup(name: str) -> Optional[str]:
    # st.secrets raises when no secrets.toml exists
    try:
        value = _secrets.get(name)
    except Exception:
        value = None
    if value is None:
        value = os.getenv(name)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def setting_str(name: str, default: str) -> str:
    value = _lookup(name)
    return default if value is None else value


def setting_int(name: str, default: int) -> int:
    value = _lookup(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Application settings.

    Keys (secrets or environment):
    - DATABASE_URL: SQLAlchemy URL of the document store (default: local SQLite file)
    - TASKS_GLOBAL_LIMIT: cap on tasks delivered by the "all clients" view (default: 500)
    - LOG_LEVEL: logging level name (default: INFO)
    - REPORT_TITLE: default title offered by the report dialog
    """

    database_url: str
    tasks_global_limit: int
    log_level: str
    report_title: str

    @classmethod
    def load(cls) -> "Settings":
        return cls(
            database_url=setting_str("DATABASE_URL", "sqlite:///rubi_todo.db"),
            tasks_global_limit=max(1, setting_int("TASKS_GLOBAL_LIMIT", 500)),
            log_level=setting_str("LOG_LEVEL", "INFO").upper(),
            report_title=setting_str("REPORT_TITLE", "Agency To Do List"),
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
