"""Streamlit glue: per-session settings override and one cached Database."""

from __future__ import annotations

from pathlib import Path

import streamlit as st

from pos_core.config import Settings, get_settings, persist_data_dir
from pos_core.db import Database

SESSION_DATA_DIR = "pos_data_dir"


@st.cache_resource
def get_database(db_path: Path) -> Database:
    return Database(db_path).initialize()


def current_settings() -> Settings:
    return get_settings(st.session_state.get(SESSION_DATA_DIR))


def open_database() -> tuple[Settings, Database]:
    settings = current_settings()
    return settings, get_database(settings.db_path)


def use_data_dir(data_dir_str: str) -> None:
    data_dir = persist_data_dir(data_dir_str)
    # Update session for immediate effect
    st.session_state[SESSION_DATA_DIR] = str(data_dir)
