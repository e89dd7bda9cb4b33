"""Settings resolution: explicit argument, environment, persisted file, default."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from pos_core import config
from pos_core.config import CONFIG_FILE_NAME, DB_FILE_NAME, get_settings, persist_data_dir


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the default data folder at a temporary directory and clear POS_* env vars."""

    home_dir = tmp_path / "home"
    monkeypatch.setattr(config, "_default_data_dir", lambda: home_dir)
    for var in (config.ENV_DATA_DIR, config.ENV_CURRENCY, config.ENV_LOW_STOCK):
        monkeypatch.delenv(var, raising=False)
    return home_dir


def test_defaults(home):
    settings = get_settings()

    assert settings.data_dir == home.resolve()
    assert settings.db_path == home.resolve() / DB_FILE_NAME
    assert settings.currency == "USD"
    assert settings.low_stock_threshold == 5
    assert settings.data_dir.is_dir()


def test_explicit_argument_beats_environment(home, tmp_path, monkeypatch):
    monkeypatch.setenv(config.ENV_DATA_DIR, str(tmp_path / "from_env"))

    settings = get_settings(tmp_path / "explicit")

    assert settings.data_dir == (tmp_path / "explicit").resolve()


def test_environment_beats_persisted(home, tmp_path, monkeypatch):
    persist_data_dir(str(tmp_path / "persisted"))
    monkeypatch.setenv(config.ENV_DATA_DIR, str(tmp_path / "from_env"))

    assert get_settings().data_dir == (tmp_path / "from_env").resolve()


def test_persisted_data_dir_is_used(home, tmp_path):
    chosen = persist_data_dir(str(tmp_path / "persisted"))

    assert chosen.is_dir()
    assert json.loads((home / CONFIG_FILE_NAME).read_text(encoding="utf-8"))["data_dir"] == str(chosen)
    assert get_settings().data_dir == chosen


def test_persist_keeps_other_settings(home, tmp_path):
    home.mkdir(parents=True)
    (home / CONFIG_FILE_NAME).write_text(json.dumps({"currency": "EUR"}), encoding="utf-8")

    persist_data_dir(str(tmp_path / "elsewhere"))

    assert get_settings().currency == "EUR"


def test_currency_and_threshold_from_environment(home, monkeypatch):
    monkeypatch.setenv(config.ENV_CURRENCY, "KES")
    monkeypatch.setenv(config.ENV_LOW_STOCK, "12")

    settings = get_settings()
    assert (settings.currency, settings.low_stock_threshold) == ("KES", 12)


def test_invalid_threshold_falls_back(home, monkeypatch):
    monkeypatch.setenv(config.ENV_LOW_STOCK, "lots")
    assert get_settings().low_stock_threshold == 5


def test_unreadable_settings_file_is_ignored(home):
    home.mkdir(parents=True)
    (home / CONFIG_FILE_NAME).write_text("{oops", encoding="utf-8")

    assert get_settings().data_dir == home.resolve()
