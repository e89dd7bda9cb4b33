from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

log = logging.getLogger(__name__)

CONFIG_FILE_NAME = "settings.json"
DB_FILE_NAME = "pos.db"
ENV_DATA_DIR = "POS_DATA_DIR"
ENV_CURRENCY = "POS_CURRENCY"
ENV_LOW_STOCK = "POS_LOW_STOCK_THRESHOLD"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    currency: str = "USD"
    low_stock_threshold: int = 5


def _default_data_dir() -> Path:
    # Not a hard-coded absolute path: uses the user's home directory.
    return Path.home() / ".pos_invoicing"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            return json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            log.warning("Ignoring unreadable settings file %s: %s", cfg, exc)
            return {}
    return {}


def persist_data_dir(data_dir_str: str, *, home_dir: Optional[Path] = None) -> Path:
    """Remember ``data_dir_str`` in the default folder's settings.json."""
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    home_dir = home_dir or _default_data_dir()
    home_dir.mkdir(parents=True, exist_ok=True)
    cfg = home_dir / CONFIG_FILE_NAME
    payload = _load_persisted_settings(home_dir)
    payload["data_dir"] = str(data_dir)
    cfg.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return data_dir


def get_settings(data_dir: Optional[Union[str, Path]] = None) -> Settings:
    # Priority order:
    # 1) Explicit argument (session override, tests)
    # 2) Environment variable
    # 3) Persisted settings in default folder
    # 4) Default folder
    default_dir = _default_data_dir()
    persisted = _load_persisted_settings(default_dir)

    if data_dir is not None:
        resolved = Path(data_dir).expanduser().resolve()
    elif os.getenv(ENV_DATA_DIR):
        resolved = Path(os.getenv(ENV_DATA_DIR, "")).expanduser().resolve()
    else:
        resolved = Path(persisted.get("data_dir", default_dir)).expanduser().resolve()

    currency = os.getenv(ENV_CURRENCY) or persisted.get("currency") or "USD"
    threshold_raw = os.getenv(ENV_LOW_STOCK) or persisted.get("low_stock_threshold") or 5
    try:
        threshold = int(threshold_raw)
    except (TypeError, ValueError):
        log.warning("Invalid low stock threshold %r, using 5", threshold_raw)
        threshold = 5

    resolved.mkdir(parents=True, exist_ok=True)
    return Settings(
        data_dir=resolved,
        db_path=resolved / DB_FILE_NAME,
        currency=str(currency),
        low_stock_threshold=threshold,
    )
