"""
Settings handling for the Inventory Management System
"""
import json
import os
from pathlib import Path
from typing import Any, Optional

DEFAULTS: dict[str, Any] = {
    "currency": "Rp",
    "db_path": None,
    "log_level": "WARNING",
    "min_selling_price": 100,
    "default_warning_threshold": 5,
    "low_stock_preview_limit": 10,
}


def settings_file() -> Path:
    override = os.environ.get("INVENTORY_SETTINGS")
    if override:
        return Path(override)
    return Path(__file__).with_name("settings.json")


def load_settings(path: Optional[Path] = None) -> dict[str, Any]:
    """Settings merged over the defaults; a missing or unreadable file yields the defaults."""
    path = path or settings_file()
    settings = dict(DEFAULTS)
    if path.exists():
        try:
            stored = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            stored = {}
        if isinstance(stored, dict):
            settings.update(stored)
    return settings


def save_settings(settings: dict[str, Any], path: Optional[Path] = None) -> None:
    path = path or settings_file()
    path.write_text(json.dumps(settings, indent=2), encoding="utf-8")


def get_currency(settings: Optional[dict] = None) -> str:
    s = settings if settings is not None else load_settings()
    return s.get("currency", DEFAULTS["currency"])
