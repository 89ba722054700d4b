"""Tests for the JSON settings file."""

from settings import DEFAULTS, get_currency, load_settings, save_settings, settings_file


def test_missing_file_gives_defaults(tmp_path):
    assert load_settings(tmp_path / "missing.json") == DEFAULTS


def test_stored_values_override_defaults(tmp_path):
    path = tmp_path / "settings.json"
    save_settings({"currency": "$", "min_selling_price": 50}, path)
    settings = load_settings(path)
    assert settings["currency"] == "$"
    assert settings["min_selling_price"] == 50
    assert settings["low_stock_preview_limit"] == DEFAULTS["low_stock_preview_limit"]


def test_unreadable_file_gives_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_settings(path) == DEFAULTS


def test_environment_override(tmp_path, monkeypatch):
    path = tmp_path / "custom.json"
    monkeypatch.setenv("INVENTORY_SETTINGS", str(path))
    assert settings_file() == path
    save_settings({"currency": "€"})
    assert get_currency() == "€"
