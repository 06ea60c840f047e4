import json
from pathlib import Path
from unittest.mock import patch

import pytest

from timetick.config import APP_NAME, DEFAULT_SETTINGS, Settings, app_dir, settings_path


class TestAppDir:
    def test_app_dir_uses_override_env(self, app_home):
        """Test that TIMETICK_HOME wins and the directory is created"""
        result = app_dir()
        assert result == app_home
        assert result.is_dir()

    def test_app_dir_uses_xdg_data_home(self, tmp_path, monkeypatch):
        """Test that XDG_DATA_HOME is used when no override is set"""
        monkeypatch.delenv("TIMETICK_HOME", raising=False)
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg"))

        assert app_dir() == tmp_path / "xdg" / APP_NAME

    def test_app_dir_fallback_to_home(self, tmp_path, monkeypatch):
        """Test the ~/.local/share fallback"""
        monkeypatch.delenv("TIMETICK_HOME", raising=False)
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        with patch("pathlib.Path.home", return_value=tmp_path):
            result = app_dir()

        assert result == tmp_path / ".local" / "share" / APP_NAME

    def test_settings_path(self):
        """Test that settings_path returns correct path"""
        with patch("timetick.config.app_dir") as mock_dir:
            mock_dir.return_value = Path("/test/home")
            assert settings_path() == Path("/test/home/settings.json")


class TestSettings:
    def test_settings_default_values(self):
        """Test that Settings class has correct default values"""
        settings = Settings()
        assert settings.database_path is None
        assert settings.request_timeout_seconds == DEFAULT_SETTINGS["request_timeout_seconds"] == 10
        assert settings.prompt_for_note is True
        assert settings.log_level == "INFO"

    def test_settings_load_nonexistent_file(self):
        """Test loading settings when file doesn't exist returns defaults"""
        settings = Settings.load()
        assert settings == Settings()

    def test_settings_load_existing_file(self):
        """Test loading settings from existing file, ignoring unknown keys"""
        settings_path().write_text(json.dumps({
            "import_url": "http://localhost:8080",
            "prompt_for_note": False,
            "colour": "blue",
        }), encoding="utf-8")

        settings = Settings.load()

        assert settings.import_url == "http://localhost:8080"
        assert settings.prompt_for_note is False
        assert settings.request_timeout_seconds == 10
        assert not hasattr(settings, "colour")

    def test_settings_load_invalid_json(self):
        """Test that a corrupt file falls back to defaults"""
        settings_path().write_text("{ invalid json", encoding="utf-8")

        assert Settings.load() == Settings()

    def test_settings_save(self):
        """Test saving and reloading settings"""
        settings = Settings(import_sheet="work", request_timeout_seconds=30)
        settings.save()

        data = json.loads(settings_path().read_text(encoding="utf-8"))
        assert data["import_sheet"] == "work"
        assert Settings.load().request_timeout_seconds == 30


class TestSettingsUpdate:
    def test_update_string(self):
        settings = Settings()
        settings.update("import_url", "http://example.test")
        assert settings.import_url == "http://example.test"

    def test_update_clear_optional(self):
        """Test that 'none' clears an optional setting"""
        settings = Settings(import_sheet="work")
        settings.update("import_sheet", "none")
        assert settings.import_sheet is None

    @pytest.mark.parametrize("raw,expected", [("false", False), ("no", False), ("1", True), ("ON", True)])
    def test_update_bool(self, raw, expected):
        settings = Settings()
        settings.update("prompt_for_note", raw)
        assert settings.prompt_for_note is expected

    def test_update_bool_invalid(self):
        with pytest.raises(ValueError):
            Settings().update("prompt_for_note", "maybe")

    def test_update_int(self):
        settings = Settings()
        settings.update("request_timeout_seconds", "25")
        assert settings.request_timeout_seconds == 25

    @pytest.mark.parametrize("raw", ["ten", "0", "-3"])
    def test_update_int_invalid(self, raw):
        with pytest.raises(ValueError):
            Settings().update("request_timeout_seconds", raw)

    def test_update_log_level(self):
        settings = Settings()
        settings.update("log_level", "debug")
        assert settings.log_level == "DEBUG"

        with pytest.raises(ValueError):
            settings.update("log_level", "loud")

    def test_update_unknown_key(self):
        with pytest.raises(KeyError):
            Settings().update("colour", "blue")
