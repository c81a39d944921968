"""
Unit tests for ConfigManager and the settings dataclasses.
"""

import pytest
import json
import tempfile
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from config.config_manager import (
    ConfigManager, AppConfig, GridSettings, Paths, PayrollSettings, StoreSettings
)


class TestSettingsDefaults:
    """Tests for the default values of the settings dataclasses."""

    def test_grid_defaults(self):
        grid = GridSettings()

        assert grid.save_debounce_ms == 500
        assert grid.suggestion_blur_delay_ms == 200
        assert grid.suggestion_limit == 5
        assert grid.default_shift == "08:00 - 17:00"
        assert grid.unassigned_department == "Chưa xác định"

    def test_store_defaults(self):
        store = StoreSettings()
        assert store.backend == "memory"
        assert store.base_url == ""

    def test_payroll_defaults(self):
        payroll = PayrollSettings()
        assert payroll.default_daily_rate == 200000
        assert payroll.default_password == "123"

    def test_app_config_sections_are_independent(self):
        a = AppConfig()
        b = AppConfig()
        a.grid.save_debounce_ms = 1
        assert b.grid.save_debounce_ms == 500


class TestConfigManager:
    """Tests for ConfigManager class."""

    def test_load_default_config(self):
        """Test loading when config file doesn't exist."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.json"
            manager = ConfigManager(config_path)
            config = manager.load()

            assert isinstance(config, AppConfig)
            assert config.grid.save_debounce_ms == 500
            assert not config_path.exists()

    def test_save_and_load_config(self):
        """Test saving and loading configuration."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.json"

            manager = ConfigManager(config_path)
            manager.load()
            manager.config.store = StoreSettings(
                backend="firebase",
                base_url="https://example.firebaseio.com",
                auth_token="token",
                timeout=10
            )
            manager.config.grid.default_shift = "06:00 - 14:00"
            manager.config.payroll.default_daily_rate = 250000
            manager.config.paths.export_dir = "/tmp/exports"
            manager.save()

            manager2 = ConfigManager(config_path)
            config = manager2.load()

            assert config.store.backend == "firebase"
            assert config.store.base_url == "https://example.firebaseio.com"
            assert config.store.timeout == 10.0
            assert config.grid.default_shift == "06:00 - 14:00"
            assert config.payroll.default_daily_rate == 250000
            assert config.paths.export_dir == "/tmp/exports"

    def test_saved_file_keeps_vietnamese_text(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.json"
            manager = ConfigManager(config_path)
            manager.load()
            manager.save()

            text = config_path.read_text(encoding="utf-8")
            assert "Chưa xác định" in text
            assert json.loads(text)["grid"]["suggestion_limit"] == 5

    def test_partial_file_fills_defaults(self):
        """Missing sections and keys fall back to defaults."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.json"
            config_path.write_text(
                json.dumps({"grid": {"save_debounce_ms": 250}}), encoding="utf-8"
            )

            config = ConfigManager(config_path).load()

            assert config.grid.save_debounce_ms == 250
            assert config.grid.suggestion_limit == 5
            assert config.store.backend == "memory"
            assert config.paths == Paths()

    def test_corrupt_file_uses_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.json"
            config_path.write_text("{not json", encoding="utf-8")

            config = ConfigManager(config_path).load()

            assert config == AppConfig()

    def test_bad_value_uses_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.json"
            config_path.write_text(
                json.dumps({"grid": {"save_debounce_ms": "soon"}}), encoding="utf-8"
            )

            assert ConfigManager(config_path).load() == AppConfig()

    def test_update_saves(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.json"
            manager = ConfigManager(config_path)
            manager.load()

            manager.update(payroll=PayrollSettings(default_daily_rate=1, default_password="x"))

            assert ConfigManager(config_path).load().payroll.default_password == "x"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
