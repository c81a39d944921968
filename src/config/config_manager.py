"""
Configuration Manager Module

Handles loading, saving, and managing application configuration.
Provides bi-directional mapping between the settings dataclasses and
JSON persistence.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from infrastructure.logger import get_logger

logger = get_logger("ConfigManager")


@dataclass
class StoreSettings:
    """Document store backend settings.

    backend: 'memory' or 'firebase'
    """
    backend: str = "memory"
    base_url: str = ""
    auth_token: str = ""
    timeout: float = 30.0


@dataclass
class GridSettings:
    """Timesheet grid behaviour."""
    save_debounce_ms: int = 500           # attendance write delay after the last edit
    suggestion_blur_delay_ms: int = 200   # grace period before suggestions close
    suggestion_limit: int = 5
    default_shift: str = "08:00 - 17:00"
    unassigned_department: str = "Chưa xác định"
    default_department: str = "Văn Phòng"


@dataclass
class PayrollSettings:
    """Payroll defaults for employees without their own values."""
    default_daily_rate: float = 200000
    default_password: str = "123"


@dataclass
class Paths:
    """File paths configuration."""
    log_file: str = ""           # empty = app.log at project root
    export_dir: str = ""         # empty = current directory
    last_import_file: str = ""


@dataclass
class AppConfig:
    """Main application configuration container."""
    store: StoreSettings = field(default_factory=StoreSettings)
    grid: GridSettings = field(default_factory=GridSettings)
    payroll: PayrollSettings = field(default_factory=PayrollSettings)
    paths: Paths = field(default_factory=Paths)


class ConfigManager:
    """
    Manages application configuration with JSON persistence.

    Responsibilities:
    - Load configuration from JSON file
    - Save configuration to JSON file
    - Provide default configuration
    - Convert between dataclass and dict representations
    """

    DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config.json"

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or self.DEFAULT_CONFIG_PATH
        self._config: AppConfig = AppConfig()

    @property
    def config(self) -> AppConfig:
        """Get current configuration."""
        return self._config

    def load(self) -> AppConfig:
        """Load configuration from JSON file, falling back to defaults."""
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                self._config = self._dict_to_config(data)
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Failed to load config {self.config_path}, using defaults: {e}")
                self._config = AppConfig()
        else:
            self._config = AppConfig()
        return self._config

    def save(self) -> None:
        """Save current configuration to JSON file."""
        data = self._config_to_dict(self._config)
        with open(self.config_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        logger.debug(f"Config saved to {self.config_path}")

    def update(self, **kwargs) -> None:
        """Update specific configuration sections."""
        for key, value in kwargs.items():
            if hasattr(self._config, key):
                setattr(self._config, key, value)
        self.save()

    def _config_to_dict(self, config: AppConfig) -> dict:
        """Convert AppConfig dataclass to dictionary."""
        return {
            "store": {
                "backend": config.store.backend,
                "base_url": config.store.base_url,
                "auth_token": config.store.auth_token,
                "timeout": config.store.timeout
            },
            "grid": {
                "save_debounce_ms": config.grid.save_debounce_ms,
                "suggestion_blur_delay_ms": config.grid.suggestion_blur_delay_ms,
                "suggestion_limit": config.grid.suggestion_limit,
                "default_shift": config.grid.default_shift,
                "unassigned_department": config.grid.unassigned_department,
                "default_department": config.grid.default_department
            },
            "payroll": {
                "default_daily_rate": config.payroll.default_daily_rate,
                "default_password": config.payroll.default_password
            },
            "paths": {
                "log_file": config.paths.log_file,
                "export_dir": config.paths.export_dir,
                "last_import_file": config.paths.last_import_file
            }
        }

    def _dict_to_config(self, data: dict) -> AppConfig:
        """Convert dictionary to AppConfig dataclass."""
        store_data = data.get("store", {})
        grid_data = data.get("grid", {})
        payroll_data = data.get("payroll", {})
        paths_data = data.get("paths", {})

        store = StoreSettings(
            backend=store_data.get("backend", "memory"),
            base_url=store_data.get("base_url", ""),
            auth_token=store_data.get("auth_token", ""),
            timeout=float(store_data.get("timeout", 30.0))
        )

        grid = GridSettings(
            save_debounce_ms=int(grid_data.get("save_debounce_ms", 500)),
            suggestion_blur_delay_ms=int(grid_data.get("suggestion_blur_delay_ms", 200)),
            suggestion_limit=int(grid_data.get("suggestion_limit", 5)),
            default_shift=grid_data.get("default_shift", "08:00 - 17:00"),
            unassigned_department=grid_data.get("unassigned_department", "Chưa xác định"),
            default_department=grid_data.get("default_department", "Văn Phòng")
        )

        payroll = PayrollSettings(
            default_daily_rate=float(payroll_data.get("default_daily_rate", 200000)),
            default_password=payroll_data.get("default_password", "123")
        )

        paths = Paths(
            log_file=paths_data.get("log_file", ""),
            export_dir=paths_data.get("export_dir", ""),
            last_import_file=paths_data.get("last_import_file", "")
        )

        return AppConfig(store=store, grid=grid, payroll=payroll, paths=paths)
