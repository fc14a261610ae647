"""
Dashboard settings: unit defaults, render budget, remote sources, debug logging.
"""

import json
from dataclasses import dataclass, field, asdict, fields
from pathlib import Path
from typing import Dict, List, Optional
from platformdirs import user_config_dir

from logdash.utils import debug_log
from logdash.utils.units import DEFAULT_PREFERENCES

SETTINGS_VERSION = '1.0'


@dataclass
class DashboardSettings:
    """User-level settings, persisted as JSON."""
    default_units: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_PREFERENCES))
    max_render_points: int = 2000
    auto_select_count: int = 3
    remote_allowed_hosts: List[str] = field(default_factory=lambda: ['bootmod3.net'])
    request_timeout: float = 30.0

    debug_enabled: bool = False
    debug_log_file: Optional[str] = None
    debug_log_level: str = 'DEBUG'
    debug_max_file_size_mb: int = 10
    debug_backup_count: int = 3

    @staticmethod
    def get_default_config_dir() -> Path:
        """Get the default configuration directory (platform-specific)."""
        # Windows: %APPDATA%\LogDash
        # macOS: ~/Library/Application Support/LogDash
        # Linux: ~/.config/logdash
        config_dir = Path(user_config_dir("LogDash", "LogDash"))
        config_dir.mkdir(parents=True, exist_ok=True)
        return config_dir

    @staticmethod
    def get_settings_file() -> Path:
        """Get the path to the settings file."""
        return DashboardSettings.get_default_config_dir() / 'settings.json'

    @classmethod
    def load(cls, file_path: Optional[str] = None) -> 'DashboardSettings':
        """
        Load settings, merged over the defaults.

        Missing, corrupt or unsupported files yield the defaults.

        Args:
            file_path: Settings file (uses the platform default if None)

        Returns:
            DashboardSettings instance
        """
        settings = cls()
        path = Path(file_path) if file_path else cls.get_settings_file()
        if not path.exists():
            return settings

        try:
            with open(path, 'r', encoding='utf-8') as f:
                saved = json.load(f)
        except (OSError, ValueError) as e:
            debug_log.warning(f"Error loading settings from {path}: {e}")
            return settings

        if not isinstance(saved, dict) or saved.get('version') != SETTINGS_VERSION:
            debug_log.warning(f"Unsupported settings file: {path}")
            return settings

        known = {f.name for f in fields(cls)}
        for key, value in saved.items():
            if key not in known:
                continue
            if key == 'default_units' and isinstance(value, dict):
                # Keep defaults for types the file does not mention
                merged = dict(settings.default_units)
                merged.update(value)
                value = merged
            setattr(settings, key, value)

        return settings

    def save(self, file_path: Optional[str] = None) -> bool:
        """
        Save settings to a JSON file.

        Returns:
            True if successful, False otherwise
        """
        path = Path(file_path) if file_path else self.get_settings_file()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            data = {'version': SETTINGS_VERSION}
            data.update(asdict(self))
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            return True
        except OSError as e:
            debug_log.error(f"Error saving settings: {e}")
            return False
