"""
Settings management for gittree

The settings file is read once at startup and never written; command line
flags override values for the current run only.
"""

import copy
import json
from pathlib import Path
from typing import Any

from gittree.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_READ_AHEAD,
    DEFAULT_SCAN_BUDGET,
    SETTINGS_DIR,
    SETTINGS_FILE,
)


class Settings:
    """Manages application settings"""

    DEFAULT_SETTINGS: dict[str, Any] = {
        "display": {
            "unicode": False,
            "no_color": False,
            "date_format": "%Y-%m-%d %H:%M",  # strftime format, or "relative"
        },
        "actions": {
            "confirm_dangerous": True,  # Ask before reset --hard
        },
        "git": {
            "default_range": "",  # Empty: all refs (or HEAD when all_refs is off)
            "all_refs": True,
            "max_commits": 0,  # 0 = unlimited
        },
        "navigation": {
            "read_ahead": DEFAULT_READ_AHEAD,  # Rows materialized beyond the viewport
            "batch_size": DEFAULT_BATCH_SIZE,  # Max records per background pull
            "scan_budget": DEFAULT_SCAN_BUDGET,  # Max commits walked per pull
        },
        "colors": {
            "head": "bold cyan",
            "branch": "bold green",
            "tag": "bold yellow",
        },
        "logging": {
            "file": "",  # Empty: logging disabled
            "level": "WARNING",
        },
        "keys": {},  # command id -> comma separated key names
    }

    def __init__(self, config_path: Path | None = None) -> None:
        """Initialize settings"""
        if config_path is None:
            config_path = Path.home() / SETTINGS_DIR / SETTINGS_FILE

        self.config_path = config_path
        self.settings = copy.deepcopy(self.DEFAULT_SETTINGS)
        self.load()

    def load(self) -> None:
        """Load settings from file"""
        if self.config_path.exists():
            with open(self.config_path) as f:
                loaded = json.load(f)
                if not isinstance(loaded, dict):
                    raise ValueError(f"{self.config_path}: expected a JSON object")
                # Merge with defaults to handle new settings
                self._merge_settings(self.settings, loaded)

    def _merge_settings(self, base: dict[str, Any], updates: dict[str, Any]) -> None:
        """Recursively merge settings dictionaries"""
        for key, value in updates.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                base_dict: dict[str, Any] = base[key]
                value_dict: dict[str, Any] = value
                self._merge_settings(base_dict, value_dict)
            else:
                base[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get a setting by dot-separated path (e.g., 'display.unicode')"""
        parts = path.split(".")
        value: Any = self.settings

        for part in parts:
            if isinstance(value, dict):
                value_dict: dict[str, Any] = value
                if part in value_dict:
                    value = value_dict[part]
                else:
                    return default
            else:
                return default

        return value

    def set(self, path: str, value: Any) -> None:
        """Set a setting by dot-separated path"""
        parts = path.split(".")
        target: Any = self.settings

        for part in parts[:-1]:
            if part not in target:
                target[part] = {}
            target = target[part]

        target[parts[-1]] = value

    def get_read_ahead(self) -> int:
        """Rows to materialize beyond the bottom of the viewport."""
        read_ahead: int = int(self.get("navigation.read_ahead", DEFAULT_READ_AHEAD))
        return max(0, read_ahead)

    def get_batch_size(self) -> int:
        """Get the maximum number of commit records one background pull returns.

        Larger batches mean fewer round trips to the commit source but longer
        pauses before the first rows appear.
        """
        batch_size: int = int(self.get("navigation.batch_size", DEFAULT_BATCH_SIZE))
        return max(1, batch_size)  # At least 1

    def get_scan_budget(self) -> int:
        scan_budget: int = int(self.get("navigation.scan_budget", DEFAULT_SCAN_BUDGET))
        return max(1, scan_budget)

    def get_max_commits(self) -> int:
        max_commits: int = int(self.get("git.max_commits", 0))
        return max(0, max_commits)

    def get_custom_keys(self) -> dict[str, str]:
        keys = self.get("keys", {})
        if not isinstance(keys, dict):
            return {}
        return {str(k): str(v) for k, v in keys.items()}
