"""
Settings store for the library app.
Persists the simulated-clock preferences between runs.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

from librarian.config import settings
from librarian.validators import format_date, parse_date

if TYPE_CHECKING:
    from librarian.library import LibraryState

logger = logging.getLogger(__name__)

USE_CUSTOM_TIME = "System.UseCustomTime"
CUSTOM_DATE = "System.CustomDate"


class SettingsStore:
    """JSON-backed key-value store addressed with dot notation (e.g. 'System.CustomDate')."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else settings.settings_path
        self.values: Dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        """Load values from file; a missing or unreadable file gives empty settings."""
        self.values = {}
        if not self.path.exists():
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Could not load settings from %s: %s", self.path, e)
            return
        if isinstance(data, dict):
            self.values = data
        else:
            logger.warning("Ignoring settings file %s: not a JSON object", self.path)

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(self.values, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error("Could not save settings to %s: %s", self.path, e)

    def get(self, key: str, default: Any = None) -> Any:
        value: Any = self.values
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        keys = key.split(".")
        section = self.values
        for k in keys[:-1]:
            if not isinstance(section.get(k), dict):
                section[k] = {}
            section = section[k]
        section[keys[-1]] = value

    def contains(self, key: str) -> bool:
        sentinel = object()
        return self.get(key, sentinel) is not sentinel

    def apply_to(self, state: "LibraryState") -> None:
        """Turn on the simulated clock in ``state`` if the stored settings ask for it."""
        if not self.get(USE_CUSTOM_TIME, False):
            return
        raw = self.get(CUSTOM_DATE)
        try:
            custom = parse_date(raw)
        except (TypeError, ValueError):
            logger.warning("Stored simulated date %r is not a yyyy-MM-dd date", raw)
            return
        state.set_current_date(custom)

    def capture_from(self, state: "LibraryState") -> None:
        """Record the clock settings of ``state`` and write them out."""
        self.set(USE_CUSTOM_TIME, state.is_using_custom_time)
        if state.is_using_custom_time:
            self.set(CUSTOM_DATE, format_date(state.custom_date))
        self.save()
