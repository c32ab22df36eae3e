"""Settings persistence for Storyline."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

SETTINGS_PATH = Path("settings.json")

MIN_SAVE_SLOTS = 1
MAX_SAVE_SLOTS = 9
MAX_DELAY = 5.0


def _clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


@dataclass
class Settings:
    """Pacing and storage toggles that persist between sessions.

    Delays are in seconds. ``reduce_animations`` turns every delay off, which
    is also what the test-suite uses to keep the interpreter synchronous.
    """

    text_delay: float = 0.025
    text_delay_fast: float = 0.005
    line_delay: float = 0.1
    choice_delay: float = 0.3
    ending_cue_delay: float = 0.3
    ending_delay: float = 1.0
    intro_delay: float = 0.5
    save_slot_count: int = 3
    save_key_prefix: str = "c2s_save_"
    autosave_key: str = "c2s_autosave"
    reduce_animations: bool = False

    _DELAY_FIELDS = (
        "text_delay",
        "text_delay_fast",
        "line_delay",
        "choice_delay",
        "ending_cue_delay",
        "ending_delay",
        "intro_delay",
    )

    def clamp(self) -> "Settings":
        for name in self._DELAY_FIELDS:
            setattr(self, name, _clamp(float(getattr(self, name)), 0.0, MAX_DELAY))
        self.save_slot_count = int(_clamp(int(self.save_slot_count), MIN_SAVE_SLOTS, MAX_SAVE_SLOTS))
        self.save_key_prefix = str(self.save_key_prefix or "c2s_save_")
        self.autosave_key = str(self.autosave_key or "c2s_autosave")
        if self.autosave_key.startswith(self.save_key_prefix):
            self.autosave_key = "c2s_autosave"
        self.reduce_animations = bool(self.reduce_animations)
        return self

    def delay(self, name: str) -> float:
        if self.reduce_animations:
            return 0.0
        return float(getattr(self, name))

    def copy(self) -> "Settings":
        return Settings.from_dict(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "Settings":
        if not isinstance(data, dict):
            return cls()
        defaults = cls()

        def _as_float(key: str) -> float:
            default = getattr(defaults, key)
            try:
                return float(data.get(key, default))
            except (TypeError, ValueError):
                return default

        def _as_int(key: str) -> int:
            default = getattr(defaults, key)
            try:
                return int(data.get(key, default))
            except (TypeError, ValueError):
                return default

        def _as_bool(key: str) -> bool:
            default = getattr(defaults, key)
            value = data.get(key, default)
            if isinstance(value, bool):
                return value
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered in {"true", "1", "yes", "on"}:
                    return True
                if lowered in {"false", "0", "no", "off"}:
                    return False
            return bool(value) if value is not None else default

        settings = cls(
            **{name: _as_float(name) for name in cls._DELAY_FIELDS},
            save_slot_count=_as_int("save_slot_count"),
            save_key_prefix=str(data.get("save_key_prefix", defaults.save_key_prefix)),
            autosave_key=str(data.get("autosave_key", defaults.autosave_key)),
            reduce_animations=_as_bool("reduce_animations"),
        )
        return settings.clamp()


def load_settings(path: Path | str = SETTINGS_PATH) -> Settings:
    """Read settings from ``path``; a missing or unreadable file yields defaults."""
    path = Path(path)
    if not path.exists():
        return Settings()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring settings file %s: %s", path, exc)
        return Settings()
    if not isinstance(data, dict):
        logger.warning("Ignoring settings file %s: expected a JSON object.", path)
    return Settings.from_dict(data)


def save_settings(settings: Settings, path: Path | str = SETTINGS_PATH) -> Settings:
    """Clamp ``settings`` and write them atomically; returns what was written."""
    path = Path(path)
    sanitized = settings.copy().clamp()
    tmp_path: Path | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", delete=False, dir=path.parent, prefix=path.name, suffix=".tmp", encoding="utf-8"
        ) as tmp_file:
            tmp_path = Path(tmp_file.name)
            json.dump(sanitized.to_dict(), tmp_file, indent=2, sort_keys=True)
            tmp_file.write("\n")
        os.replace(tmp_path, path)
    except OSError as exc:
        logger.error("Failed to save settings to %s: %s", path, exc)
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
    return sanitized
