"""Save, load and autosave orchestration over a key-value store."""

from __future__ import annotations

import json
import logging
import string
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .content import ContentGraph
from .platform import IS_WEB, get_local_storage
from .settings import Settings
from .state import GameState, StateError

logger = logging.getLogger(__name__)

DEFAULT_SAVE_DIR = Path("saves")


class SaveError(Exception):
    """Base class for save related failures."""


class SaveCorruptError(SaveError):
    """Raised when a stored record cannot be parsed or validated."""


class StoreError(SaveError):
    """Raised by a store whose backing medium is unavailable."""


def now_millis() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


# ---------- Stores ----------
class KeyValueStore(ABC):
    """Minimal persistence capability: get/set/delete of JSON-able records."""

    @abstractmethod
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def set(self, key: str, record: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


class MemoryStore(KeyValueStore):
    """In-process store; records are kept JSON-encoded like the real stores."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self._items.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SaveCorruptError(f"Invalid JSON: {exc}") from exc

    def set(self, key: str, record: Dict[str, Any]) -> None:
        self._items[key] = json.dumps(record)

    def delete(self, key: str) -> None:
        self._items.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._items


class JsonFileStore(KeyValueStore):
    """One JSON file per key inside ``base_path``."""

    _VALID_KEY_CHARS = set(string.ascii_letters + string.digits + "-_")

    def __init__(self, base_path: Path | str = DEFAULT_SAVE_DIR) -> None:
        self.base_path = Path(base_path)

    def _path(self, key: str) -> Path:
        cleaned = "".join(ch for ch in key if ch in self._VALID_KEY_CHARS)
        if not cleaned:
            raise StoreError(f"Invalid storage key {key!r}.")
        return self.base_path / f"{cleaned}.json"

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path(key)
        try:
            with open(path, "r", encoding="utf-8") as handle:
                return json.load(handle)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as exc:
            raise SaveCorruptError(f"Invalid JSON: {exc}") from exc

    def set(self, key: str, record: Dict[str, Any]) -> None:
        path = self._path(key)
        self.base_path.mkdir(parents=True, exist_ok=True)
        serialized = json.dumps(record, indent=2)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as handle:
            handle.write(serialized)
            handle.write("\n")
        tmp_path.replace(path)

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass


class WebStorageStore(KeyValueStore):
    """Browser ``localStorage`` backed store for the Pyodide build."""

    def __init__(self, local_storage: Any) -> None:
        if local_storage is None:
            raise StoreError("localStorage is unavailable.")
        self._local_storage = local_storage

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self._local_storage.getItem(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SaveCorruptError(f"Invalid JSON: {exc}") from exc

    def set(self, key: str, record: Dict[str, Any]) -> None:
        self._local_storage.setItem(key, json.dumps(record))

    def delete(self, key: str) -> None:
        self._local_storage.removeItem(key)


def default_store(base_path: Path | str = DEFAULT_SAVE_DIR) -> KeyValueStore:
    local_storage = get_local_storage()
    if IS_WEB and local_storage is not None:
        return WebStorageStore(local_storage)
    if IS_WEB:
        logger.warning("localStorage unavailable in web build; falling back to filesystem storage.")
    return JsonFileStore(base_path)


# ---------- Adapter ----------
@dataclass
class SlotInfo:
    slot: int
    player_name: Optional[str] = None
    day: Optional[int] = None
    episode: Optional[int] = None
    timestamp: Optional[int] = None

    @property
    def empty(self) -> bool:
        return self.timestamp is None and self.player_name is None


class Persistence:
    """Autosave and numbered slots. Storage failures never escape this class."""

    STORAGE_ERRORS = (OSError, TypeError, ValueError, SaveError, StateError)

    def __init__(
        self,
        store: KeyValueStore,
        settings: Optional[Settings] = None,
        content: Optional[ContentGraph] = None,
    ) -> None:
        self.store = store
        self.settings = settings or Settings()
        self.content = content

    # ---------- Public API ----------
    @property
    def slot_count(self) -> int:
        return self.settings.save_slot_count

    def slot_key(self, slot: int) -> str:
        if not isinstance(slot, int) or not 1 <= slot <= self.slot_count:
            raise SaveError(f"Save slots are numbered 1 to {self.slot_count}.")
        return f"{self.settings.save_key_prefix}{slot}"

    def autosave(self, state: GameState) -> bool:
        return self._write(self.settings.autosave_key, state)

    def load_autosave(self) -> Optional[GameState]:
        return self._read(self.settings.autosave_key)

    def peek_autosave(self) -> Optional[Dict[str, Any]]:
        """Raw autosave record (with ``timestamp``) for the continue prompt."""
        try:
            record = self.store.get(self.settings.autosave_key)
            if record is None:
                return None
            self._validate_record(record)
            return record
        except self.STORAGE_ERRORS as exc:
            logger.error("Failed to read autosave: %s", exc)
            return None

    def has_autosave(self) -> bool:
        return self.peek_autosave() is not None

    def clear_autosave(self) -> bool:
        try:
            self.store.delete(self.settings.autosave_key)
        except self.STORAGE_ERRORS as exc:
            logger.error("Failed to clear autosave: %s", exc)
            return False
        return True

    def save_to_slot(self, slot: int, state: GameState) -> bool:
        return self._write(self.slot_key(slot), state)

    def load_from_slot(self, slot: int) -> Optional[GameState]:
        return self._read(self.slot_key(slot))

    def list_slots(self) -> List[SlotInfo]:
        slots: List[SlotInfo] = []
        for slot in range(1, self.slot_count + 1):
            try:
                record = self.store.get(self.slot_key(slot))
            except self.STORAGE_ERRORS as exc:
                logger.error("Failed to read slot %s: %s", slot, exc)
                record = None
            if not isinstance(record, dict):
                slots.append(SlotInfo(slot=slot))
                continue
            slots.append(
                SlotInfo(
                    slot=slot,
                    player_name=record.get("player_name"),
                    day=record.get("day"),
                    episode=record.get("episode"),
                    timestamp=record.get("timestamp"),
                )
            )
        return slots

    # ---------- Internal helpers ----------
    def _build_record(self, state: GameState) -> Dict[str, Any]:
        record = state.to_dict()
        record["timestamp"] = now_millis()
        return record

    def _write(self, key: str, state: GameState) -> bool:
        try:
            self.store.set(key, self._build_record(state))
        except self.STORAGE_ERRORS as exc:
            logger.error("Failed to save '%s': %s", key, exc)
            return False
        logger.debug("Saved '%s' at node %s", key, state.current_node)
        return True

    def _read(self, key: str) -> Optional[GameState]:
        try:
            record = self.store.get(key)
            if record is None:
                return None
            self._validate_record(record)
            state = GameState.from_dict(record)
        except self.STORAGE_ERRORS as exc:
            logger.error("Failed to load '%s': %s", key, exc)
            return None
        self._normalize_loaded_state(state)
        return state

    def _validate_record(self, record: Any) -> None:
        if not isinstance(record, dict):
            raise SaveCorruptError("Record was not an object.")
        if "current_node" not in record:
            raise SaveCorruptError("Missing key: current_node")
        timestamp = record.get("timestamp")
        if timestamp is not None and not isinstance(timestamp, (int, float)):
            raise SaveCorruptError("Timestamp must be numeric.")

    def _normalize_loaded_state(self, state: GameState) -> None:
        if self.content is None or state.current_node in self.content:
            return
        fallback = self.content.start_node
        logger.warning(
            "Saved node '%s' missing in current content. Resetting to '%s'.",
            state.current_node,
            fallback,
        )
        state.current_node = fallback
