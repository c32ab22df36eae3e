import json
import logging
from pathlib import Path

import pytest

from storyline.persistence import (
    JsonFileStore,
    KeyValueStore,
    MemoryStore,
    Persistence,
    SaveError,
    StoreError,
    WebStorageStore,
    default_store,
)
from storyline.settings import Settings, load_settings, save_settings
from storyline.state import GameState, new_game_state


class BrokenStore(KeyValueStore):
    def get(self, key):
        raise StoreError("storage offline")

    def set(self, key, record):
        raise OSError("disk full")

    def delete(self, key):
        raise StoreError("storage offline")


def played_state(content) -> GameState:
    state = new_game_state(content)
    state.player_name = "ALEX"
    state.current_node = "pick"
    state.day = 2
    state.relationships["jordan"] = 35
    state.flags["won_challenge"] = True
    state.alliances.append("pact")
    state.vote_history.append({"day": 2, "voted_for": "riley"})
    return state


def test_slot_round_trip_restores_state(content, store: MemoryStore) -> None:
    persistence = Persistence(store, Settings(), content)
    state = played_state(content)
    assert persistence.save_to_slot(2, state) is True
    assert persistence.load_from_slot(2) == state


def test_saved_records_carry_a_millisecond_timestamp(content, store: MemoryStore) -> None:
    persistence = Persistence(store, Settings(), content)
    persistence.autosave(played_state(content))
    record = persistence.peek_autosave()
    assert isinstance(record["timestamp"], int)
    assert record["timestamp"] > 1_600_000_000_000


def test_autosave_lifecycle(content, store: MemoryStore) -> None:
    persistence = Persistence(store, Settings(), content)
    assert persistence.has_autosave() is False
    assert persistence.load_autosave() is None
    persistence.autosave(played_state(content))
    assert "c2s_autosave" in store
    assert persistence.has_autosave() is True
    assert persistence.clear_autosave() is True
    assert persistence.has_autosave() is False


def test_empty_slot_loads_nothing(content, store: MemoryStore) -> None:
    persistence = Persistence(store, Settings(), content)
    assert persistence.load_from_slot(1) is None


@pytest.mark.parametrize("slot", [0, 4, -1])
def test_out_of_range_slots_raise(content, store: MemoryStore, slot: int) -> None:
    persistence = Persistence(store, Settings(), content)
    with pytest.raises(SaveError):
        persistence.save_to_slot(slot, played_state(content))


def test_unserializable_state_reports_failure(content, store: MemoryStore, caplog) -> None:
    persistence = Persistence(store, Settings(), content)
    state = played_state(content)
    state.flags["bad"] = object()
    with caplog.at_level(logging.ERROR, logger="storyline.persistence"):
        assert persistence.save_to_slot(1, state) is False
    assert "Failed to save" in caplog.text
    assert "c2s_save_1" not in store


def test_storage_failures_never_escape(content) -> None:
    persistence = Persistence(BrokenStore(), Settings(), content)
    state = played_state(content)
    assert persistence.autosave(state) is False
    assert persistence.save_to_slot(1, state) is False
    assert persistence.load_autosave() is None
    assert persistence.load_from_slot(1) is None
    assert persistence.has_autosave() is False
    assert persistence.clear_autosave() is False
    assert all(info.empty for info in persistence.list_slots())


def test_corrupt_records_load_as_nothing(content, tmp_path: Path) -> None:
    store = JsonFileStore(tmp_path)
    (tmp_path / "c2s_save_1.json").write_text("{broken")
    (tmp_path / "c2s_save_2.json").write_text(json.dumps({"day": 3}))
    persistence = Persistence(store, Settings(), content)
    assert persistence.load_from_slot(1) is None
    assert persistence.load_from_slot(2) is None


def test_missing_node_resets_to_start(content, store: MemoryStore, caplog) -> None:
    persistence = Persistence(store, Settings(), content)
    state = played_state(content)
    state.current_node = "deleted_scene"
    persistence.save_to_slot(1, state)
    with caplog.at_level(logging.WARNING, logger="storyline.persistence"):
        loaded = persistence.load_from_slot(1)
    assert loaded.current_node == "start"
    assert loaded.player_name == "ALEX"
    assert "deleted_scene" in caplog.text


def test_json_file_store_writes_one_file_per_key(content, tmp_path: Path) -> None:
    store = JsonFileStore(tmp_path / "saves")
    persistence = Persistence(store, Settings(), content)
    state = played_state(content)
    assert persistence.save_to_slot(3, state) is True
    path = tmp_path / "saves" / "c2s_save_3.json"
    assert json.loads(path.read_text())["player_name"] == "ALEX"
    assert persistence.load_from_slot(3) == state
    store.delete("c2s_save_3")
    assert not path.exists()
    store.delete("c2s_save_3")


def test_list_slots_summarizes_saves(content, store: MemoryStore) -> None:
    persistence = Persistence(store, Settings(save_slot_count=2), content)
    persistence.save_to_slot(2, played_state(content))
    first, second = persistence.list_slots()
    assert first.empty
    assert (second.slot, second.player_name, second.day) == (2, "ALEX", 2)
    assert not second.empty


def test_settings_round_trip_and_clamp(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    saved = save_settings(Settings(text_delay=99, save_slot_count=40), path)
    assert saved.text_delay == 5.0
    assert saved.save_slot_count == 9
    assert load_settings(path) == saved


def test_settings_fall_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("[not an object]")
    assert load_settings(path) == Settings()
    assert load_settings(tmp_path / "missing.json") == Settings()


def test_reduce_animations_zeroes_delays() -> None:
    settings = Settings.from_dict({"reduce_animations": "yes", "line_delay": 0.4})
    assert settings.reduce_animations is True
    assert settings.delay("line_delay") == 0.0
    assert Settings().delay("ending_delay") == 1.0


class FakeLocalStorage:
    def __init__(self) -> None:
        self.items = {}

    def getItem(self, key):
        return self.items.get(key)

    def setItem(self, key, value):
        self.items[key] = value

    def removeItem(self, key):
        self.items.pop(key, None)


def test_web_storage_store_keeps_json_strings(content) -> None:
    local_storage = FakeLocalStorage()
    persistence = Persistence(WebStorageStore(local_storage), Settings(), content)
    state = played_state(content)
    assert persistence.autosave(state) is True
    assert json.loads(local_storage.items["c2s_autosave"])["current_node"] == "pick"
    assert persistence.load_autosave() == state
    local_storage.items["c2s_save_1"] = "not json"
    assert persistence.load_from_slot(1) is None


def test_web_storage_store_requires_local_storage() -> None:
    with pytest.raises(StoreError):
        WebStorageStore(None)


def test_default_store_uses_files_outside_the_browser(tmp_path: Path) -> None:
    store = default_store(tmp_path)
    assert isinstance(store, JsonFileStore)
    assert store.base_path == tmp_path
