import pytest

from storyline.content import parse_content
from storyline.state import GameState, StateError, new_game_state

from conftest import mini_story


def test_new_game_state_seeds_from_template(content) -> None:
    state = new_game_state(content)
    assert state.current_node == "start"
    assert state.player_name is None
    assert (state.day, state.episode) == (1, 1)
    # jordan has a starting disposition, riley falls back to 0
    assert state.relationships == {"jordan": 10, "riley": 0}
    assert state.active_players == ["player", "jordan", "riley"]
    assert state.challenge_wins == 0


def test_new_game_state_only_seeds_template_relationships() -> None:
    story = mini_story()
    story["game_state_template"]["relationships"] = {"riley": 0}
    state = new_game_state(parse_content(story))
    assert state.relationships == {"riley": 0}


def test_new_game_states_do_not_share_containers(content) -> None:
    first = new_game_state(content)
    second = new_game_state(content)
    first.relationships["jordan"] = 99
    first.flags["won_challenge"] = True
    first.alliances.append("pact")
    first.active_players.pop()
    assert second.relationships["jordan"] == 10
    assert second.flags == {}
    assert second.alliances == []
    assert second.active_players == ["player", "jordan", "riley"]
    assert content.template.relationships["jordan"] == 0


def test_state_round_trips_through_dict() -> None:
    state = GameState(
        current_node="pick",
        player_name="ALEX",
        day=3,
        episode=2,
        relationships={"jordan": 25},
        flags={"won_challenge": True},
        alliances=["pact"],
        challenge_wins=1,
        vote_history=[{"day": 3, "voted_for": "casey"}],
        eliminated_players=["casey"],
        active_players=["player", "jordan"],
    )
    assert GameState.from_dict(state.to_dict()) == state


def test_from_dict_ignores_timestamp_and_clamps() -> None:
    state = GameState.from_dict(
        {
            "current_node": "start",
            "timestamp": 1700000000000,
            "relationships": {"jordan": 250},
            "alliances": ["pact", "pact"],
        }
    )
    assert state.relationships == {"jordan": 100}
    assert state.alliances == ["pact"]
    assert "timestamp" not in state.to_dict()


@pytest.mark.parametrize(
    "record",
    [
        [],
        {"day": 2},
        {"current_node": "start", "player_name": 7},
        {"current_node": "start", "flags": ["won"]},
        {"current_node": "start", "alliances": "pact"},
        {"current_node": "start", "day": "two"},
    ],
)
def test_from_dict_rejects_malformed_records(record) -> None:
    with pytest.raises(StateError):
        GameState.from_dict(record)


def test_from_dict_reads_null_counters_as_defaults() -> None:
    state = GameState.from_dict(
        {"current_node": "start", "day": None, "episode": None, "challenge_wins": None}
    )
    assert (state.day, state.episode, state.challenge_wins) == (1, 1, 0)
