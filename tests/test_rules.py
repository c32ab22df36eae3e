import copy

import pytest

from storyline.content import AllianceCheck, Condition, Effects, FlagCheck, RelationshipCheck
from storyline.rules import (
    ConditionError,
    UnknownConditionError,
    apply_effects,
    evaluate_condition,
    relationship_status,
)
from storyline.state import GameState


def make_state(**overrides) -> GameState:
    fields = {
        "current_node": "start",
        "player_name": "ALEX",
        "relationships": {"jordan": 0, "riley": 0},
        "active_players": ["player", "jordan", "riley", "sam"],
    }
    fields.update(overrides)
    return GameState(**fields)


@pytest.mark.parametrize(
    ("start", "delta", "expected"),
    [
        (90, 50, 100),
        (-90, -50, -100),
        (90, 15, 100),
        (10, -25, -15),
    ],
)
def test_relationship_deltas_are_clamped(start: int, delta: int, expected: int) -> None:
    state = make_state(relationships={"jordan": start})
    apply_effects(Effects(relationships={"jordan": delta}), state)
    assert state.relationships["jordan"] == expected


def test_unknown_characters_are_ignored() -> None:
    state = make_state()
    apply_effects(Effects(relationships={"ghost": 30}), state)
    assert "ghost" not in state.relationships


def test_flags_overwrite_and_keep_other_keys() -> None:
    state = make_state(flags={"won_challenge": True, "loner": False})
    apply_effects(Effects(flags={"won_challenge": False, "idol": "found"}), state)
    assert state.flags == {"won_challenge": False, "loner": False, "idol": "found"}


def test_alliances_are_only_added_once() -> None:
    state = make_state(alliances=["jordan_pact"])
    apply_effects(Effects(alliances=("jordan_pact", "final_two")), state)
    apply_effects(Effects(alliances=("final_two",)), state)
    assert state.alliances == ["jordan_pact", "final_two"]


def test_win_counters_ignore_zero_and_missing_values() -> None:
    state = make_state(challenge_wins=2, elimination_wins=1)
    apply_effects(Effects(challenge_wins=0), state)
    apply_effects(Effects(), state)
    assert (state.challenge_wins, state.elimination_wins) == (2, 1)
    apply_effects(Effects(challenge_wins=1, elimination_wins=2), state)
    assert (state.challenge_wins, state.elimination_wins) == (3, 3)


def test_rosters_are_replaced_and_votes_appended() -> None:
    state = make_state(vote_history=[{"day": 1, "voted_for": "sam"}])
    apply_effects(
        Effects(
            vote_history=({"day": 3, "voted_for": "casey"},),
            eliminated=("casey",),
            active_players=("player", "jordan"),
        ),
        state,
    )
    assert state.vote_history == [
        {"day": 1, "voted_for": "sam"},
        {"day": 3, "voted_for": "casey"},
    ]
    assert state.eliminated_players == ["casey"]
    assert state.active_players == ["player", "jordan"]
    assert state.active_player_count() == 2


def test_apply_effects_describes_changes() -> None:
    state = make_state(relationships={"jordan": 90})
    changes = apply_effects(Effects(relationships={"jordan": 15}, alliances=("pact",)), state)
    assert changes == ["jordan +15 -> 100", "alliance pact"]


def test_flag_check_routes_on_truthiness() -> None:
    cond = FlagCheck("won", "lost", flag="won_challenge")
    assert evaluate_condition(cond, make_state(flags={"won_challenge": True})) == "won"
    assert evaluate_condition(cond, make_state(flags={"won_challenge": False})) == "lost"
    assert evaluate_condition(cond, make_state(flags={})) == "lost"


@pytest.mark.parametrize(
    ("cond", "expected"),
    [
        (RelationshipCheck("loyal", "betray", character="jordan", above=25), "loyal"),
        (RelationshipCheck("loyal", "betray", character="jordan", above=30), "betray"),
        (RelationshipCheck("wary", "calm", character="jordan", below=25), "calm"),
        (RelationshipCheck("wary", "calm", character="jordan", below=31), "wary"),
        (RelationshipCheck("high", "low", character="stranger", above=-1), "high"),
    ],
)
def test_relationship_check_uses_strict_bounds(cond: RelationshipCheck, expected: str) -> None:
    assert evaluate_condition(cond, make_state(relationships={"jordan": 30})) == expected


def test_alliance_check_looks_for_membership() -> None:
    cond = AllianceCheck("loyal", "alone", alliance="jordan_pact")
    assert evaluate_condition(cond, make_state(alliances=["jordan_pact"])) == "loyal"
    assert evaluate_condition(cond, make_state()) == "alone"


def test_evaluation_is_deterministic_and_read_only() -> None:
    state = make_state(relationships={"jordan": 30}, flags={"won_challenge": True})
    snapshot = copy.deepcopy(state)
    cond = RelationshipCheck("loyal", "betray", character="jordan", above=25)
    results = {evaluate_condition(cond, state) for _ in range(5)}
    assert results == {"loyal"}
    assert state == snapshot


def test_relationship_check_without_bounds_raises() -> None:
    cond = RelationshipCheck("a", "b", character="jordan")
    with pytest.raises(ConditionError):
        evaluate_condition(cond, make_state())


def test_unknown_condition_variant_raises() -> None:
    with pytest.raises(UnknownConditionError, match="Unknown condition type"):
        evaluate_condition(Condition("a", "b"), make_state())


@pytest.mark.parametrize(
    ("value", "label"),
    [(80, "Ally"), (50, "Ally"), (30, "Friend"), (0, "Neutral"), (-30, "Rival"), (-60, "Enemy")],
)
def test_relationship_status_tiers(value: int, label: str) -> None:
    assert relationship_status(value) == label
