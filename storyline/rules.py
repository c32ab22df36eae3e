"""Branch conditions and choice effects."""

from __future__ import annotations

from typing import List

from .content import AllianceCheck, Condition, ContentError, Effects, FlagCheck, RelationshipCheck
from .state import GameState, clamp_relationship

RELATIONSHIP_TIERS = [
    (50, "Ally"),
    (25, "Friend"),
    (-24, "Neutral"),
    (-49, "Rival"),
]


class ConditionError(ContentError):
    """Raised when a condition is missing the operands it needs."""


class UnknownConditionError(ContentError):
    """Raised when a condition variant has no evaluation rule."""


# ---------- Conditions ----------
def meets_condition(cond: Condition, state: GameState) -> bool:
    if isinstance(cond, FlagCheck):
        return bool(state.flags.get(cond.flag))
    if isinstance(cond, RelationshipCheck):
        value = state.relationships.get(cond.character, 0)
        if cond.above is not None:
            return value > cond.above
        if cond.below is not None:
            return value < cond.below
        raise ConditionError(
            f"relationship_check on '{cond.character}' has neither 'above' nor 'below'."
        )
    if isinstance(cond, AllianceCheck):
        return cond.alliance in state.alliances
    raise UnknownConditionError(f"Unknown condition type: {getattr(cond, 'kind', type(cond).__name__)}")


def evaluate_condition(cond: Condition, state: GameState) -> str:
    """Return the node id the condition routes to. Never mutates ``state``."""
    return cond.if_true if meets_condition(cond, state) else cond.if_false


# ---------- Effects ----------
def apply_effects(effects: Effects, state: GameState) -> List[str]:
    """Apply every present effect field and describe what changed."""
    changes: List[str] = []
    if effects is None:
        return changes

    if effects.relationships is not None:
        for character, delta in effects.relationships.items():
            if character not in state.relationships:
                continue
            before = state.relationships[character]
            state.relationships[character] = clamp_relationship(before + int(delta))
            changes.append(
                f"{character} {'+' if delta >= 0 else ''}{delta} -> {state.relationships[character]}"
            )

    if effects.flags is not None:
        for key, value in effects.flags.items():
            state.flags[key] = value
            changes.append(f"flag {key} = {value}")

    if effects.alliances is not None:
        for alliance in effects.alliances:
            if alliance not in state.alliances:
                state.alliances.append(alliance)
                changes.append(f"alliance {alliance}")

    if effects.challenge_wins is not None and effects.challenge_wins > 0:
        state.challenge_wins += effects.challenge_wins
        changes.append(f"challenge wins -> {state.challenge_wins}")

    if effects.elimination_wins is not None and effects.elimination_wins > 0:
        state.elimination_wins += effects.elimination_wins
        changes.append(f"elimination wins -> {state.elimination_wins}")

    if effects.vote_history is not None:
        state.vote_history.extend(
            dict(record) if isinstance(record, dict) else record for record in effects.vote_history
        )
        changes.append(f"votes recorded: {len(effects.vote_history)}")

    if effects.eliminated is not None:
        state.eliminated_players = list(effects.eliminated)
        changes.append(f"eliminated -> {', '.join(state.eliminated_players) or 'none'}")

    if effects.active_players is not None:
        state.active_players = list(effects.active_players)
        changes.append(f"active players -> {len(state.active_players)}")

    return changes


def relationship_status(value: int) -> str:
    for floor, label in RELATIONSHIP_TIERS:
        if value >= floor:
            return label
    return "Enemy"
