"""The live game-state record and its factory."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .content import ContentGraph

RELATIONSHIP_MIN = -100
RELATIONSHIP_MAX = 100


class StateError(Exception):
    """Raised when a state record cannot be turned back into a GameState."""


def clamp(n, lo, hi): return lo if n < lo else hi if n > hi else n


def clamp_relationship(value: int) -> int:
    return clamp(int(value), RELATIONSHIP_MIN, RELATIONSHIP_MAX)


def _field(data: Mapping[str, Any], key: str, default: int) -> Any:
    # null counters in older saves read as their default
    value = data.get(key)
    return default if value is None else value


@dataclass
class GameState:
    """Everything that changes while a story is being played."""

    current_node: str
    player_name: Optional[str] = None
    day: int = 1
    episode: int = 1
    relationships: Dict[str, int] = field(default_factory=dict)
    flags: Dict[str, Any] = field(default_factory=dict)
    alliances: List[str] = field(default_factory=list)
    challenge_wins: int = 0
    elimination_wins: int = 0
    vote_history: List[Any] = field(default_factory=list)
    eliminated_players: List[str] = field(default_factory=list)
    active_players: List[str] = field(default_factory=list)

    def active_player_count(self) -> int:
        return len(self.active_players)

    def ensure_consistency(self) -> "GameState":
        if not isinstance(self.relationships, dict):
            self.relationships = {}
        self.relationships = {
            str(key): clamp_relationship(value) for key, value in self.relationships.items()
        }
        if not isinstance(self.flags, dict):
            self.flags = {}
        alliances: List[str] = []
        for alliance in self.alliances or []:
            if isinstance(alliance, str) and alliance not in alliances:
                alliances.append(alliance)
        self.alliances = alliances
        for name in ("vote_history", "eliminated_players", "active_players"):
            value = getattr(self, name)
            if not isinstance(value, list):
                setattr(self, name, list(value or []))
        self.challenge_wins = max(int(self.challenge_wins or 0), 0)
        self.elimination_wins = max(int(self.elimination_wins or 0), 0)
        self.day = int(self.day or 0)
        self.episode = int(self.episode or 0)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player_name": self.player_name,
            "current_node": self.current_node,
            "day": self.day,
            "episode": self.episode,
            "relationships": dict(self.relationships),
            "flags": dict(self.flags),
            "alliances": list(self.alliances),
            "challenge_wins": self.challenge_wins,
            "elimination_wins": self.elimination_wins,
            "vote_history": [dict(v) if isinstance(v, Mapping) else v for v in self.vote_history],
            "eliminated_players": list(self.eliminated_players),
            "active_players": list(self.active_players),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GameState":
        if not isinstance(data, Mapping):
            raise StateError("State record was not an object.")
        current = data.get("current_node")
        if not isinstance(current, str) or not current:
            raise StateError("State record is missing 'current_node'.")
        name = data.get("player_name")
        if name is not None and not isinstance(name, str):
            raise StateError("'player_name' must be a string.")
        for key in ("relationships", "flags"):
            if key in data and not isinstance(data[key], Mapping):
                raise StateError(f"'{key}' must be an object.")
        for key in ("alliances", "vote_history", "eliminated_players", "active_players"):
            if key in data and not isinstance(data[key], list):
                raise StateError(f"'{key}' must be a list.")
        try:
            state = cls(
                current_node=current,
                player_name=name,
                day=int(_field(data, "day", 1)),
                episode=int(_field(data, "episode", 1)),
                relationships=dict(data.get("relationships", {})),
                flags=dict(data.get("flags", {})),
                alliances=list(data.get("alliances", [])),
                challenge_wins=int(_field(data, "challenge_wins", 0)),
                elimination_wins=int(_field(data, "elimination_wins", 0)),
                vote_history=list(data.get("vote_history", [])),
                eliminated_players=list(data.get("eliminated_players", [])),
                active_players=list(data.get("active_players", [])),
            )
            return state.ensure_consistency()
        except (TypeError, ValueError) as exc:
            raise StateError(f"State record malformed: {exc}") from exc


def new_game_state(content: ContentGraph) -> GameState:
    """Build a fresh state from the content template, field by field."""
    template = content.template
    relationships = {key: clamp_relationship(value) for key, value in template.relationships.items()}
    for npc in content.characters.npcs:
        if npc.id in relationships:
            relationships[npc.id] = clamp_relationship(npc.starting_disposition)
    return GameState(
        current_node=template.current_node,
        player_name=template.player_name,
        day=template.day,
        episode=template.episode,
        relationships=relationships,
        flags=dict(template.flags),
        alliances=list(dict.fromkeys(template.alliances)),
        challenge_wins=template.challenge_wins,
        elimination_wins=template.elimination_wins,
        vote_history=[dict(v) if isinstance(v, Mapping) else v for v in template.vote_history],
        eliminated_players=list(template.eliminated_players),
        active_players=list(template.active_players),
    )
