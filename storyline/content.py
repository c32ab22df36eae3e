"""Typed, immutable story content for Storyline."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from .schema import normalize_nodes, validate_content

DEFAULT_CONTENT_PATH = "story/story.json"
DEFAULT_START_NODE = "start"

SPEAKER_ALIASES = {
    "deej": "DJ 'Deej' Slavin",
}


class ContentError(Exception):
    """Raised when story content is missing or inconsistent."""

    def __init__(self, message: str, errors: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])


# ---------- Conditions ----------
@dataclass(frozen=True)
class Condition:
    if_true: str
    if_false: str

    kind = "condition"


@dataclass(frozen=True)
class FlagCheck(Condition):
    flag: str = ""

    kind = "flag_check"


@dataclass(frozen=True)
class RelationshipCheck(Condition):
    character: str = ""
    above: Optional[int] = None
    below: Optional[int] = None

    kind = "relationship_check"


@dataclass(frozen=True)
class AllianceCheck(Condition):
    alliance: str = ""

    kind = "alliance_check"


# ---------- Effects and choices ----------
@dataclass(frozen=True)
class Effects:
    relationships: Optional[Mapping[str, int]] = None
    flags: Optional[Mapping[str, Any]] = None
    alliances: Optional[Tuple[str, ...]] = None
    challenge_wins: Optional[int] = None
    elimination_wins: Optional[int] = None
    vote_history: Optional[Tuple[Mapping[str, Any], ...]] = None
    eliminated: Optional[Tuple[str, ...]] = None
    active_players: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class Choice:
    text: str
    response_text: Optional[str] = None
    effects: Optional[Effects] = None
    next: Optional[str] = None


# ---------- Nodes ----------
@dataclass(frozen=True)
class Node:
    id: str
    text: str = ""
    speaker: Optional[str] = None
    day: Optional[int] = None
    episode: Optional[int] = None

    kind = "node"


@dataclass(frozen=True)
class NarrativeNode(Node):
    next: Optional[str] = None

    kind = "narrative"


@dataclass(frozen=True)
class ChoiceNode(Node):
    choices: Tuple[Choice, ...] = ()

    kind = "choice"


@dataclass(frozen=True)
class BranchNode(Node):
    condition: Optional[Condition] = None

    kind = "branch"


@dataclass(frozen=True)
class EndingNode(Node):
    kind = "ending"


# ---------- Characters and template ----------
@dataclass(frozen=True)
class Character:
    id: str
    name: str
    starting_disposition: int = 0


@dataclass(frozen=True)
class CharacterRegistry:
    npcs: Tuple[Character, ...] = ()
    aliases: Mapping[str, str] = field(default_factory=lambda: dict(SPEAKER_ALIASES))

    def get(self, character_id: str) -> Optional[Character]:
        for npc in self.npcs:
            if npc.id == character_id:
                return npc
        return None

    def display_name(self, character_id: str) -> str:
        npc = self.get(character_id)
        if npc is not None:
            return npc.name
        return self.aliases.get(character_id, character_id)


@dataclass(frozen=True)
class GameStateTemplate:
    current_node: str = DEFAULT_START_NODE
    player_name: Optional[str] = None
    day: int = 1
    episode: int = 1
    relationships: Mapping[str, int] = field(default_factory=dict)
    flags: Mapping[str, Any] = field(default_factory=dict)
    alliances: Tuple[str, ...] = ()
    challenge_wins: int = 0
    elimination_wins: int = 0
    vote_history: Tuple[Mapping[str, Any], ...] = ()
    eliminated_players: Tuple[str, ...] = ()
    active_players: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ContentGraph:
    nodes: Mapping[str, Node]
    characters: CharacterRegistry = field(default_factory=CharacterRegistry)
    template: GameStateTemplate = field(default_factory=GameStateTemplate)
    title: str = "Untitled Story"
    intro: Tuple[str, ...] = ()

    def get(self, node_id: Optional[str]) -> Optional[Node]:
        if not isinstance(node_id, str):
            return None
        return self.nodes.get(node_id)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    @property
    def start_node(self) -> str:
        return self.template.current_node

    def targets(self, node: Node) -> List[str]:
        """Every node id reachable in one step from ``node``."""
        if isinstance(node, NarrativeNode):
            return [node.next] if node.next else []
        if isinstance(node, ChoiceNode):
            return [choice.next for choice in node.choices if choice.next]
        if isinstance(node, BranchNode) and node.condition is not None:
            return [node.condition.if_true, node.condition.if_false]
        return []

    def reachable_from(self, start: Optional[str] = None) -> Set[str]:
        start = start or self.start_node
        seen: Set[str] = set()
        stack = [start]
        while stack:
            node_id = stack.pop()
            node = self.get(node_id)
            if node is None or node_id in seen:
                continue
            seen.add(node_id)
            stack.extend(self.targets(node))
        return seen

    def unreachable(self) -> List[str]:
        return sorted(set(self.nodes) - self.reachable_from())


# ---------- Parsing ----------
def _tuple_or_none(value: Any) -> Optional[tuple]:
    if value is None:
        return None
    return tuple(value)


def _value_or(value: Any, default: Any) -> Any:
    return default if value is None else value


def parse_condition(raw: Mapping[str, Any]) -> Condition:
    ctype = raw.get("type")
    if ctype == "flag_check":
        return FlagCheck(raw["if_true"], raw["if_false"], flag=raw["flag"])
    if ctype == "relationship_check":
        return RelationshipCheck(
            raw["if_true"],
            raw["if_false"],
            character=raw["character"],
            above=raw.get("above"),
            below=raw.get("below"),
        )
    if ctype == "alliance_check":
        return AllianceCheck(raw["if_true"], raw["if_false"], alliance=raw["alliance"])
    raise ContentError(f"Unsupported condition type '{ctype}'.")


def parse_effects(raw: Mapping[str, Any]) -> Effects:
    relationships = raw.get("relationships")
    flags = raw.get("flags")
    votes = raw.get("vote_history")
    return Effects(
        relationships=dict(relationships) if relationships is not None else None,
        flags=dict(flags) if flags is not None else None,
        alliances=_tuple_or_none(raw.get("alliances")),
        challenge_wins=raw.get("challenge_wins"),
        elimination_wins=raw.get("elimination_wins"),
        vote_history=tuple(dict(v) if isinstance(v, Mapping) else v for v in votes)
        if votes is not None
        else None,
        eliminated=_tuple_or_none(raw.get("eliminated")),
        active_players=_tuple_or_none(raw.get("active_players")),
    )


def parse_choice(raw: Mapping[str, Any]) -> Choice:
    effects = raw.get("effects")
    return Choice(
        text=raw["text"],
        response_text=raw.get("response_text"),
        effects=parse_effects(effects) if effects is not None else None,
        next=raw.get("next"),
    )


def parse_node(node_id: str, raw: Mapping[str, Any]) -> Node:
    common = {
        "id": node_id,
        "text": raw.get("text") or "",
        "speaker": raw.get("speaker"),
        "day": raw.get("day"),
        "episode": raw.get("episode"),
    }
    kind = raw.get("type")
    if kind == "narrative":
        return NarrativeNode(**common, next=raw.get("next"))
    if kind == "choice":
        return ChoiceNode(**common, choices=tuple(parse_choice(c) for c in raw["choices"]))
    if kind == "branch":
        return BranchNode(**common, condition=parse_condition(raw["condition"]))
    if kind == "ending":
        return EndingNode(**common)
    raise ContentError(f"Node '{node_id}' has unsupported type '{kind}'.")


def parse_characters(raw: Optional[Mapping[str, Any]]) -> CharacterRegistry:
    raw = raw or {}
    npcs = tuple(
        Character(
            id=npc["id"],
            name=npc.get("name") or npc["id"],
            starting_disposition=npc.get("starting_disposition") or 0,
        )
        for npc in raw.get("npcs", [])
    )
    aliases = dict(SPEAKER_ALIASES)
    aliases.update(raw.get("aliases") or {})
    return CharacterRegistry(npcs=npcs, aliases=aliases)


def parse_template(raw: Optional[Mapping[str, Any]]) -> GameStateTemplate:
    raw = raw or {}
    return GameStateTemplate(
        current_node=raw.get("current_node") or DEFAULT_START_NODE,
        player_name=raw.get("player_name"),
        day=_value_or(raw.get("day"), 1),
        episode=_value_or(raw.get("episode"), 1),
        relationships=dict(raw.get("relationships") or {}),
        flags=dict(raw.get("flags") or {}),
        alliances=tuple(raw.get("alliances") or ()),
        challenge_wins=_value_or(raw.get("challenge_wins"), 0),
        elimination_wins=_value_or(raw.get("elimination_wins"), 0),
        vote_history=tuple(raw.get("vote_history") or ()),
        eliminated_players=tuple(raw.get("eliminated_players") or ()),
        active_players=tuple(raw.get("active_players") or ()),
    )


def parse_content(raw: Mapping[str, Any]) -> ContentGraph:
    errors = validate_content(raw)
    if errors:
        raise ContentError("Invalid story content:\n- " + "\n- ".join(errors), errors)
    raw_nodes, _ = normalize_nodes(raw.get("nodes"))
    nodes: Dict[str, Node] = {
        node_id: parse_node(node_id, payload) for node_id, payload in raw_nodes.items()
    }
    return ContentGraph(
        nodes=nodes,
        characters=parse_characters(raw.get("characters")),
        template=parse_template(raw.get("game_state_template")),
        title=raw.get("title") or "Untitled Story",
        intro=tuple(raw.get("intro") or ()),
    )


def load_content(path: Path | str) -> ContentGraph:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            raw = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ContentError(f"Failed to parse JSON from {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ContentError("Invalid story content:\n- content: must be a JSON object.")
    return parse_content(raw)
