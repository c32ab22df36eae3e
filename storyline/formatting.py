"""Placeholder substitution, speaker prefixes and terminal markup."""

from __future__ import annotations

import re
from typing import List, Optional

from .content import CharacterRegistry
from .platform import IS_WEB
from .rules import relationship_status
from .state import GameState

DEFAULT_PLAYER_NAME = "Player"
DEFAULT_SPEAKER_NAME = "You"

ANSI_RESET = "\033[0m"
ANSI_SPEAKER = "\033[1;33m"
ANSI_EMPHASIS = "\033[3m"
STYLE_COLORS = {
    "highlight": "\033[1;32m",
    "error": "\033[31m",
    "dim": "\033[2m",
}

PLACEHOLDER_PATTERN = re.compile(r"\[(PLAYER_NAME|PLAYER|CHALLENGE_WINS|ELIMINATION_WINS)\]")
SPEAKER_TAG_PATTERN = re.compile(r"\[([A-Z\s'.]+)\]:")
EMPHASIS_PATTERN = re.compile(r"\*([^*]+)\*")


def substitute_placeholders(text: str, state: GameState) -> str:
    if not text or "[" not in text:
        return text or ""
    name = state.player_name or DEFAULT_PLAYER_NAME
    values = {
        "PLAYER_NAME": name,
        "PLAYER": name,
        "CHALLENGE_WINS": str(state.challenge_wins),
        "ELIMINATION_WINS": str(state.elimination_wins),
    }
    return PLACEHOLDER_PATTERN.sub(lambda match: values[match.group(1)], text)


def speaker_name(speaker: str, state: GameState, characters: CharacterRegistry) -> str:
    if speaker == "player":
        return state.player_name or DEFAULT_SPEAKER_NAME
    return characters.display_name(speaker)


def format_node_text(
    text: str,
    speaker: Optional[str],
    state: GameState,
    characters: CharacterRegistry,
) -> str:
    formatted = substitute_placeholders(text, state)
    if speaker:
        name = speaker_name(speaker, state, characters)
        formatted = f"[{name.upper()}]: {formatted}"
    return formatted


def format_ending_text(text: str, state: GameState) -> str:
    return substitute_placeholders(text, state)


def resolve_markup(text: str, *, plain: bool = False, style: Optional[str] = None) -> str:
    """Turn speaker tags and ``*emphasis*`` into terminal styling."""
    if not text:
        return text
    if plain or IS_WEB:
        return EMPHASIS_PATTERN.sub(lambda match: match.group(1), text)
    styled = SPEAKER_TAG_PATTERN.sub(
        lambda match: f"{ANSI_SPEAKER}[{match.group(1)}]:{ANSI_RESET}", text
    )
    styled = EMPHASIS_PATTERN.sub(
        lambda match: f"{ANSI_EMPHASIS}{match.group(1)}{ANSI_RESET}", styled
    )
    color = STYLE_COLORS.get(style or "")
    if color:
        styled = f"{color}{styled}{ANSI_RESET}"
    return styled


def format_header(day: int, episode: int, players: int) -> str:
    return f"DAY {day} | EPISODE {episode} | {players} PLAYER{'S' if players != 1 else ''}"


def format_alliance_name(alliance: str) -> str:
    return " ".join(word.capitalize() for word in alliance.replace("_", " ").split(" "))


def status_report(state: GameState, characters: CharacterRegistry) -> List[str]:
    lines = [
        "PLAYER",
        f"  {state.player_name or DEFAULT_PLAYER_NAME}",
        f"  Challenge Wins: {state.challenge_wins}",
        f"  Elimination Wins: {state.elimination_wins}",
        "RELATIONSHIPS",
    ]
    eliminated = set(state.eliminated_players)
    for character, value in state.relationships.items():
        if character in eliminated:
            continue
        npc = characters.get(character)
        label = npc.name if npc else character.capitalize()
        lines.append(f"  {label}: {relationship_status(value)} ({'+' if value > 0 else ''}{value})")
    if state.alliances:
        lines.append("ALLIANCES")
        lines.extend(f"  - {format_alliance_name(alliance)}" for alliance in state.alliances)
    if state.eliminated_players:
        lines.append("ELIMINATED")
        lines.extend(f"  - {player.capitalize()}" for player in state.eliminated_players)
    return lines
