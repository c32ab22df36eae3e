import copy
from pathlib import Path
from typing import List, Optional, Sequence

import pytest

from storyline.content import parse_content
from storyline.events import ChoiceOption, Event, Pending
from storyline.interpreter import Interpreter
from storyline.persistence import MemoryStore, Persistence
from storyline.renderer import Renderer
from storyline.settings import Settings

REPO_ROOT = Path(__file__).resolve().parents[1]
SAMPLE_STORY = REPO_ROOT / "story" / "story.json"

MINI_STORY = {
    "title": "Test Island",
    "characters": {
        "npcs": [
            {"id": "jordan", "name": "Jordan", "starting_disposition": 10},
            {"id": "riley", "name": "Riley"},
        ]
    },
    "game_state_template": {
        "current_node": "start",
        "day": 1,
        "episode": 1,
        "relationships": {"jordan": 0, "riley": 0},
        "flags": {},
        "alliances": [],
        "challenge_wins": 0,
        "elimination_wins": 0,
        "vote_history": [],
        "eliminated_players": [],
        "active_players": ["player", "jordan", "riley"],
    },
    "nodes": {
        "start": {
            "type": "narrative",
            "day": 2,
            "speaker": "deej",
            "text": "Welcome, [PLAYER_NAME]!",
            "next": "pick",
        },
        "pick": {
            "type": "choice",
            "speaker": "jordan",
            "text": "Team up?",
            "choices": [
                {
                    "text": "Yes",
                    "response_text": "Deal, [PLAYER].",
                    "effects": {
                        "relationships": {"jordan": 15},
                        "alliances": ["pact"],
                        "flags": {"won_challenge": True},
                        "challenge_wins": 1,
                    },
                    "next": "route",
                },
                {
                    "text": "No",
                    "effects": {"relationships": {"jordan": -20}},
                    "next": "route",
                },
                {"text": "Wait", "response_text": "You hesitate."},
            ],
        },
        "route": {
            "type": "branch",
            "condition": {
                "type": "flag_check",
                "flag": "won_challenge",
                "if_true": "win",
                "if_false": "lose",
            },
        },
        "win": {"type": "narrative", "text": "You won [CHALLENGE_WINS].", "next": "finale"},
        "lose": {"type": "narrative", "text": "You lost."},
        "finale": {
            "type": "ending",
            "episode": 3,
            "speaker": "jordan",
            "text": "[PLAYER_NAME] wins with [CHALLENGE_WINS].",
        },
    },
}


class RecordingRenderer(Renderer):
    """Renderer double that records every instruction and replays scripted events."""

    def __init__(self, events: Optional[Sequence[Event]] = None) -> None:
        self.calls: List[tuple] = []
        self.events: List[Event] = list(events or [])
        self.skips = 0

    async def display_text(self, text: str, style: Optional[str] = None) -> None:
        self.calls.append(("text", text))

    def request_skip(self) -> None:
        self.skips += 1

    def present_choices(self, options: Sequence[ChoiceOption]) -> None:
        self.calls.append(("choices", [option.label for option in options]))

    def clear_choices(self) -> None:
        self.calls.append(("clear_choices",))

    def update_header(self, day: int, episode: int, active_players: int) -> None:
        self.calls.append(("header", day, episode, active_players))

    def show_ending_cue(self) -> None:
        self.calls.append(("ending_cue",))

    def set_continue_available(self, available: bool) -> None:
        self.calls.append(("continue", available))

    def show_divider(self) -> None:
        self.calls.append(("divider",))

    def show_error(self, message: str) -> None:
        self.calls.append(("error", message))

    def clear(self) -> None:
        self.calls.append(("clear",))

    async def read_event(self, pending: Pending) -> Event:
        return self.events.pop(0)

    def texts(self) -> List[str]:
        return [call[1] for call in self.calls if call[0] == "text"]

    def errors(self) -> List[str]:
        return [call[1] for call in self.calls if call[0] == "error"]

    def kinds(self) -> List[str]:
        return [call[0] for call in self.calls]


def mini_story() -> dict:
    return copy.deepcopy(MINI_STORY)


@pytest.fixture
def settings() -> Settings:
    return Settings(reduce_animations=True)


@pytest.fixture
def renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def content():
    return parse_content(mini_story())


@pytest.fixture
def make_interpreter(renderer, store, settings):
    def factory(content_graph) -> Interpreter:
        persistence = Persistence(store, settings, content_graph)
        return Interpreter(content_graph, renderer, persistence, settings)

    return factory


@pytest.fixture
def interpreter(make_interpreter, content) -> Interpreter:
    return make_interpreter(content)
