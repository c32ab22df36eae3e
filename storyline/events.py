"""Waits the interpreter suspends on and the events that resume them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class WaitKind(str, Enum):
    ADVANCE = "advance"
    CHOICE = "choice"
    NAME = "name"
    HALTED = "halted"


class Menu(str, Enum):
    NODE = "node"
    ENDING = "ending"
    CONTINUE = "continue"


@dataclass(frozen=True)
class ChoiceOption:
    index: int
    label: str


@dataclass(frozen=True)
class Pending:
    """The single outstanding wait of an interpreter."""

    kind: WaitKind
    node_id: Optional[str] = None
    options: Tuple[ChoiceOption, ...] = field(default_factory=tuple)
    menu: Optional[Menu] = None
    error: Optional[str] = None
    serial: int = 0

    @property
    def halted(self) -> bool:
        return self.kind is WaitKind.HALTED


# ---------- Events ----------
@dataclass(frozen=True)
class Event:
    pass


# ``serial`` names the Pending wait an answer was read for; None skips the check.
@dataclass(frozen=True)
class Advance(Event):
    serial: Optional[int] = None


@dataclass(frozen=True)
class Choose(Event):
    index: int
    serial: Optional[int] = None


@dataclass(frozen=True)
class EnterName(Event):
    name: str
    serial: Optional[int] = None


# Session commands handled by the driver between waits.
@dataclass(frozen=True)
class SaveSlot(Event):
    slot: int


@dataclass(frozen=True)
class LoadSlot(Event):
    slot: int


@dataclass(frozen=True)
class ShowStatus(Event):
    pass


@dataclass(frozen=True)
class Restart(Event):
    pass


@dataclass(frozen=True)
class Quit(Event):
    pass
