"""Renderer contract and the terminal reference renderer."""

from __future__ import annotations

import asyncio
import inspect
import re
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, List, Optional, Sequence

from .events import (
    Advance,
    ChoiceOption,
    Choose,
    EnterName,
    Event,
    LoadSlot,
    Pending,
    Quit,
    Restart,
    SaveSlot,
    ShowStatus,
    WaitKind,
)
from .formatting import format_header, resolve_markup
from .settings import Settings

SLOT_COMMAND_PATTERN = re.compile(r"^([sl])\s*(\d)$")


class Renderer(ABC):
    """Everything the interpreter needs from a presentation layer."""

    @abstractmethod
    async def display_text(self, text: str, style: Optional[str] = None) -> None:
        """Reveal ``text``; return once fully shown or skipped."""

    @abstractmethod
    def request_skip(self) -> None:
        """Collapse an in-progress reveal to its final state."""

    @abstractmethod
    def present_choices(self, options: Sequence[ChoiceOption]) -> None:
        ...

    @abstractmethod
    def clear_choices(self) -> None:
        ...

    @abstractmethod
    def update_header(self, day: int, episode: int, active_players: int) -> None:
        ...

    @abstractmethod
    def show_ending_cue(self) -> None:
        ...

    @abstractmethod
    def set_continue_available(self, available: bool) -> None:
        ...

    @abstractmethod
    def show_divider(self) -> None:
        ...

    @abstractmethod
    def show_error(self, message: str) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...

    @abstractmethod
    async def read_event(self, pending: Pending) -> Event:
        """Block until the player produces an event for ``pending``."""

    async def await_advance(self, pending: Pending) -> Advance:
        while True:
            event = await self.read_event(pending)
            if isinstance(event, Advance):
                return event

    async def await_choice(self, pending: Pending) -> int:
        while True:
            event = await self.read_event(pending)
            if isinstance(event, Choose):
                return event.index

    async def await_name(self, pending: Pending) -> str:
        while True:
            event = await self.read_event(pending)
            if isinstance(event, EnterName):
                return event.name


class TerminalRenderer(Renderer):
    """Line-oriented renderer with a typewriter reveal."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        print_func: Callable[..., None] = print,
        input_func: Callable[[str], str | Awaitable[str]] = input,
        plain: bool = False,
        fast: bool = False,
    ) -> None:
        self.settings = settings or Settings()
        self.print = print_func
        self.input_func = input_func
        self.plain = plain
        self.fast = fast
        self.options: List[ChoiceOption] = []
        self.continue_available = False
        self._skip_requested = False

    # ---------- Output ----------
    async def display_text(self, text: str, style: Optional[str] = None) -> None:
        self._skip_requested = False
        formatted = resolve_markup(text, plain=self.plain, style=style)
        delay = self.settings.delay("text_delay_fast" if self.fast else "text_delay")
        if delay <= 0:
            self.print(formatted)
            return
        for index, char in enumerate(formatted):
            if self._skip_requested:
                self.print(formatted[index:], end="", flush=True)
                break
            self.print(char, end="", flush=True)
            await asyncio.sleep(delay)
        self.print("")
        self._skip_requested = False

    def request_skip(self) -> None:
        self._skip_requested = True

    def present_choices(self, options: Sequence[ChoiceOption]) -> None:
        self.options = list(options)
        for option in self.options:
            self.print(f"  [{option.index}] {resolve_markup(option.label, plain=self.plain)}")

    def clear_choices(self) -> None:
        self.options = []

    def update_header(self, day: int, episode: int, active_players: int) -> None:
        self.print(f"\n== {format_header(day, episode, active_players)} ==")

    def show_ending_cue(self) -> None:
        self.print("\n" + "*" * 40)

    def set_continue_available(self, available: bool) -> None:
        self.continue_available = available
        if available:
            self.print("  (press Enter to continue)")

    def show_divider(self) -> None:
        self.print("-" * 40)

    def show_error(self, message: str) -> None:
        self.print(resolve_markup(f"ERROR: {message}", plain=self.plain, style="error"))

    def clear(self) -> None:
        self.options = []
        self.continue_available = False
        self.print("")

    def show_lines(self, lines: Sequence[str]) -> None:
        for line in lines:
            self.print(line)

    # ---------- Input ----------
    async def read_input(self, prompt: str = "") -> str:
        if inspect.iscoroutinefunction(self.input_func):
            return await self.input_func(prompt)
        result = await asyncio.to_thread(self.input_func, prompt)
        if inspect.isawaitable(result):
            return await result
        return result

    async def read_event(self, pending: Pending) -> Event:
        while True:
            if pending.kind is WaitKind.NAME:
                raw = (await self.read_input("Enter your name: ")).strip()
                if raw:
                    return EnterName(raw, serial=pending.serial)
                continue

            raw = (await self.read_input("> ")).strip()
            command = raw.lower()
            event = self._parse_command(command)
            if event is not None:
                return event
            if pending.kind is WaitKind.ADVANCE and not command:
                return Advance(serial=pending.serial)
            if pending.kind is WaitKind.CHOICE and command.isdigit():
                return Choose(int(command), serial=pending.serial)
            self.print(self._hint(pending))

    def _parse_command(self, command: str) -> Optional[Event]:
        match = SLOT_COMMAND_PATTERN.match(command)
        if match:
            action, slot = match.groups()
            return SaveSlot(int(slot)) if action == "s" else LoadSlot(int(slot))
        if command in {"i", "status"}:
            return ShowStatus()
        if command in {"r", "restart"}:
            return Restart()
        if command in {"q", "quit"}:
            return Quit()
        return None

    def _hint(self, pending: Pending) -> str:
        commands = "S<n> save, L<n> load, I status, R restart, Q quit"
        if pending.kind is WaitKind.CHOICE:
            return f"Pick a number from 1 to {len(pending.options)} ({commands})."
        if pending.kind is WaitKind.ADVANCE:
            return f"Press Enter to continue ({commands})."
        return f"The story has stopped ({commands})."
