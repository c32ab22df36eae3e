"""The node-processing state machine.

An :class:`Interpreter` owns the content graph, the single live
:class:`GameState`, the persistence adapter and a renderer. Every public step
runs until the story needs the player again and returns the resulting
:class:`Pending` wait; :meth:`Interpreter.resume` answers that wait with an
event and runs the next stretch. Branch nodes never suspend.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from .content import BranchNode, ChoiceNode, ContentGraph, EndingNode, NarrativeNode, Node
from .events import Advance, ChoiceOption, Choose, EnterName, Event, Menu, Pending, WaitKind
from .formatting import (
    DEFAULT_PLAYER_NAME,
    format_ending_text,
    format_node_text,
    status_report,
    substitute_placeholders,
)
from .persistence import Persistence
from .renderer import Renderer
from .rules import ConditionError, UnknownConditionError, apply_effects, evaluate_condition
from .settings import Settings
from .state import GameState, new_game_state

logger = logging.getLogger(__name__)

MAX_SILENT_HOPS = 1000
PLAY_AGAIN_LABEL = "Play Again"
CONTINUE_SAVED_LABEL = "Continue saved game"
START_NEW_LABEL = "Start new game"


class InputError(ValueError):
    """Raised when an event does not answer the outstanding wait."""


class Interpreter:
    def __init__(
        self,
        content: ContentGraph,
        renderer: Renderer,
        persistence: Persistence,
        settings: Optional[Settings] = None,
    ) -> None:
        self.content = content
        self.renderer = renderer
        self.persistence = persistence
        self.settings = settings or persistence.settings
        self.state: Optional[GameState] = None
        self.pending = Pending(WaitKind.HALTED)
        self._serial = 0
        self._saved_state: Optional[GameState] = None
        self._busy = False

    # ---------- Session entry points ----------
    async def boot(self) -> Pending:
        """Offer to continue an autosave, or start a new game."""
        saved = self.persistence.load_autosave()
        if saved is None:
            return await self.start_new_game()
        self._saved_state = saved
        self.renderer.clear_choices()
        self.renderer.clear()
        await self.renderer.display_text("SAVED GAME FOUND", style="highlight")
        await self.renderer.display_text(
            f"Day {saved.day}, Episode {saved.episode}\n"
            f"Player: {saved.player_name or DEFAULT_PLAYER_NAME}"
        )
        options = (
            ChoiceOption(1, CONTINUE_SAVED_LABEL),
            ChoiceOption(2, START_NEW_LABEL),
        )
        self.renderer.present_choices(options)
        return self._wait(WaitKind.CHOICE, options=options, menu=Menu.CONTINUE)

    async def start_new_game(self) -> Pending:
        self.state = new_game_state(self.content)
        self._saved_state = None
        self.renderer.clear_choices()
        self.renderer.clear()
        intro = self.content.intro or (
            f"Welcome to {self.content.title}.",
            "A text-based reality competition.",
        )
        for line in intro:
            await self.renderer.display_text(line)
            await self._pause("intro_delay")
        return self._wait(WaitKind.NAME)

    async def restart(self) -> Pending:
        self.persistence.clear_autosave()
        return await self.start_new_game()

    async def resume(self, event: Event) -> Pending:
        """Answer the outstanding wait with ``event``."""
        if self._busy:
            raise InputError("The interpreter is still processing the previous event.")
        pending = self.pending
        serial = getattr(event, "serial", None)
        if serial is not None and serial != pending.serial:
            raise InputError(
                f"{type(event).__name__} answers wait {serial}, but wait {pending.serial} is current."
            )
        if isinstance(event, Advance) and pending.kind is WaitKind.ADVANCE:
            handler = self._advance()
        elif isinstance(event, Choose) and pending.kind is WaitKind.CHOICE:
            if not 1 <= event.index <= len(pending.options):
                raise InputError(f"Choice {event.index} is not between 1 and {len(pending.options)}.")
            handler = self._choose(pending, event.index)
        elif isinstance(event, EnterName) and pending.kind is WaitKind.NAME:
            handler = self._enter_name(event.name)
        else:
            raise InputError(
                f"{type(event).__name__} does not answer the current {pending.kind.value} wait."
            )
        self._busy = True
        try:
            return await handler
        finally:
            self._busy = False

    def request_skip(self) -> None:
        self.renderer.request_skip()

    # ---------- Saves ----------
    def save_to_slot(self, slot: int) -> bool:
        if self.state is None:
            return False
        return self.persistence.save_to_slot(slot, self.state)

    async def load_from_slot(self, slot: int) -> Optional[Pending]:
        loaded = self.persistence.load_from_slot(slot)
        if loaded is None:
            return None
        return await self._resume_state(loaded)

    def status(self) -> List[str]:
        if self.state is None:
            return []
        return status_report(self.state, self.content.characters)

    # ---------- Node processing ----------
    async def process_node(self, node_id: str) -> Pending:
        state = self._require_state()
        hops = 0
        while True:
            node = self.content.get(node_id)
            if node is None:
                return self._content_error(f'Node "{node_id}" not found.')

            state.current_node = node_id
            if node.day is not None:
                state.day = node.day
            if node.episode is not None:
                state.episode = node.episode
            self.renderer.update_header(state.day, state.episode, state.active_player_count())
            logger.debug("Entering %s node %s", node.kind, node_id)

            if isinstance(node, (NarrativeNode, ChoiceNode)):
                self.persistence.autosave(state)

            if isinstance(node, BranchNode):
                hops += 1
                if hops > MAX_SILENT_HOPS:
                    return self._content_error(
                        f'Branch nodes starting at "{node_id}" never reach a visible node.'
                    )
                resolved = self._resolve_branch(node)
                if resolved is None:
                    return self.pending
                node_id = resolved
                continue
            if isinstance(node, NarrativeNode):
                return await self._process_narrative(node)
            if isinstance(node, ChoiceNode):
                return await self._process_choice(node)
            if isinstance(node, EndingNode):
                return await self._process_ending(node)
            return self._content_error(f"Unknown node type: {node.kind}")

    def _resolve_branch(self, node: BranchNode) -> Optional[str]:
        condition = node.condition
        if condition is None:
            self._content_error(f'Branch node "{node.id}" has no condition.')
            return None
        try:
            return evaluate_condition(condition, self.state)
        except UnknownConditionError as exc:
            logger.error("%s", exc)
            self.renderer.show_error(str(exc))
            return condition.if_false
        except ConditionError as exc:
            self._content_error(str(exc))
            return None

    async def _process_narrative(self, node: NarrativeNode) -> Pending:
        self.renderer.clear_choices()
        await self.renderer.display_text(self._node_text(node))
        self.renderer.set_continue_available(True)
        return self._wait(WaitKind.ADVANCE, node_id=node.id)

    async def _process_choice(self, node: ChoiceNode) -> Pending:
        self.renderer.clear_choices()
        await self.renderer.display_text(self._node_text(node))
        await self._pause("choice_delay")
        options = tuple(
            ChoiceOption(index, choice.text) for index, choice in enumerate(node.choices, start=1)
        )
        self.renderer.present_choices(options)
        return self._wait(WaitKind.CHOICE, node_id=node.id, options=options, menu=Menu.NODE)

    async def _process_ending(self, node: EndingNode) -> Pending:
        self.renderer.clear_choices()
        self.renderer.show_ending_cue()
        await self._pause("ending_cue_delay")
        await self.renderer.display_text(format_ending_text(node.text, self.state))
        self.persistence.clear_autosave()
        await self._pause("ending_delay")
        options = (ChoiceOption(1, PLAY_AGAIN_LABEL),)
        self.renderer.present_choices(options)
        return self._wait(WaitKind.CHOICE, node_id=node.id, options=options, menu=Menu.ENDING)

    # ---------- Event handlers ----------
    async def _advance(self) -> Pending:
        node = self.content.get(self.pending.node_id)
        self.renderer.set_continue_available(False)
        if isinstance(node, NarrativeNode) and node.next:
            return await self.process_node(node.next)
        return self._wait(WaitKind.HALTED, node_id=self.pending.node_id)

    async def _choose(self, pending: Pending, index: int) -> Pending:
        if pending.menu is Menu.ENDING:
            return await self.start_new_game()
        if pending.menu is Menu.CONTINUE:
            saved = self._saved_state
            if index == 1 and saved is not None:
                return await self._resume_state(saved)
            return await self.start_new_game()

        node = self.content.get(pending.node_id)
        if not isinstance(node, ChoiceNode):
            return self._content_error(f'Node "{pending.node_id}" is no longer a choice node.')
        choice = node.choices[index - 1]
        state = self._require_state()
        self.renderer.clear_choices()
        if choice.response_text:
            await self.renderer.display_text(substitute_placeholders(choice.response_text, state))
        if choice.effects is not None:
            for change in apply_effects(choice.effects, state):
                logger.debug("Effect: %s", change)
        if not choice.next:
            return self._wait(WaitKind.HALTED, node_id=node.id)
        await self._pause("line_delay")
        self.renderer.show_divider()
        return await self.process_node(choice.next)

    async def _enter_name(self, name: str) -> Pending:
        cleaned = (name or "").strip().upper()
        if not cleaned:
            return self.pending
        state = self._require_state()
        state.player_name = cleaned
        self.renderer.clear()
        return await self.process_node(state.current_node)

    # ---------- Helpers ----------
    async def _resume_state(self, state: GameState) -> Pending:
        self.state = state
        self._saved_state = None
        self.renderer.clear_choices()
        self.renderer.clear()
        self.renderer.update_header(state.day, state.episode, state.active_player_count())
        return await self.process_node(state.current_node)

    def _node_text(self, node: Node) -> str:
        return format_node_text(node.text, node.speaker, self.state, self.content.characters)

    def _require_state(self) -> GameState:
        if self.state is None:
            raise RuntimeError("No game in progress; call boot() or start_new_game() first.")
        return self.state

    def _content_error(self, message: str) -> Pending:
        logger.error("Content error: %s", message)
        self.renderer.clear_choices()
        self.renderer.show_error(f"Game error: {message}")
        node_id = self.state.current_node if self.state is not None else None
        return self._wait(WaitKind.HALTED, node_id=node_id, error=message)

    def _wait(self, kind: WaitKind, **fields) -> Pending:
        self._serial += 1
        self.pending = Pending(kind, serial=self._serial, **fields)
        return self.pending

    async def _pause(self, name: str) -> None:
        delay = self.settings.delay(name)
        if delay > 0:
            await asyncio.sleep(delay)
