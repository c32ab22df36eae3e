"""Terminal front end: ``storyline [content.json]``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from .content import DEFAULT_CONTENT_PATH, ContentError, load_content
from .events import LoadSlot, Quit, Restart, SaveSlot, ShowStatus
from .interpreter import InputError, Interpreter
from .persistence import DEFAULT_SAVE_DIR, Persistence, SaveError, default_store
from .platform import wants_plain_output
from .renderer import TerminalRenderer
from .settings import SETTINGS_PATH, load_settings

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Play a Storyline interactive story.")
    parser.add_argument("content", nargs="?", default=DEFAULT_CONTENT_PATH)
    parser.add_argument("--settings", default=str(SETTINGS_PATH), help="Settings JSON file.")
    parser.add_argument("--saves", default=str(DEFAULT_SAVE_DIR), help="Directory for save files.")
    parser.add_argument("--plain", action="store_true", help="Disable ANSI styling.")
    parser.add_argument("--fast", action="store_true", help="Reveal text at the fast pace.")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (written to stderr).",
    )
    return parser.parse_args(argv)


async def run_session(interpreter: Interpreter, renderer: TerminalRenderer) -> None:
    """Drive the interpreter: read an event for each wait and answer it."""
    pending = await interpreter.boot()
    while True:
        event = await renderer.read_event(pending)
        if isinstance(event, Quit):
            renderer.print("Goodbye.")
            return
        if isinstance(event, Restart):
            pending = await interpreter.restart()
            continue
        if isinstance(event, ShowStatus):
            renderer.show_lines(interpreter.status() or ["No game in progress."])
            continue
        if isinstance(event, SaveSlot):
            try:
                saved = interpreter.save_to_slot(event.slot)
            except SaveError as exc:
                renderer.print(f"[!] {exc}")
                continue
            renderer.print(f"[Saved] Slot {event.slot}." if saved else "[!] Save failed.")
            continue
        if isinstance(event, LoadSlot):
            try:
                loaded = await interpreter.load_from_slot(event.slot)
            except SaveError as exc:
                renderer.print(f"[!] {exc}")
                continue
            if loaded is None:
                renderer.print(f"[!] No save found in slot {event.slot}.")
                continue
            pending = loaded
            continue
        try:
            pending = await interpreter.resume(event)
        except InputError as exc:
            renderer.print(f"[!] {exc}")


async def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        content = load_content(args.content)
    except (ContentError, OSError) as exc:
        print(str(exc), file=sys.stderr)
        return 1
    logger.info("Loaded %d nodes from %s", len(content.nodes), args.content)
    settings = load_settings(args.settings)
    renderer = TerminalRenderer(
        settings, plain=args.plain or wants_plain_output(), fast=args.fast
    )
    persistence = Persistence(default_store(args.saves), settings, content)
    interpreter = Interpreter(content, renderer, persistence, settings)
    await run_session(interpreter, renderer)
    return 0


def run() -> None:
    try:
        code = asyncio.run(main())
    except (KeyboardInterrupt, EOFError):
        print("\n[Interrupted] Bye.")
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    run()
