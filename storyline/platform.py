"""Runtime detection: browser (Pyodide) build vs a real terminal."""

from __future__ import annotations

import os
import sys
from typing import Any, Optional, TextIO

IS_WEB = sys.platform == "emscripten"


def get_local_storage() -> Optional[Any]:
    """``window.localStorage`` when running under Pyodide, otherwise ``None``."""
    if not IS_WEB:
        return None
    try:
        from js import localStorage  # type: ignore
    except ImportError:
        return None
    return localStorage


def wants_plain_output(stream: Optional[TextIO] = None) -> bool:
    """True when ANSI styling should stay out of the output stream."""
    if IS_WEB or os.environ.get("NO_COLOR"):
        return True
    stream = stream if stream is not None else sys.stdout
    isatty = getattr(stream, "isatty", None)
    return not (callable(isatty) and isatty())
