#!/usr/bin/env python3
"""Validate story content for common authoring mistakes."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, Sequence

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CONTENT = REPO_ROOT / "story" / "story.json"

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from storyline.content import parse_content
from storyline.schema import validate_content


def load_json(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate Storyline content.")
    parser.add_argument(
        "content_path",
        nargs="?",
        default=str(DEFAULT_CONTENT),
        help="Path to the story content JSON file.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str]) -> None:
    args = parse_args(argv[1:])
    content_path = Path(args.content_path).resolve()
    try:
        content = load_json(content_path)
    except json.JSONDecodeError as exc:
        print(f"Failed to parse JSON from {content_path}: {exc}")
        sys.exit(1)

    errors = validate_content(content)
    if errors:
        print("Validation failed (path: message):")
        for err in errors:
            print(f" - {err}")
        sys.exit(1)

    graph = parse_content(content)
    start = graph.start_node
    unreachable = graph.unreachable()
    if unreachable:
        print("Unreachable node warnings:")
        for node_id in unreachable:
            print(f" - nodes.{node_id}: not reachable from '{start}'.")

    print(f"Validation passed for {content_path}.")


if __name__ == "__main__":
    main(sys.argv)
