"""Shared content validation utilities for Storyline."""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, MutableMapping, Sequence, Tuple

NODE_KINDS = ("narrative", "choice", "branch", "ending")

ConditionValidator = Callable[[Mapping[str, Any], str], List[str]]


def path(*parts: object) -> str:
    path_str = ""
    for part in parts:
        if isinstance(part, int):
            path_str = f"{path_str}[{part}]"
            continue
        if not isinstance(part, str):
            part = str(part)
        if part.isidentifier():
            path_str = f"{path_str}.{part}" if path_str else part
        else:
            path_str = f'{path_str}[{json.dumps(part)}]'
    return path_str


def format_validation_message(path_str: str, context: str, message: str) -> str:
    if context:
        return f"{path_str}: {context}: {message}"
    return f"{path_str}: {message}"


def is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def simple_value(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))


class ValidationContext:
    """Utility container for accumulating validation errors."""

    def __init__(self) -> None:
        self.errors: List[str] = []

    def add(self, context: str, path_str: str, message: str) -> None:
        self.errors.append(format_validation_message(path_str, context, message))

    def extend_with_path(self, messages: Iterable[str], path_str: str) -> None:
        for message in messages:
            self.errors.append(f"{path_str}: {message}")


def normalize_nodes(
    raw_nodes: Any, ctx: ValidationContext | None = None
) -> Tuple[Dict[str, Dict[str, Any]], List[str]]:
    """Accept nodes as ``{id: node}`` or ``[{"id": ..., ...}]`` and return a mapping."""
    nodes: Dict[str, Dict[str, Any]] = {}
    errors: List[str] = []
    node_ids: List[str] = []

    def add_error(context: str, path_parts: Sequence[object], message: str) -> None:
        path_str = path(*path_parts)
        errors.append(format_validation_message(path_str, context, message))
        if ctx is not None:
            ctx.add(context, path_str, message)

    if isinstance(raw_nodes, dict):
        for node_id, payload in raw_nodes.items():
            if not is_non_empty_str(node_id):
                add_error("Nodes", ("nodes",), "node identifiers must be non-empty strings.")
                continue
            if not isinstance(payload, dict):
                add_error("Nodes", ("nodes", node_id), f"node '{node_id}' must be an object.")
                continue
            nodes[node_id] = payload
        node_ids = list(nodes.keys())
    elif isinstance(raw_nodes, list):
        for idx, entry in enumerate(raw_nodes, start=1):
            if not isinstance(entry, MutableMapping):
                add_error(f"Node entry {idx}", ("nodes", idx - 1), "must be an object.")
                continue
            node_id = entry.get("id")
            if not is_non_empty_str(node_id):
                add_error(f"Node entry {idx}", ("nodes", idx - 1, "id"), "is missing a valid 'id'.")
                continue
            node_ids.append(node_id)
            payload = dict(entry)
            payload.pop("id", None)
            nodes[node_id] = payload
    else:
        add_error(
            "Content",
            ("nodes",),
            "must be an object mapping IDs to node definitions or a list of node entries.",
        )

    duplicates = [node_id for node_id, count in Counter(node_ids).items() if count > 1]
    if duplicates:
        dup_list = ", ".join(sorted(set(duplicates)))
        add_error("Nodes", ("nodes",), f"Duplicate node IDs found: {dup_list}.")

    return nodes, errors


# ---------- Conditions ----------
def _validate_flag_check(condition: Mapping[str, Any], context: str) -> List[str]:
    if not is_non_empty_str(condition.get("flag")):
        return [f"{context}: 'flag_check' requires a non-empty string 'flag'."]
    return []


def _validate_relationship_check(condition: Mapping[str, Any], context: str) -> List[str]:
    errors: List[str] = []
    if not is_non_empty_str(condition.get("character")):
        errors.append(f"{context}: 'relationship_check' requires a non-empty string 'character'.")
    bounds = [key for key in ("above", "below") if condition.get(key) is not None]
    if not bounds:
        errors.append(f"{context}: 'relationship_check' requires an 'above' or 'below' bound.")
    elif len(bounds) > 1:
        errors.append(f"{context}: 'relationship_check' takes only one of 'above' or 'below'.")
    for key in bounds:
        if not is_int(condition.get(key)):
            errors.append(f"{context}: 'relationship_check' bound '{key}' must be an integer.")
    return errors


def _validate_alliance_check(condition: Mapping[str, Any], context: str) -> List[str]:
    if not is_non_empty_str(condition.get("alliance")):
        return [f"{context}: 'alliance_check' requires a non-empty string 'alliance'."]
    return []


@dataclass(frozen=True)
class ConditionSpec:
    required_fields: Tuple[str, ...]
    validate: ConditionValidator


CONDITION_SPECS: Dict[str, ConditionSpec] = {
    "flag_check": ConditionSpec(("flag", "if_true", "if_false"), _validate_flag_check),
    "relationship_check": ConditionSpec(
        ("character", "if_true", "if_false"), _validate_relationship_check
    ),
    "alliance_check": ConditionSpec(("alliance", "if_true", "if_false"), _validate_alliance_check),
}


def validate_target(
    target: Any,
    context: str,
    nodes: Mapping[str, Any],
    path_parts: Sequence[object],
    ctx: ValidationContext,
    *,
    required: bool = False,
) -> None:
    if target is None:
        if required:
            ctx.add(context, path(*path_parts), "is missing a target.")
        return
    if not is_non_empty_str(target):
        ctx.add(context, path(*path_parts), "targets must be non-empty strings.")
    elif target not in nodes:
        ctx.add(context, path(*path_parts), f"targets unknown node '{target}'.")


def validate_condition(
    condition: Any,
    context: str,
    nodes: Mapping[str, Any],
    path_parts: Sequence[object],
    ctx: ValidationContext,
) -> None:
    if not isinstance(condition, Mapping):
        ctx.add(context, path(*path_parts), "condition must be an object.")
        return
    cond_type = condition.get("type")
    spec = CONDITION_SPECS.get(cond_type) if isinstance(cond_type, str) else None
    if spec is None:
        ctx.add(context, path(*path_parts, "type"), f"unsupported condition type '{cond_type}'.")
        return
    ctx.extend_with_path(spec.validate(condition, context), path(*path_parts))
    for key in ("if_true", "if_false"):
        validate_target(
            condition.get(key), context, nodes, (*path_parts, key), ctx, required=True
        )


# ---------- Effects ----------
def _str_list(value: Any) -> bool:
    return isinstance(value, list) and all(is_non_empty_str(item) for item in value)


def validate_effects(
    effects: Any, context: str, path_parts: Sequence[object], ctx: ValidationContext
) -> None:
    if not isinstance(effects, Mapping):
        ctx.add(context, path(*path_parts), "effects must be an object.")
        return
    relationships = effects.get("relationships")
    if relationships is not None:
        if not isinstance(relationships, Mapping) or not all(
            is_non_empty_str(k) and is_int(v) for k, v in relationships.items()
        ):
            ctx.add(
                context,
                path(*path_parts, "relationships"),
                "must map character IDs to integer deltas.",
            )
    flags = effects.get("flags")
    if flags is not None:
        if not isinstance(flags, Mapping) or not all(simple_value(v) for v in flags.values()):
            ctx.add(context, path(*path_parts, "flags"), "must map flag names to simple values.")
    for key in ("alliances", "eliminated", "active_players"):
        value = effects.get(key)
        if value is not None and not _str_list(value):
            ctx.add(context, path(*path_parts, key), "must be a list of non-empty strings.")
    for key in ("challenge_wins", "elimination_wins"):
        value = effects.get(key)
        if value is not None and (not is_int(value) or value < 0):
            ctx.add(context, path(*path_parts, key), "must be a non-negative integer.")
    votes = effects.get("vote_history")
    if votes is not None and not isinstance(votes, list):
        ctx.add(context, path(*path_parts, "vote_history"), "must be a list of vote records.")


# ---------- Nodes ----------
def validate_choice(
    choice: Any,
    node_id: str,
    index: int,
    nodes: Mapping[str, Any],
    path_parts: Sequence[object],
    ctx: ValidationContext,
) -> None:
    context = f"Choice {index} in node '{node_id}'"
    if not isinstance(choice, Mapping):
        ctx.add(context, path(*path_parts), "must be an object.")
        return
    if not is_non_empty_str(choice.get("text")):
        ctx.add(context, path(*path_parts, "text"), "requires non-empty 'text'.")
    response = choice.get("response_text")
    if response is not None and not isinstance(response, str):
        ctx.add(context, path(*path_parts, "response_text"), "must be a string.")
    validate_target(choice.get("next"), context, nodes, (*path_parts, "next"), ctx)
    effects = choice.get("effects")
    if effects is not None:
        validate_effects(effects, context, (*path_parts, "effects"), ctx)


def validate_node(
    node_id: str, node: Mapping[str, Any], nodes: Mapping[str, Any], ctx: ValidationContext
) -> None:
    context = f"Node '{node_id}'"
    kind = node.get("type")
    if kind not in NODE_KINDS:
        ctx.add(context, path("nodes", node_id, "type"), f"unsupported node type '{kind}'.")
        return
    for key in ("day", "episode"):
        if node.get(key) is not None and not is_int(node.get(key)):
            ctx.add(context, path("nodes", node_id, key), f"'{key}' must be an integer.")
    for key in ("text", "speaker"):
        if node.get(key) is not None and not isinstance(node.get(key), str):
            ctx.add(context, path("nodes", node_id, key), f"'{key}' must be a string.")

    if kind == "narrative":
        validate_target(node.get("next"), context, nodes, ("nodes", node_id, "next"), ctx)
    elif kind == "choice":
        choices = node.get("choices")
        if not isinstance(choices, list) or not choices:
            ctx.add(context, path("nodes", node_id, "choices"), "requires a non-empty list of choices.")
            return
        for index, choice in enumerate(choices, start=1):
            validate_choice(
                choice, node_id, index, nodes, ("nodes", node_id, "choices", index - 1), ctx
            )
    elif kind == "branch":
        validate_condition(
            node.get("condition"), context, nodes, ("nodes", node_id, "condition"), ctx
        )


def validate_characters(raw: Any, ctx: ValidationContext) -> None:
    if raw is None:
        return
    if not isinstance(raw, Mapping):
        ctx.add("Characters", path("characters"), "must be an object.")
        return
    npcs = raw.get("npcs", [])
    if not isinstance(npcs, list):
        ctx.add("Characters", path("characters", "npcs"), "must be a list.")
        return
    seen = set()
    for idx, npc in enumerate(npcs):
        context = f"Character entry {idx + 1}"
        if not isinstance(npc, Mapping) or not is_non_empty_str(npc.get("id")):
            ctx.add(context, path("characters", "npcs", idx), "requires a non-empty 'id'.")
            continue
        if npc["id"] in seen:
            ctx.add(context, path("characters", "npcs", idx, "id"), f"duplicate id '{npc['id']}'.")
        seen.add(npc["id"])
        disposition = npc.get("starting_disposition")
        if disposition is not None and not is_int(disposition):
            ctx.add(
                context,
                path("characters", "npcs", idx, "starting_disposition"),
                "must be an integer.",
            )
    aliases = raw.get("aliases")
    if aliases is not None and (
        not isinstance(aliases, Mapping) or not all(isinstance(v, str) for v in aliases.values())
    ):
        ctx.add("Characters", path("characters", "aliases"), "must map ids to display names.")


def validate_template(raw: Any, nodes: Mapping[str, Any], ctx: ValidationContext) -> None:
    if raw is None:
        if "start" not in nodes:
            ctx.add("Template", path("game_state_template"), "is missing and no 'start' node exists.")
        return
    if not isinstance(raw, Mapping):
        ctx.add("Template", path("game_state_template"), "must be an object.")
        return
    validate_target(
        raw.get("current_node", "start"),
        "Template",
        nodes,
        ("game_state_template", "current_node"),
        ctx,
        required=True,
    )
    relationships = raw.get("relationships")
    if relationships is not None and (
        not isinstance(relationships, Mapping)
        or not all(is_int(v) for v in relationships.values())
    ):
        ctx.add("Template", path("game_state_template", "relationships"), "must map ids to integers.")
    for key in ("flags",):
        if raw.get(key) is not None and not isinstance(raw.get(key), Mapping):
            ctx.add("Template", path("game_state_template", key), "must be an object.")
    for key in ("alliances", "vote_history", "eliminated_players", "active_players"):
        if raw.get(key) is not None and not isinstance(raw.get(key), list):
            ctx.add("Template", path("game_state_template", key), "must be a list.")
    for key in ("day", "episode", "challenge_wins", "elimination_wins"):
        if key in raw and not is_int(raw[key]):
            ctx.add("Template", path("game_state_template", key), "must be an integer.")


def validate_content(content: Mapping[str, Any]) -> List[str]:
    ctx = ValidationContext()
    if not isinstance(content, Mapping):
        ctx.add("Content", path("content"), "must be a JSON object.")
        return ctx.errors
    if "nodes" not in content:
        ctx.add("Content", path("nodes"), "must include a 'nodes' section.")
        return ctx.errors
    title = content.get("title")
    if title is not None and not isinstance(title, str):
        ctx.add("Content", path("title"), "must be a string.")
    intro = content.get("intro")
    if intro is not None and not (isinstance(intro, list) and all(isinstance(i, str) for i in intro)):
        ctx.add("Content", path("intro"), "must be a list of strings.")

    nodes, _node_errors = normalize_nodes(content.get("nodes"), ctx)
    for node_id, node in nodes.items():
        validate_node(node_id, node, nodes, ctx)
    validate_characters(content.get("characters"), ctx)
    validate_template(content.get("game_state_template"), nodes, ctx)
    return ctx.errors
