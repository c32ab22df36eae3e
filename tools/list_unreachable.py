"""List story nodes that cannot be reached from the start node."""

import json
import sys
from pathlib import Path

DEFAULT_CONTENT_PATH = Path("story/story.json")


def load_content(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def node_links(node: dict) -> list:
    kind = node.get("type")
    if kind == "narrative":
        return [node.get("next")]
    if kind == "choice":
        return [choice.get("next") for choice in node.get("choices", []) or [] if isinstance(choice, dict)]
    if kind == "branch":
        condition = node.get("condition") or {}
        return [condition.get("if_true"), condition.get("if_false")]
    return []


def build_graph(content: dict) -> tuple:
    nodes = content.get("nodes", {})
    if isinstance(nodes, list):
        nodes = {entry.get("id"): entry for entry in nodes if isinstance(entry, dict)}
    graph = {node_id: [] for node_id in nodes}
    missing = []
    for node_id, node in nodes.items():
        for target in node_links(node):
            if not isinstance(target, str) or not target:
                continue
            if target in nodes:
                graph[node_id].append(target)
            else:
                missing.append(f"{node_id} -> missing node {target}")
    return graph, missing


def traverse_from(start_node: str, graph: dict) -> set:
    if start_node not in graph:
        return set()
    visited = set()
    stack = [start_node]
    while stack:
        current = stack.pop()
        if current in visited:
            continue
        visited.add(current)
        stack.extend(graph.get(current, []))
    return visited


def find_unreachable(graph: dict, start_node: str) -> list:
    return sorted(set(graph) - traverse_from(start_node, graph))


def main() -> None:
    content_path = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_CONTENT_PATH
    content = load_content(content_path)
    graph, missing = build_graph(content)
    start = (content.get("game_state_template") or {}).get("current_node") or "start"
    unreachable = find_unreachable(graph, start)

    print(f"Content file: {content_path}")
    print(f"Total nodes: {len(graph)}")
    print(f"Reachable nodes: {len(graph) - len(unreachable)}")
    for message in missing:
        print(f"  ! {message}")
    if unreachable:
        print("Unreachable nodes:")
        for node_id in unreachable:
            print(f"  - {node_id}")
    else:
        print(f"All nodes reachable from '{start}'.")


if __name__ == "__main__":
    main()
