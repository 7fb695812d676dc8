"""Graph export helpers for DOT, Mermaid and JSON outputs."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Dict, List, Set

from .models import DependencyEdge, DependencyGraph, DependencyNode

EXPORT_FORMATS = ("dot", "mermaid", "json")

_UNSAFE_ID_RE = re.compile(r"[^A-Za-z0-9_]")


def to_dot(graph: DependencyGraph, focus: str = "") -> str:
    nodes = {node.id: node for node in graph.nodes}
    selected = _focused_subgraph(nodes, graph.edges, focus)
    cyclic = {member for component in graph.strongly_connected_components for member in component}

    lines = ["digraph DependencyGraph {"]
    lines.append("  rankdir=TB;")
    lines.append("  node [shape=box];")

    for node_id in selected["nodes"]:
        node = nodes[node_id]
        style = ', color="red"' if node_id in cyclic else ""
        lines.append(f'  "{_esc(node_id)}" [label="{_esc(node.name)}"{style}];')

    for edge in selected["edges"]:
        lines.append(
            f'  "{_esc(edge.source)}" -> "{_esc(edge.target)}" [label="{edge.kind.value}"];'
        )

    lines.append("}")
    return "\n".join(lines)


def to_mermaid(graph: DependencyGraph, focus: str = "") -> str:
    nodes = {node.id: node for node in graph.nodes}
    selected = _focused_subgraph(nodes, graph.edges, focus)

    lines = ["graph LR"]
    safe_ids: Dict[str, str] = {}
    taken: Set[str] = set()
    for node_id in selected["nodes"]:
        safe = _mermaid_id(node_id)
        # src/a-b.ts and src/a_b.ts sanitize alike
        suffix = 2
        while safe in taken:
            safe = f"{_mermaid_id(node_id)}_{suffix}"
            suffix += 1
        taken.add(safe)
        safe_ids[node_id] = safe
        lines.append(f'    {safe}["{_mermaid_label(nodes[node_id].name)}"]')

    for edge in selected["edges"]:
        arrow = "-->" if edge.kind.value == "imports" else f"-.{edge.kind.value}.->"
        lines.append(f"    {safe_ids[edge.source]} {arrow} {safe_ids[edge.target]}")
    return "\n".join(lines)


def to_json(graph: DependencyGraph) -> str:
    return json.dumps(graph.to_dict(), indent=2)


def export_graph(graph: DependencyGraph, output_file: Path, fmt: str = "dot", focus: str = "") -> None:
    """Write *graph* to *output_file* in one of :data:`EXPORT_FORMATS`."""
    if fmt == "dot":
        text = to_dot(graph, focus)
    elif fmt == "mermaid":
        text = to_mermaid(graph, focus)
    elif fmt == "json":
        text = to_json(graph)
    else:
        raise ValueError(f"Unknown export format '{fmt}', expected one of {', '.join(EXPORT_FORMATS)}")
    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(text, encoding="utf-8")


def _focused_subgraph(
    nodes: Dict[str, DependencyNode], edges: List[DependencyEdge], focus: str
) -> Dict[str, List]:
    if not focus:
        return {"nodes": list(nodes.keys()), "edges": edges}

    focus_ids = {node_id for node_id, node in nodes.items() if focus in node_id or focus in node.name}
    if not focus_ids:
        return {"nodes": list(nodes.keys()), "edges": edges}

    edge_subset = [e for e in edges if e.source in focus_ids or e.target in focus_ids]
    node_subset = set(focus_ids)
    for e in edge_subset:
        node_subset.add(e.source)
        node_subset.add(e.target)
    return {"nodes": sorted(node_subset), "edges": edge_subset}


def _mermaid_id(node_id: str) -> str:
    safe = _UNSAFE_ID_RE.sub("_", node_id)
    return f"n_{safe}" if safe[:1].isdigit() or not safe else safe


def _mermaid_label(text: str) -> str:
    return text.replace('"', "#quot;")


def _esc(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')
