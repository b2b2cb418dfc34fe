"""
Flowchart graph records and their Mermaid rendering.

Graphs are append-only: builders add nodes and edges, nothing is removed or
rewritten once emitted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

# shape -> (open, close) Mermaid delimiters
SHAPES = {
    "start": ("([", "])"),
    "terminal": ("([", "])"),
    "decision": ("{", "}"),
    "action": ("[", "]"),
    "service": ("[[", "]]"),
    "junction": ("[", "]"),
}

STYLES = {
    "start": "fill:#e1f5ff,stroke:#01579b,stroke-width:2px",
    "decision": "fill:#fff9c4,stroke:#f57f17",
    "loop": "fill:#e8f5e9,stroke:#2e7d32",
    "try": "fill:#ffebee,stroke:#c62828",
    "return": "fill:#fce4ec,stroke:#880e4f",
    "service": "fill:#f3e5f5,stroke:#4a148c",
}

GRAPH_DECLARATION = "graph TD"
INDENT = "    "


@dataclass(frozen=True)
class Node:
    id: str
    shape: str
    label: str
    style: Optional[str] = None


@dataclass(frozen=True)
class Edge:
    src: str
    dst: str
    label: str = ""
    dashed: bool = False


@dataclass
class Graph:
    """One diagram section, usually the flow of a single method."""

    title: str = ""
    nodes: dict[str, Node] = field(default_factory=dict)
    edges: list[Edge] = field(default_factory=list)

    def add_node(self, node: Node) -> None:
        if node.id in self.nodes:
            raise ValueError(f"Duplicate node id: {node.id}")
        self.nodes[node.id] = node

    def add_edge(self, edge: Edge) -> None:
        self.edges.append(edge)

    def incoming(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges if e.dst == node_id]

    def outgoing(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges if e.src == node_id]


class RunContext:
    """
    State scoped to one diagram generation run: the node id counter and the
    set of method names already diagrammed.
    """

    def __init__(self):
        self._next_id = 0
        self.processed: set[str] = set()

    def next_id(self) -> str:
        nid = f"N{self._next_id}"
        self._next_id += 1
        return nid

    @property
    def issued(self) -> int:
        return self._next_id


def render_node(node: Node) -> str:
    opening, closing = SHAPES[node.shape]
    label = node.label if node.label else " "
    return f"{node.id}{opening}{label}{closing}"


def render_edge(edge: Edge) -> str:
    arrow = "-.->" if edge.dashed else "-->"
    if edge.label:
        # `|` would close the edge label early
        label = edge.label.replace("|", "#124;")
        return f"{edge.src} {arrow}|{label}| {edge.dst}"
    return f"{edge.src} {arrow} {edge.dst}"


def render_graph_lines(graph: Graph) -> list[str]:
    """Node lines (each followed by its style directive), then edge lines."""
    lines = []
    for node in graph.nodes.values():
        lines.append(INDENT + render_node(node))
        if node.style:
            lines.append(f"{INDENT}style {node.id} {node.style}")
    for edge in graph.edges:
        lines.append(INDENT + render_edge(edge))
    return lines


def render_mermaid(graph: Graph) -> str:
    """Standalone flowchart for a single section (used by reports)."""
    return "\n".join([GRAPH_DECLARATION] + render_graph_lines(graph)) + "\n"


def validate_mermaid(mermaid: str) -> tuple[bool, Optional[str]]:
    if not mermaid or not mermaid.strip():
        return False, "Empty flowchart"
    if GRAPH_DECLARATION not in mermaid:
        return False, "Missing graph declaration"
    if mermaid.count("```") % 2:
        return False, "Unbalanced code fence"
    # Allow #40; codes, but do not allow HTML entities
    if "&#" in mermaid:
        return False, "HTML entities detected (use #40; style codes instead)"
    for line in mermaid.splitlines():
        if line.count("-->") + line.count("-.->") > 1:
            return False, "Multiple edges in one line"
        if ("-->" in line or "-.->" in line) and line.count("|") not in (0, 2):
            return False, "Unescaped | in edge label"
    return True, None
