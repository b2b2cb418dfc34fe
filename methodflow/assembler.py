"""
Assemble the flows of the selected methods into one Mermaid document.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from .builder import MAX_DEPTH, FlowBuilder, is_service_call
from .graph import GRAPH_DECLARATION, Graph, RunContext, render_graph_lines
from .labels import sanitize
from .selector import DEFAULT_ENTRY, HANDLER_LIMIT, select_roots
from .statements import SourceUnit

TITLE = "# Code Flow Diagram"


@dataclass
class FlowDiagram:
    sections: list[Graph] = field(default_factory=list)
    issued: int = 0  # node ids handed out during the run

    def render(self) -> str:
        lines = [TITLE, "", "```mermaid", GRAPH_DECLARATION]
        for i, section in enumerate(self.sections):
            if i:
                lines.append("")
            lines.extend(render_graph_lines(section))
        lines.append("```")
        return "\n".join(lines) + "\n"


def _placeholder(ctx: RunContext, message: str) -> Graph:
    graph = Graph(title=message)
    FlowBuilder(ctx, graph).new_node("action", sanitize(message, 80))
    return graph


def build_diagram(
    unit: SourceUnit,
    target: Optional[str] = None,
    entry: str = DEFAULT_ENTRY,
    limit: int = HANDLER_LIMIT,
    service_policy: Callable[[str, str], bool] = is_service_call,
    max_depth: int = MAX_DEPTH,
) -> FlowDiagram:
    ctx = RunContext()
    diagram = FlowDiagram()

    cls = unit.first_class()
    if cls is None:
        diagram.sections.append(_placeholder(ctx, "No class found"))
        diagram.issued = ctx.issued
        return diagram

    roots = select_roots(cls, target, entry=entry, limit=limit)
    if target is not None and not roots:
        diagram.sections.append(_placeholder(ctx, f"Method '{target}' not found"))

    for method in roots:
        if method.name in ctx.processed:
            continue
        ctx.processed.add(method.name)

        graph = Graph(title=method.name)
        builder = FlowBuilder(ctx, graph, service_policy=service_policy, max_depth=max_depth)
        start = builder.start(method.name)
        if method.body is not None:
            builder.visit_sequence(method.body, start, 0)
        diagram.sections.append(graph)

    diagram.issued = ctx.issued
    return diagram


def generate_flow(unit: SourceUnit, target: Optional[str] = None, **kwargs) -> str:
    return build_diagram(unit, target, **kwargs).render()
