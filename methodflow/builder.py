"""
Deterministic flow builder over the statement tree.

Every visit returns the "frontier": the node id control reaches once the
statement completes. Branching statements merge their exits into a single node
before returning, so sequences simply thread the frontier from one statement to
the next.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional

from .graph import STYLES, Edge, Graph, Node, RunContext
from .labels import clean_condition, sanitize
from .statements import (
    CallInfo,
    CompoundBlock,
    Conditional,
    ExpressionEval,
    ForEachLoop,
    ForLoop,
    Other,
    Return,
    Statement,
    SwitchMultiway,
    TryRecover,
    VariableDeclaration,
    WhileLoop,
)

MAX_DEPTH = 10  # deeper statements collapse into a single "..." node

SERVICE_MARKERS = ("Service", "Client", "Proxy")


def is_service_call(name: str, callee: str) -> bool:
    """
    Heuristic for calls into SOAP clients, service proxies and the like.

    Intentionally fuzzy and case-sensitive: any name containing
    Service/Client/Proxy matches, so a helper such as `GetClientName()` is
    drawn as a service call too, while `clientName()` is not.
    """
    return any(marker in name for marker in SERVICE_MARKERS) or "new " in callee


def call_display_name(call: CallInfo) -> str:
    if call.member:
        return call.member
    if call.identifier:
        return call.identifier
    return call.callee


class FlowBuilder:
    """
    Appends the flow of one method to a Graph.

    The RunContext is shared by every builder of a run so node ids stay unique
    across sections.
    """

    def __init__(
        self,
        ctx: RunContext,
        graph: Graph,
        service_policy: Callable[[str, str], bool] = is_service_call,
        max_depth: int = MAX_DEPTH,
    ):
        self.ctx = ctx
        self.graph = graph
        self.service_policy = service_policy
        self.max_depth = max_depth

    def new_node(self, shape: str, label: str = "", style: Optional[str] = None) -> str:
        nid = self.ctx.next_id()
        self.graph.add_node(Node(nid, shape, label, style))
        return nid

    def add_edge(self, src: str, dst: str, label: str = "", dashed: bool = False):
        self.graph.add_edge(Edge(src, dst, label, dashed))

    def attach(self, parent: str, shape: str, label: str = "", style: Optional[str] = None) -> str:
        nid = self.new_node(shape, label, style)
        self.add_edge(parent, nid)
        return nid

    def junction(self, parent: str, edge_label: str = "", dashed: bool = False) -> str:
        nid = self.new_node("junction")
        self.add_edge(parent, nid, edge_label, dashed)
        return nid

    def merge(self, frontiers: Iterable[str]) -> str:
        m = self.new_node("junction")
        for f in frontiers:
            self.add_edge(f, m)
        return m

    def start(self, name: str) -> str:
        return self.new_node("start", sanitize(name), STYLES["start"])

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def visit_sequence(self, statements: Iterable[Statement], parent: str, depth: int) -> str:
        current = parent
        for stmt in statements:
            current = self.visit(stmt, current, depth)
        return current

    def visit(self, stmt: Statement, parent: str, depth: int) -> str:
        if depth > self.max_depth:
            # Prevent stack overflow on deeply nested code
            return self.attach(parent, "action", "...")

        if isinstance(stmt, Conditional):
            return self._visit_if(stmt, parent, depth)
        if isinstance(stmt, ForLoop):
            return self._visit_loop(
                parent, depth, stmt.body,
                f"For: {clean_condition(stmt.condition or 'condition')}",
                "Loop", "Exit", STYLES["loop"],
            )
        if isinstance(stmt, ForEachLoop):
            return self._visit_loop(
                parent, depth, stmt.body,
                f"ForEach: {clean_condition(stmt.collection)}",
                "Each", "Done", STYLES["loop"],
            )
        if isinstance(stmt, WhileLoop):
            return self._visit_loop(
                parent, depth, stmt.body,
                f"While: {clean_condition(stmt.condition)}",
                "True", "False", None,
            )
        if isinstance(stmt, SwitchMultiway):
            return self._visit_switch(stmt, parent, depth)
        if isinstance(stmt, TryRecover):
            return self._visit_try(stmt, parent, depth)
        if isinstance(stmt, Return):
            value = clean_condition(stmt.expression) if stmt.expression else "void"
            return self.attach(parent, "terminal", f"Return: {value}", STYLES["return"])
        if isinstance(stmt, ExpressionEval):
            return self._visit_expression(stmt, parent)
        if isinstance(stmt, VariableDeclaration):
            return self.attach(parent, "action", sanitize(stmt.text))
        if isinstance(stmt, CompoundBlock):
            # Structurally transparent: same depth
            return self.visit_sequence(stmt.statements, parent, depth)
        if isinstance(stmt, Other):
            return self.attach(parent, "action", sanitize(stmt.kind))

        raise TypeError(f"Unsupported statement type: {type(stmt).__name__}")

    # ------------------------------------------------------------------
    # Statement kinds
    # ------------------------------------------------------------------

    def _visit_if(self, stmt: Conditional, parent: str, depth: int) -> str:
        cond = self.attach(parent, "decision", clean_condition(stmt.condition), STYLES["decision"])

        true_node = self.junction(cond, "Yes")
        true_end = self.visit(stmt.then_branch, true_node, depth + 1)

        if stmt.else_branch is not None:
            false_node = self.junction(cond, "No")
            false_end = self.visit(stmt.else_branch, false_node, depth + 1)
        else:
            false_end = self.junction(cond, "No")

        merge = self.new_node("junction")
        self.add_edge(true_end, merge)
        if false_end != cond:
            self.add_edge(false_end, merge)
        return merge

    def _visit_loop(self, parent, depth, body, label, enter_label, exit_label, style) -> str:
        loop = self.attach(parent, "decision", label, style)

        body_node = self.junction(loop, enter_label)
        body_end = self.visit(body, body_node, depth + 1)
        self.add_edge(body_end, loop)

        return self.junction(loop, exit_label)

    def _visit_switch(self, stmt: SwitchMultiway, parent: str, depth: int) -> str:
        switch = self.attach(parent, "decision", f"Switch: {clean_condition(stmt.selector)}")

        case_ends = []
        for case in stmt.cases:
            for label in case.labels:
                case_label = clean_condition(label) if label is not None else "default"
                case_node = self.junction(switch, case_label)
                case_ends.append(self.visit_sequence(case.statements, case_node, depth + 1))

        return self.merge(case_ends)

    def _visit_try(self, stmt: TryRecover, parent: str, depth: int) -> str:
        try_node = self.attach(parent, "action", "Try Block", STYLES["try"])

        ends = [self.visit(stmt.block, try_node, depth + 1)]

        for handler in stmt.handlers:
            exc = sanitize(handler.exception_type) or "Exception"
            catch_node = self.new_node("action", "Catch")
            self.add_edge(try_node, catch_node, f"Catch: {exc}", dashed=True)
            ends.append(self.visit(handler.block, catch_node, depth + 1))

        if stmt.finally_block is not None:
            finally_node = self.new_node("action", "Finally")
            for end in ends:
                self.add_edge(end, finally_node)
            return self.visit(stmt.finally_block, finally_node, depth + 1)

        return self.merge(ends)

    def _visit_expression(self, stmt: ExpressionEval, parent: str) -> str:
        if stmt.call is None:
            # Assignment or other expression
            return self.attach(parent, "action", sanitize(stmt.text))

        name = call_display_name(stmt.call)
        if "." in name or self.service_policy(name, stmt.call.callee):
            return self.attach(parent, "service", f"Service: {sanitize(name)}", STYLES["service"])
        return self.attach(parent, "action", f"{sanitize(name)}#40;#41;")
