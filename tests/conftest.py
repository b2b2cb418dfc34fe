"""Shared fixtures for methodflow tests."""

import pytest

from methodflow.builder import FlowBuilder
from methodflow.graph import Graph, RunContext
from methodflow.statements import CallInfo, ExpressionEval


def call(name: str) -> ExpressionEval:
    """`name();` as a plain identifier call."""
    return ExpressionEval(f"{name}()", CallInfo(name, identifier=name))


def member_call(obj: str, name: str) -> ExpressionEval:
    return ExpressionEval(f"{obj}.{name}()", CallInfo(f"{obj}.{name}", member=name))


@pytest.fixture
def run_flow():
    """Build one method's flow; returns (graph, start_id, frontier, ctx)."""

    def _run(statements, **builder_kwargs):
        ctx = RunContext()
        graph = Graph(title="Test")
        builder = FlowBuilder(ctx, graph, **builder_kwargs)
        start = builder.start("Test")
        end = builder.visit_sequence(statements, start, 0)
        return graph, start, end, ctx

    return _run


@pytest.fixture(scope="session")
def libclang():
    """clang.cindex module, skipping when the shared library cannot be loaded."""
    cindex = pytest.importorskip("clang.cindex")
    try:
        cindex.Index.create()
    except Exception as e:
        pytest.skip(f"libclang not loadable: {e}")
    return cindex
