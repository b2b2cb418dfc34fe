"""
methodflow - Mermaid control-flow diagrams for class methods.

The core walks a statement tree (see statements.py) and emits one flowchart
section per selected method:

    from methodflow import generate_flow
    from methodflow.clang_frontend import parse_file

    print(generate_flow(parse_file("TicketEntry.cpp")))
"""

__version__ = "0.1.0"

from .assembler import FlowDiagram, build_diagram, generate_flow  # noqa: E402
from .labels import clean_condition, sanitize  # noqa: E402

__all__ = ["FlowDiagram", "build_diagram", "generate_flow", "sanitize", "clean_condition", "__version__"]
