"""Choose which methods of a class get diagrammed."""

from __future__ import annotations

from typing import Optional, Sequence

from .statements import ClassDecl, MethodDecl

DEFAULT_ENTRY = "Page_Load"
EVENT_SUFFIXES = ("_Click", "_Changed", "_SelectedIndexChanged", "_CheckedChanged")
HANDLER_LIMIT = 10  # keeps diagrams readable on large code-behind classes


def is_event_handler(name: str, suffixes: Sequence[str] = EVENT_SUFFIXES) -> bool:
    return name.endswith(tuple(suffixes))


def select_roots(
    cls: ClassDecl,
    target: Optional[str] = None,
    entry: str = DEFAULT_ENTRY,
    suffixes: Sequence[str] = EVENT_SUFFIXES,
    limit: int = HANDLER_LIMIT,
) -> list[MethodDecl]:
    """
    With an explicit target: the first method named exactly `target`, or [].
    Otherwise: the entry method (if any) followed by up to `limit` event
    handlers in declaration order.
    """
    if target is not None:
        return [m for m in cls.methods if m.name == target][:1]

    roots = [m for m in cls.methods if m.name == entry][:1]
    handlers = [m for m in cls.methods if is_event_handler(m.name, suffixes)]
    return roots + handlers[:limit]
