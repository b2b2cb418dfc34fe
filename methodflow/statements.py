"""
Statement tree consumed by the flow builder.

A front end (see clang_frontend.py) turns parsed source into these records.
The set of statement classes is closed: FlowBuilder dispatches on exactly these
types and rejects anything else.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union


@dataclass(frozen=True)
class CallInfo:
    """How a call expression names its target."""

    callee: str  # raw source text of the called expression
    member: Optional[str] = None  # `obj.Name(...)` / `obj->Name(...)`
    identifier: Optional[str] = None  # `Name(...)`


@dataclass(frozen=True)
class Conditional:
    condition: str
    then_branch: "Statement"
    else_branch: Optional["Statement"] = None


@dataclass(frozen=True)
class ForLoop:
    condition: Optional[str]
    body: "Statement"


@dataclass(frozen=True)
class ForEachLoop:
    collection: str
    body: "Statement"


@dataclass(frozen=True)
class WhileLoop:
    condition: str
    body: "Statement"


@dataclass(frozen=True)
class SwitchCase:
    # None stands for `default`
    labels: tuple[Optional[str], ...]
    statements: tuple["Statement", ...] = ()


@dataclass(frozen=True)
class SwitchMultiway:
    selector: str
    cases: tuple[SwitchCase, ...] = ()


@dataclass(frozen=True)
class CatchClause:
    exception_type: Optional[str]
    block: "Statement"


@dataclass(frozen=True)
class TryRecover:
    block: "Statement"
    handlers: tuple[CatchClause, ...] = ()
    finally_block: Optional["Statement"] = None


@dataclass(frozen=True)
class Return:
    expression: Optional[str] = None


@dataclass(frozen=True)
class ExpressionEval:
    text: str
    call: Optional[CallInfo] = None


@dataclass(frozen=True)
class VariableDeclaration:
    text: str


@dataclass(frozen=True)
class CompoundBlock:
    statements: tuple["Statement", ...] = ()


@dataclass(frozen=True)
class Other:
    kind: str


Statement = Union[
    Conditional,
    ForLoop,
    ForEachLoop,
    WhileLoop,
    SwitchMultiway,
    TryRecover,
    Return,
    ExpressionEval,
    VariableDeclaration,
    CompoundBlock,
    Other,
]

STATEMENT_TYPES = (
    Conditional,
    ForLoop,
    ForEachLoop,
    WhileLoop,
    SwitchMultiway,
    TryRecover,
    Return,
    ExpressionEval,
    VariableDeclaration,
    CompoundBlock,
    Other,
)


@dataclass(frozen=True)
class MethodDecl:
    name: str
    # None for declarations without a body (pure virtual, declared only)
    body: Optional[tuple[Statement, ...]] = None
    source: str = ""


@dataclass(frozen=True)
class ClassDecl:
    name: str
    methods: tuple[MethodDecl, ...] = ()


@dataclass(frozen=True)
class SourceUnit:
    classes: tuple[ClassDecl, ...] = ()
    path: str = ""
    diagnostics: tuple[str, ...] = field(default=(), compare=False)

    def first_class(self) -> Optional[ClassDecl]:
        """Only the first class-like declaration of a unit is diagrammed."""
        return self.classes[0] if self.classes else None
