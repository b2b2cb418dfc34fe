"""
libclang front end: C/C++ source -> SourceUnit.

Control flow comes straight from the clang AST. Condition and header text is
sliced from the source by cursor extents so labels stay close to what the
author wrote.
"""

from __future__ import annotations

import os
import time
from typing import Optional

from clang import cindex

from .statements import (
    CallInfo,
    CatchClause,
    ClassDecl,
    CompoundBlock,
    Conditional,
    ExpressionEval,
    ForEachLoop,
    ForLoop,
    MethodDecl,
    Other,
    Return,
    SourceUnit,
    Statement,
    SwitchCase,
    SwitchMultiway,
    TryRecover,
    VariableDeclaration,
    WhileLoop,
)
from .utils import log, warn

LIBCLANG_ENV = "METHODFLOW_LIBCLANG"
DEFAULT_STD = "c++17"

CK = cindex.CursorKind
CLASS_KINDS = (CK.CLASS_DECL, CK.STRUCT_DECL, CK.CLASS_TEMPLATE)
METHOD_KINDS = (CK.CXX_METHOD, CK.FUNCTION_TEMPLATE)
LABEL_KINDS = (CK.CASE_STMT, CK.DEFAULT_STMT)


class FrontendError(RuntimeError):
    """The source could not be turned into a statement tree."""


def configure_libclang(path: Optional[str] = None):
    """
    Point the bindings at a specific libclang shared library.
    Without a path (or $METHODFLOW_LIBCLANG) the bundled library is used.
    """
    path = path or os.environ.get(LIBCLANG_ENV)
    if not path:
        return
    if cindex.Config.loaded:
        # The bindings bind one library per process
        if path != cindex.Config.library_file:
            warn(f"libclang already loaded; ignoring {path}")
        return
    try:
        cindex.Config.set_library_file(path)
    except Exception as e:
        raise FrontendError(f"Failed to configure libclang at {path}: {e}") from e


def readable_kind(kind) -> str:
    """BREAK_STMT -> Break, CXX_THROW_EXPR -> Throw, DO_STMT -> Do."""
    name = getattr(kind, "name", None) or str(kind)
    if name.startswith("CXX_"):
        name = name[4:]
    for suffix in ("_STMT", "_EXPR", "_DECL"):
        if name.endswith(suffix):
            name = name[: -len(suffix)]
            break
    return "".join(part.capitalize() for part in name.split("_") if part) or "Statement"


def split_top_level(text: str, sep: str) -> list[str]:
    """
    Split on `sep` outside of brackets and string/char literals;
    `::` never counts as a `:` separator.
    """
    parts: list[str] = []
    depth = 0
    quote = None
    buf: list[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                buf.append(text[i : i + 2])
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif ch == sep and depth == 0:
            if sep == ":" and (text[i + 1 : i + 2] == ":" or text[i - 1 : i] == ":"):
                buf.append(ch)
                i += 1
                continue
            parts.append("".join(buf))
            buf = []
            i += 1
            continue
        buf.append(ch)
        i += 1
    parts.append("".join(buf))
    return parts


class _TreeBuilder:
    """Converts cursors of one translation unit into statement records."""

    def __init__(self, tu, data: bytes):
        self.tu = tu
        self.data = data
        self.filename = tu.spelling

    # ------------------------------------------------------------------
    # Source text helpers
    # ------------------------------------------------------------------

    def in_main_file(self, cursor) -> bool:
        f = cursor.extent.start.file
        return f is not None and f.name == self.filename

    def text(self, cursor) -> str:
        if cursor is None:
            return ""
        if self.in_main_file(cursor):
            start, end = cursor.extent.start.offset, cursor.extent.end.offset
            return self.data[start:end].decode("utf-8", errors="ignore").strip()
        return " ".join(t.spelling for t in cursor.get_tokens()).strip()

    def paren_group(self, cursor) -> Optional[tuple[int, int]]:
        """Byte offsets of the first balanced `( ... )` of a statement header."""
        if not self.in_main_file(cursor):
            return None
        data = self.data
        i, end = cursor.extent.start.offset, cursor.extent.end.offset
        depth = 0
        open_at = None
        quote = None
        while i < end:
            ch = data[i : i + 1]
            if quote:
                if ch == b"\\":
                    i += 2
                    continue
                if ch == quote:
                    quote = None
            elif ch in (b'"', b"'"):
                quote = ch
            elif ch == b"(":
                if open_at is None:
                    open_at = i
                depth += 1
            elif ch == b")":
                depth -= 1
                if depth == 0 and open_at is not None:
                    return open_at, i
            i += 1
        return None

    def header(self, cursor) -> str:
        group = self.paren_group(cursor)
        if group is None:
            return ""
        start, end = group
        return self.data[start + 1 : end].decode("utf-8", errors="ignore").strip()

    def after_header(self, cursor) -> list:
        """Children that start after the statement's `( ... )` header."""
        children = list(cursor.get_children())
        group = self.paren_group(cursor)
        if group is None:
            return children
        close = group[1]
        return [c for c in children if self.in_main_file(c) and c.extent.start.offset > close]

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def classes(self) -> tuple[ClassDecl, ...]:
        found = []
        definitions = []

        def walk(cursor):
            for child in cursor.get_children():
                if not self.in_main_file(child):
                    continue
                if child.kind in CLASS_KINDS and child.is_definition():
                    found.append(self.class_decl(child))
                elif child.kind in METHOD_KINDS and child.is_definition():
                    definitions.append(child)
                elif child.kind in (CK.NAMESPACE, CK.LINKAGE_SPEC):
                    walk(child)

        walk(self.tu.cursor)
        if found:
            return tuple(found)

        # `Foo.cpp` holding only `Foo::Bar() {...}` for a class declared in a header
        for definition in definitions:
            owner = definition.semantic_parent
            if owner is not None and owner.kind in CLASS_KINDS:
                log(f"[INFO] Using class {owner.spelling} declared in {owner.extent.start.file}")
                return (self.class_decl(owner, main_only=True),)
        return ()

    def class_decl(self, cursor, main_only: bool = False) -> ClassDecl:
        methods = []
        for child in cursor.get_children():
            if child.kind not in METHOD_KINDS:
                continue
            if main_only:
                definition = child.get_definition()
                if definition is None or not self.in_main_file(definition):
                    continue
            methods.append(self.method_decl(child))
        return ClassDecl(cursor.spelling, tuple(methods))

    def method_decl(self, cursor) -> MethodDecl:
        definition = cursor.get_definition() or cursor
        body = None
        for child in definition.get_children():
            if child.kind == CK.COMPOUND_STMT:
                body = tuple(self.statement(s) for s in child.get_children())
                break
        source = self.text(definition) if body is not None else ""
        return MethodDecl(cursor.spelling, body, source)

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def statement(self, cursor) -> Statement:
        k = cursor.kind

        if k == CK.COMPOUND_STMT:
            return CompoundBlock(tuple(self.statement(c) for c in cursor.get_children()))
        if k == CK.IF_STMT:
            return self._if(cursor)
        if k == CK.FOR_STMT:
            return self._for(cursor)
        if k == CK.CXX_FOR_RANGE_STMT:
            return self._range_for(cursor)
        if k == CK.WHILE_STMT:
            children = list(cursor.get_children())
            cond = self.header(cursor) or self.text(children[0] if children else None)
            return WhileLoop(cond, self._body(children[-1] if children else None))
        if k == CK.SWITCH_STMT:
            return self._switch(cursor)
        if k == CK.CXX_TRY_STMT:
            return self._try(cursor)
        if k == CK.RETURN_STMT:
            children = list(cursor.get_children())
            return Return(self.text(children[0]) if children else None)
        if k == CK.DECL_STMT:
            return VariableDeclaration(self.text(cursor).rstrip(";").strip())
        if k == CK.CXX_THROW_EXPR:
            return Other(readable_kind(k))
        if k.is_expression():
            return self._expression(cursor)
        return Other(readable_kind(k))

    def _body(self, cursor) -> Statement:
        if cursor is None:
            return CompoundBlock()
        return self.statement(cursor)

    def _if(self, cursor) -> Conditional:
        cond = self.header(cursor)
        branches = self.after_header(cursor)
        if not cond:
            children = list(cursor.get_children())
            cond = self.text(children[0]) if children else "condition"
            branches = children[1:]
        # `if (init; cond)` keeps only the condition
        cond = split_top_level(cond, ";")[-1].strip()

        then_branch = self._body(branches[0] if branches else None)
        else_branch = self.statement(branches[1]) if len(branches) > 1 else None
        return Conditional(cond, then_branch, else_branch)

    def _for(self, cursor) -> ForLoop:
        children = list(cursor.get_children())
        parts = split_top_level(self.header(cursor), ";")
        cond = parts[1].strip() if len(parts) >= 2 else ""
        return ForLoop(cond or None, self._body(children[-1] if children else None))

    def _range_for(self, cursor) -> ForEachLoop:
        children = list(cursor.get_children())
        parts = split_top_level(self.header(cursor), ":")
        collection = parts[-1].strip() if len(parts) >= 2 else self.header(cursor)
        return ForEachLoop(collection or "collection", self._body(children[-1] if children else None))

    def _switch(self, cursor) -> SwitchMultiway:
        children = list(cursor.get_children())
        selector = self.header(cursor) or self.text(children[0] if children else None)
        body = children[-1] if children else None

        items = []
        if body is not None:
            items = list(body.get_children()) if body.kind == CK.COMPOUND_STMT else [body]

        cases: list[SwitchCase] = []
        labels: Optional[list] = None
        statements: list[Statement] = []
        for item in items:
            if item.kind in LABEL_KINDS:
                if labels is not None:
                    cases.append(SwitchCase(tuple(labels), tuple(statements)))
                labels, inner = self._case_labels(item)
                statements = [self.statement(inner)] if inner is not None else []
            elif labels is not None:
                statements.append(self.statement(item))
            # statements ahead of the first label are unreachable and dropped
        if labels is not None:
            cases.append(SwitchCase(tuple(labels), tuple(statements)))

        return SwitchMultiway(selector, tuple(cases))

    def _case_labels(self, cursor):
        """`case 1: case 2: stmt` nests; unwind it into ([1, 2], stmt)."""
        labels: list[Optional[str]] = []
        while cursor is not None and cursor.kind in LABEL_KINDS:
            children = list(cursor.get_children())
            if cursor.kind == CK.CASE_STMT:
                labels.append(self.text(children[0]) if children else "case")
                # children: value, [range end,] statement
                cursor = children[-1] if len(children) > 1 else None
            else:
                labels.append(None)
                cursor = children[-1] if children else None
        return labels, cursor

    def _try(self, cursor) -> TryRecover:
        children = list(cursor.get_children())
        block = self._body(children[0] if children else None)

        handlers = []
        for child in children[1:]:
            if child.kind != CK.CXX_CATCH_STMT:
                continue
            exc_type = None
            handler_block = None
            for part in child.get_children():
                if part.kind == CK.VAR_DECL:
                    exc_type = part.type.spelling or None
                elif part.kind == CK.COMPOUND_STMT:
                    handler_block = part
            handlers.append(CatchClause(exc_type, self._body(handler_block)))

        return TryRecover(block, tuple(handlers))

    def _expression(self, cursor) -> ExpressionEval:
        text = self.text(cursor).rstrip(";").strip()
        call = _unwrap(cursor)
        if call.kind != CK.CALL_EXPR or call.spelling.startswith("operator"):
            return ExpressionEval(text)

        children = list(call.get_children())
        if not children:
            return ExpressionEval(text, CallInfo(call.spelling, identifier=call.spelling or None))

        callee = _unwrap(children[0])
        callee_text = self.text(children[0]) or call.spelling
        if callee.kind == CK.MEMBER_REF_EXPR:
            return ExpressionEval(text, CallInfo(callee_text, member=callee.spelling or None))
        if callee.kind == CK.DECL_REF_EXPR:
            return ExpressionEval(text, CallInfo(callee_text, identifier=callee.spelling or None))
        return ExpressionEval(text, CallInfo(callee_text))


def _unwrap(cursor):
    """Skip implicit-conversion wrappers (UNEXPOSED_EXPR with a single child)."""
    while cursor.kind == CK.UNEXPOSED_EXPR:
        children = list(cursor.get_children())
        if len(children) != 1:
            break
        cursor = children[0]
    return cursor


def parse_source(
    code: str,
    filename: str = "input.cpp",
    std: str = DEFAULT_STD,
    extra_args: Optional[list[str]] = None,
) -> SourceUnit:
    args = ["-x", "c++", f"-std={std}"] + list(extra_args or [])
    try:
        index = cindex.Index.create()
        tu = index.parse(
            filename,
            args=args,
            unsaved_files=[(filename, code)],
            options=cindex.TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD,
        )
    except (cindex.TranslationUnitLoadError, cindex.LibclangError) as e:
        raise FrontendError(f"Failed to parse {filename}: {e}") from e

    diagnostics = tuple(
        str(d) for d in tu.diagnostics if d.severity >= cindex.Diagnostic.Error
    )
    builder = _TreeBuilder(tu, code.encode("utf-8"))
    return SourceUnit(builder.classes(), path=filename, diagnostics=diagnostics)


def parse_file(path: str, std: str = DEFAULT_STD, extra_args: Optional[list[str]] = None) -> SourceUnit:
    log(f"[INFO] Parsing file: {path}")
    t0 = time.perf_counter()
    try:
        with open(path, "r", encoding="utf-8", errors="ignore") as f:
            code = f.read()
    except OSError as e:
        raise FrontendError(f"Cannot read {path}: {e}") from e

    unit = parse_source(code, filename=path, std=std, extra_args=extra_args)
    log(f"[TIME] Parsed {path} in {time.perf_counter() - t0:.3f}s")
    return unit
