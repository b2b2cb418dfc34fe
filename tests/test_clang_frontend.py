"""libclang front end: C++ source -> statement tree."""

import pytest

pytest.importorskip("clang.cindex")

from methodflow import generate_flow  # noqa: E402
from methodflow.builder import call_display_name  # noqa: E402
from methodflow.clang_frontend import (  # noqa: E402
    FrontendError,
    configure_libclang,
    parse_file,
    parse_source,
    readable_kind,
    split_top_level,
)
from methodflow.statements import (  # noqa: E402
    CompoundBlock,
    Conditional,
    ExpressionEval,
    ForEachLoop,
    ForLoop,
    Other,
    Return,
    SwitchMultiway,
    TryRecover,
    VariableDeclaration,
    WhileLoop,
)

SOURCE = """
void Log(int v);

class Service;

class TicketEntry {
public:
    void Page_Load(bool flag, int n) {
        if (!flag) {
            doWork();
        }
        for (int i = 0; i < n; ++i) {
            count = count + i;
        }
        return;
    }
    void btnSave_Click();
    int Compute() { return result; }
    void Helper() {}
    virtual void Refresh() = 0;

private:
    void doWork() {}
    int count = 0;
    int result = 0;
};

void TicketEntry::btnSave_Click() {
    int items[3] = {1, 2, 3};
    for (int v : items) {
        Log(v);
    }
    switch (count) {
    case 1:
    case 2:
        doWork();
        break;
    default:
        break;
    }
    try {
        doWork();
    } catch (int code) {
        doWork();
    } catch (...) {
    }
    while (count > 0) {
        count--;
    }
}
"""


@pytest.fixture(scope="module")
def unit(libclang):
    return parse_source(SOURCE, filename="ticket_entry.cpp")


@pytest.fixture(scope="module")
def methods(unit):
    return {m.name: m for m in unit.first_class().methods}


def only(block):
    assert isinstance(block, CompoundBlock)
    (stmt,) = block.statements
    return stmt


class TestDeclarations:
    def test_first_class_skips_forward_declarations(self, unit):
        assert unit.first_class().name == "TicketEntry"
        assert unit.diagnostics == ()

    def test_methods_in_declaration_order(self, unit):
        names = [m.name for m in unit.first_class().methods]
        assert names == ["Page_Load", "btnSave_Click", "Compute", "Helper", "Refresh", "doWork"]

    def test_out_of_line_body(self, methods):
        assert methods["btnSave_Click"].body
        assert "TicketEntry::btnSave_Click" in methods["btnSave_Click"].source

    def test_pure_virtual_has_no_body(self, methods):
        assert methods["Refresh"].body is None

    def test_empty_body(self, methods):
        assert methods["Helper"].body == ()


class TestStatements:
    def test_page_load(self, methods):
        cond, loop, ret = methods["Page_Load"].body

        assert isinstance(cond, Conditional)
        assert cond.condition == "!flag"
        assert cond.else_branch is None
        work = only(cond.then_branch)
        assert isinstance(work, ExpressionEval)
        assert call_display_name(work.call) == "doWork"

        assert isinstance(loop, ForLoop)
        assert loop.condition == "i < n"
        assign = only(loop.body)
        assert assign == ExpressionEval("count = count + i")

        assert ret == Return(None)

    def test_return_value(self, methods):
        assert methods["Compute"].body == (Return("result"),)

    def test_btn_save(self, methods):
        decl, foreach, switch, trial, loop = methods["btnSave_Click"].body

        assert isinstance(decl, VariableDeclaration)
        assert decl.text == "int items[3] = {1, 2, 3}"

        assert isinstance(foreach, ForEachLoop)
        assert foreach.collection == "items"
        assert call_display_name(only(foreach.body).call) == "Log"

        assert isinstance(switch, SwitchMultiway)
        assert switch.selector == "count"
        first, default = switch.cases
        assert first.labels == ("1", "2")
        assert call_display_name(first.statements[0].call) == "doWork"
        assert first.statements[1] == Other("Break")
        assert default.labels == (None,)
        assert default.statements == (Other("Break"),)

        assert isinstance(trial, TryRecover)
        assert trial.finally_block is None
        typed, untyped = trial.handlers
        assert typed.exception_type == "int"
        assert untyped.exception_type is None
        assert untyped.block == CompoundBlock()

        assert isinstance(loop, WhileLoop)
        assert loop.condition == "count > 0"
        assert only(loop.body) == ExpressionEval("count--")

    def test_generate_from_source(self, unit):
        text = generate_flow(unit)
        assert "N1{!flag}" in text
        assert "ForEach: items" in text
        assert "-.->|Catch: int|" in text
        assert "-.->|Catch: Exception|" in text
        assert "Compute" not in text


class TestParsing:
    def test_parse_file(self, libclang, tmp_path):
        path = tmp_path / "Orders.cpp"
        path.write_text("struct Orders { void Page_Load() { return; } };\n")
        unit = parse_file(str(path))
        assert unit.first_class().name == "Orders"
        assert unit.path == str(path)

    def test_missing_file(self, libclang, tmp_path):
        with pytest.raises(FrontendError):
            parse_file(str(tmp_path / "missing.cpp"))

    def test_no_class(self, libclang):
        assert parse_source("int main() { return 0; }\n").first_class() is None


@pytest.mark.parametrize(
    "kind_name,expected",
    [
        ("BREAK_STMT", "Break"),
        ("CXX_THROW_EXPR", "Throw"),
        ("DO_STMT", "Do"),
        ("GOTO_STMT", "Goto"),
        ("NULL_STMT", "Null"),
    ],
)
def test_readable_kind(libclang, kind_name, expected):
    assert readable_kind(getattr(libclang.CursorKind, kind_name)) == expected


def test_split_top_level():
    assert split_top_level("int i = 0; i < f(a;b); ++i", ";") == ["int i = 0", " i < f(a;b)", " ++i"]
    assert split_top_level("const std::string& s : names", ":") == ["const std::string& s ", " names"]
    assert split_top_level('const char* p = ";"; *p; ++p', ";") == ['const char* p = ";"', " *p", " ++p"]
    assert split_top_level("char c = ':'; c : s", ":") == ["char c = ':'; c ", " s"]
    assert split_top_level(r'auto s = "a\";b"; ok', ";") == [r'auto s = "a\";b"', " ok"]


def test_for_header_with_string_literal(libclang):
    unit = parse_source(
        'struct Scanner { void Page_Load() { for (const char* p = ";"; *p; ++p) {} } };\n'
    )
    (loop,) = unit.first_class().methods[0].body
    assert isinstance(loop, ForLoop)
    assert loop.condition == "*p"


class TestHeaderDeclaredClass:
    HEADER = """
class TicketEntry {
public:
    void Page_Load();
    void btnGo_Click();
    void Inline() {}
    void Elsewhere();
    void Go();
    bool ready = false;
};
"""
    SOURCE = """
#include "TicketEntry.h"

void TicketEntry::Page_Load() {
    if (ready) { btnGo_Click(); }
}

void TicketEntry::btnGo_Click() {
    Go();
}
"""

    @pytest.fixture
    def unit(self, libclang, tmp_path):
        (tmp_path / "TicketEntry.h").write_text(self.HEADER)
        path = tmp_path / "TicketEntry.cpp"
        path.write_text(self.SOURCE)
        return parse_file(str(path))

    def test_class_from_header(self, unit):
        cls = unit.first_class()
        assert cls.name == "TicketEntry"
        # only methods defined in this file
        assert [m.name for m in cls.methods] == ["Page_Load", "btnGo_Click"]
        assert "TicketEntry::Page_Load" in cls.methods[0].source
        assert unit.diagnostics == ()

    def test_flow_from_definitions(self, unit):
        text = generate_flow(unit)
        assert "N0([Page_Load])" in text
        assert "([btnGo_Click])" in text
        assert "No class found" not in text


class TestConfigureLibclang:
    def test_already_loaded_warns(self, libclang, monkeypatch, capsys):
        monkeypatch.setattr(libclang.Config, "loaded", True)
        configure_libclang("/opt/llvm/lib/libclang.so")
        assert "[WARN] libclang already loaded; ignoring /opt/llvm/lib/libclang.so" in capsys.readouterr().err

    def test_no_path_is_silent(self, libclang, monkeypatch, capsys):
        monkeypatch.delenv("METHODFLOW_LIBCLANG", raising=False)
        monkeypatch.setattr(libclang.Config, "loaded", True)
        configure_libclang(None)
        assert capsys.readouterr().err == ""
