import json
from types import SimpleNamespace

import pytest
from docx import Document

from conftest import call
from methodflow import build_diagram
from methodflow.report import describe_method, diagram_to_json, write_json, write_word_document
from methodflow.statements import ClassDecl, MethodDecl, SourceUnit, TryRecover, CatchClause, CompoundBlock


@pytest.fixture
def diagram():
    unit = SourceUnit((ClassDecl("TicketEntry", (
        MethodDecl("Page_Load", (call("Bind"),)),
        MethodDecl("btnSave_Click", (TryRecover(CompoundBlock(), (CatchClause(None, CompoundBlock()),)),)),
    )),))
    return build_diagram(unit)


class FakeLLM:
    def __init__(self, content="", error=None):
        self.content = content
        self.error = error
        self.prompts = []

    def invoke(self, messages):
        self.prompts.append(messages[0].content)
        if self.error:
            raise self.error
        return SimpleNamespace(content=self.content)


class TestJson:
    def test_structure(self, diagram):
        data = diagram_to_json(diagram)

        assert data["issued"] == 6
        assert [s["title"] for s in data["sections"]] == ["Page_Load", "btnSave_Click"]
        first = data["sections"][0]
        assert first["nodes"][1] == {"id": "N1", "shape": "action", "label": "Bind#40;#41;", "style": None}
        assert first["edges"] == [{"src": "N0", "dst": "N1", "label": "", "dashed": False}]
        dashed = [e for e in data["sections"][1]["edges"] if e["dashed"]]
        assert dashed == [{"src": "N3", "dst": "N4", "label": "Catch: Exception", "dashed": True}]

    def test_write_json(self, diagram, tmp_path):
        path = write_json(diagram, str(tmp_path / "out" / "flow.json"))
        with open(path, encoding="utf-8") as f:
            assert json.load(f) == diagram_to_json(diagram)


class TestWordDocument:
    def test_one_table_per_section(self, diagram, tmp_path):
        path = write_word_document(diagram, str(tmp_path / "flow.docx"), {"Page_Load": "Binds the grid."})

        doc = Document(path)
        assert len(doc.tables) == 2
        first = doc.tables[0]
        assert first.rows[0].cells[1].text == "Page_Load"
        assert first.rows[1].cells[1].text.startswith("graph TD")
        assert "N1[Bind#40;#41;]" in first.rows[1].cells[1].text
        assert first.rows[2].cells[0].text == "Description"
        assert first.rows[2].cells[1].text == "Binds the grid."
        assert len(doc.tables[1].rows) == 2


class TestDescribeMethod:
    def test_disabled(self):
        assert describe_method(None, MethodDecl("Page_Load", (), "void Page_Load() {}")) == ""

    def test_needs_source(self):
        llm = FakeLLM("unused")
        assert describe_method(llm, MethodDecl("Page_Load", ())) == ""
        assert llm.prompts == []

    def test_description(self):
        llm = FakeLLM("  Loads the page.  ")
        method = MethodDecl("Page_Load", (), "void Page_Load() {\n\n    Bind();\n}")

        assert describe_method(llm, method) == "Loads the page."
        assert "    Bind();" in llm.prompts[0]
        assert "\n\n\n" not in llm.prompts[0].split("Method:\n")[1]

    def test_llm_failure_is_not_fatal(self):
        llm = FakeLLM(error=ConnectionError("ollama down"))
        assert describe_method(llm, MethodDecl("Page_Load", (), "void Page_Load() {}")) == ""
