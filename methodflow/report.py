"""
Companion outputs for a generated diagram: a JSON dump of the graph records and
a Word document with one flowchart per method.

Method descriptions are OPTIONAL and come from a LangChain chat model (Ollama).
They only ever land in the Word report; the Mermaid output stays deterministic.
"""

from __future__ import annotations

import json
import os
import time
from typing import Optional

from docx import Document
from langchain.messages import HumanMessage
from langchain_ollama import ChatOllama

from .assembler import FlowDiagram
from .graph import render_mermaid
from .statements import MethodDecl
from .utils import log, warn

DEFAULT_OLLAMA_MODEL = "gpt-oss"
DESCRIPTION_MAX_LINES = 120

DESCRIPTION_PROMPT = (
    "You are a code documentation expert.\n"
    "Provide a concise 2-3 sentence description of the method below.\n"
    "Do not invent anything.\n\n"
    "Method:\n"
    "{method}\n"
    "Description:"
)


def diagram_to_json(diagram: FlowDiagram) -> dict:
    return {
        "issued": diagram.issued,
        "sections": [
            {
                "title": section.title,
                "nodes": [
                    {"id": n.id, "shape": n.shape, "label": n.label, "style": n.style}
                    for n in section.nodes.values()
                ],
                "edges": [
                    {"src": e.src, "dst": e.dst, "label": e.label, "dashed": e.dashed}
                    for e in section.edges
                ],
            }
            for section in diagram.sections
        ],
    }


def write_json(diagram: FlowDiagram, path: str) -> str:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(diagram_to_json(diagram), f, indent=2, ensure_ascii=False)
    return path


def make_llm(model: str = DEFAULT_OLLAMA_MODEL) -> ChatOllama:
    return ChatOllama(model=model, temperature=0.1, top_k=10, top_p=0.9)


def describe_method(llm, method: MethodDecl) -> str:
    if llm is None or not method.source:
        return ""
    lines = [l.rstrip() for l in method.source.splitlines() if l.strip()]
    query = DESCRIPTION_PROMPT.format(method="\n".join(lines[:DESCRIPTION_MAX_LINES]))
    try:
        log(f"[LLM] Describing {method.name}")
        t0 = time.perf_counter()
        resp = llm.invoke([HumanMessage(query)])
        log(f"[LLM] Description completed in {time.perf_counter() - t0:.3f}s")
        return str(resp.content or "").strip()
    except Exception as e:  # LLM output is optional
        warn(f"description failed for {method.name}: {e}")
        return ""


def write_word_document(
    diagram: FlowDiagram,
    path: str,
    descriptions: Optional[dict[str, str]] = None,
) -> str:
    descriptions = descriptions or {}
    doc = Document()
    doc.add_heading("Code Flow Diagram", level=0)

    for index, section in enumerate(diagram.sections, start=1):
        doc.add_heading(f"{index}. {section.title}", level=1)
        table = doc.add_table(rows=2, cols=2, style="Table Grid")
        table.rows[0].cells[0].text = "Method"
        table.rows[0].cells[1].text = section.title
        table.rows[1].cells[0].text = "Flowchart"
        table.rows[1].cells[1].text = render_mermaid(section)

        description = descriptions.get(section.title)
        if description:
            row = table.add_row()
            row.cells[0].text = "Description"
            row.cells[1].text = description

    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    doc.save(path)
    return path
