"""Command line entry point: source file in, `<name>.flow.md` out."""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

from . import __version__
from .assembler import build_diagram
from .clang_frontend import DEFAULT_STD, FrontendError, configure_libclang, parse_file
from .graph import validate_mermaid
from .report import DEFAULT_OLLAMA_MODEL, describe_method, make_llm, write_json, write_word_document
from .selector import DEFAULT_ENTRY
from .utils import log, set_verbose, warn


def output_path(source: str, suffix: str = ".flow.md") -> Path:
    return Path(source).with_suffix(suffix)


def build_argparser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="methodflow",
        description="Generate Mermaid control-flow diagrams for the methods of a class",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Entry method plus every event handler
  methodflow TicketEntry.cpp

  # A single method
  methodflow TicketEntry.cpp Page_Load
""",
    )
    parser.add_argument("path", nargs="?", help="C/C++ source file containing the class")
    parser.add_argument("method", nargs="?", help="Only diagram this method")
    parser.add_argument("--std", default=DEFAULT_STD, help="C++ standard, e.g. c++17, c++20")
    parser.add_argument("--libclang", metavar="FILE", help="Path to the libclang shared library")
    parser.add_argument("--entry", default=DEFAULT_ENTRY, help=f"Entry method name (default: {DEFAULT_ENTRY})")
    parser.add_argument("--json", action="store_true", help="Also write the graph as <name>.flow.json")
    parser.add_argument("--docx", action="store_true", help="Also write a Word report as <name>.flow.docx")
    parser.add_argument("--describe", action="store_true", help="Add LLM method descriptions to the Word report")
    parser.add_argument("--ollama-model", default=DEFAULT_OLLAMA_MODEL, help="Ollama model name for --describe")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress progress output")
    parser.add_argument("-v", "--version", action="store_true", help="Show version information and exit")
    return parser


def main(argv=None) -> int:
    parser = build_argparser()
    args = parser.parse_args(argv)
    set_verbose(not args.quiet)

    if args.version:
        print(__version__)
        return 0

    if not args.path:
        parser.print_usage(sys.stderr)
        print("If method-name is not provided, analyzes the entry method and all event handlers", file=sys.stderr)
        return 1

    source = Path(args.path)
    if not source.is_file():
        print(f"Error: File not found: {args.path}", file=sys.stderr)
        return 1

    t0 = time.perf_counter()
    try:
        configure_libclang(args.libclang)
        unit = parse_file(str(source), std=args.std)
        for diag in unit.diagnostics:
            warn(diag)

        diagram = build_diagram(unit, args.method, entry=args.entry)
        mermaid = diagram.render()
        ok, err = validate_mermaid(mermaid)
        if not ok:
            warn(f"Flowchart validation failed: {err}")

        out = output_path(args.path)
        out.write_text(mermaid, encoding="utf-8")
        print(f"✓ Flow diagram generated: {out}")

        if args.json:
            print(f"✓ Graph JSON written: {write_json(diagram, str(output_path(args.path, '.flow.json')))}")

        if args.docx:
            descriptions = {}
            if args.describe:
                llm = make_llm(args.ollama_model)
                cls = unit.first_class()
                methods = {m.name: m for m in cls.methods} if cls else {}
                for section in diagram.sections:
                    if section.title in methods:
                        descriptions[section.title] = describe_method(llm, methods[section.title])
            docx_path = write_word_document(diagram, str(output_path(args.path, ".flow.docx")), descriptions)
            print(f"✓ Word report written: {docx_path}")
    except FrontendError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130

    log(f"[TIME] Total execution time: {time.perf_counter() - t0:.3f}s")
    return 0
