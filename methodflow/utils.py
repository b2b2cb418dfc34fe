"""Progress output shared by the front end, reports and CLI."""

from __future__ import annotations

import sys

VERBOSE = True


def log(msg: str):
    # Tagged progress lines: [INFO], [WARN], [TIME], [LLM]
    if VERBOSE:
        print(msg, flush=True)


def warn(msg: str):
    print(f"[WARN] {msg}", file=sys.stderr, flush=True)


def set_verbose(enabled: bool):
    global VERBOSE
    VERBOSE = bool(enabled)
