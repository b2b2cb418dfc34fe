"""
Mermaid-safe label text.

Mermaid node labels must not contain raw bracket characters: () {} [] <>.
We escape them using Mermaid entity codes (#40; #41; ...), never HTML entities.
"""

from __future__ import annotations

import re
from typing import Optional

LABEL_MAX = 40
CONDITION_MAX = 60

_ESCAPES = {
    "(": "#40;",
    ")": "#41;",
    "{": "#123;",
    "}": "#125;",
    "[": "#91;",
    "]": "#93;",
    "<": "#60;",
    ">": "#62;",
}


def _escape_mermaid_chars(text: str) -> list[str]:
    """One piece per source character; an entity code is never split."""
    return [_ESCAPES.get(ch, ch) for ch in text]


def sanitize(raw: Optional[str], max_len: int = LABEL_MAX) -> str:
    """
    Convert raw code text into a single-line Mermaid label of at most max_len chars.

    Examples:
        >>> sanitize('Show("hi")')
        "Show#40;'hi'#41;"
        >>> sanitize("a\\n   b")
        'a b'
    """
    if not raw:
        return ""

    label = raw.replace('"', "'")
    label = re.sub(r"\s+", " ", label).strip()
    pieces = _escape_mermaid_chars(label)
    label = "".join(pieces)

    if len(label) > max_len:
        budget = max(0, max_len - 3)
        kept: list[str] = []
        used = 0
        for piece in pieces:
            if used + len(piece) > budget:
                break
            kept.append(piece)
            used += len(piece)
        label = "".join(kept).rstrip() + "..."
    return label


def clean_condition(raw: Optional[str]) -> str:
    return sanitize(raw, CONDITION_MAX)
