"""Italic markup resolution for paragraph text.

WHY: Paragraph text carries one inline convention: "*" toggles italics and
"**" stands for a literal asterisk. The codec transports the markup
verbatim; a presentation layer needs it resolved into styled runs.

HOW: Scan the text once, toggling the italic flag on each lone "*" and
emitting "*" for each "**" pair. Adjacent characters with the same style
are merged into one run.

RULES:
- "**" is always a literal asterisk, never two toggles
- An italic span left open at the end of the text closes there
- Empty runs are never emitted
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class TextRun:
    text: str
    italic: bool = False


def resolve_italics(text: str) -> List[TextRun]:
    """Split paragraph text into plain and italic runs."""
    runs: List[TextRun] = []
    buffer: List[str] = []
    italic = False

    def _flush() -> None:
        if buffer:
            runs.append(TextRun(text="".join(buffer), italic=italic))
            buffer.clear()

    i = 0
    while i < len(text):
        if text[i] == "*":
            if text[i + 1:i + 2] == "*":
                buffer.append("*")
                i += 2
                continue
            _flush()
            italic = not italic
        else:
            buffer.append(text[i])
        i += 1

    _flush()
    return runs


def strip_markup(text: str) -> str:
    """Return the paragraph text with italic markup removed."""
    return "".join(run.text for run in resolve_italics(text))
