"""Sigil line codec for the narrative-text parts of a container.

WHY: Inside a transport container every text part holds segments as
lines, one per segment, tagged by a leading sigil. The encoder writes
these lines and the decoder reads them; keeping both directions here
makes the line format impossible to drift.

HOW: format_segment_lines() renders one segment into its line(s).
parse_line() classifies one line into a (sigil, payload) pair without
applying any grammar; the decoder's cursor does that.

RULES:
- ">text"  paragraph (text verbatim, leading spaces kept)
- "@title" chapter
- "#"      scene
- "^" followed by ">caption" on the next line: image reference; the
  image bytes live in the next container part
- No segment text may contain CR or LF
- Paragraph and chapter text may not be empty or whitespace-only
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from skald.core.ir import Chapter, Image, Paragraph, Scene, Segment
from skald.errors import MalformedContainer, MalformedSource

PARAGRAPH = ">"
CHAPTER = "@"
SCENE = "#"
IMAGE = "^"
CAPTION = ">"

_LINE_BREAKS = ("\r", "\n")


def _check_single_line(kind: str, text: str) -> str:
    if any(ch in text for ch in _LINE_BREAKS):
        raise MalformedSource("{} text may not contain line breaks".format(kind))
    return text


def _check_not_blank(kind: str, text: str) -> str:
    if not text.strip(" \t"):
        raise MalformedSource("{} text cannot be empty".format(kind))
    return _check_single_line(kind, text)


def format_segment_lines(segment: Segment) -> List[str]:
    """Render a segment as text-part lines."""
    if isinstance(segment, Paragraph):
        return [PARAGRAPH + _check_not_blank("Paragraph", segment.text)]
    if isinstance(segment, Chapter):
        return [CHAPTER + _check_not_blank("Chapter", segment.title)]
    if isinstance(segment, Scene):
        return [SCENE]
    if isinstance(segment, Image):
        return [IMAGE, CAPTION + _check_single_line("Caption", segment.caption)]
    raise TypeError("Not a segment: {!r}".format(segment))


def split_part_lines(text: str) -> List[str]:
    """Split a decoded text part into lines, tolerating CR+LF endings."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def parse_line(line: str) -> Optional[Tuple[str, str]]:
    """Classify one text-part line.

    Returns None for a blank line, otherwise ``(sigil, payload)``.

    Raises:
        MalformedContainer: the line has no recognized sigil, a scene or
            image marker carries a payload, or a paragraph or chapter line
            has none.
    """
    if not line.strip(" \t"):
        return None

    sigil, payload = line[0], line[1:]
    if sigil in (PARAGRAPH, CHAPTER):
        if not payload.strip(" \t"):
            raise MalformedContainer("Empty text after '{}' marker".format(sigil))
        return sigil, payload
    if sigil in (SCENE, IMAGE):
        if payload.strip(" \t"):
            raise MalformedContainer("Unexpected text after '{}' marker".format(sigil))
        return sigil, ""
    raise MalformedContainer("Unrecognized text part line '{}'".format(line))
