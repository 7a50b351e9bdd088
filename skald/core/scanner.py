"""STF source scanner: header, metadata, and body segments.

WHY: Authors write manuscripts in the Skald Text Format (STF), a
line-oriented markup designed to be typed by hand. The encoder needs that
text as a typed Manuscript: a format, validated metadata, and an ordered
list of segments. This module is the bridge between the two.

HOW: Input is decoded as UTF-8 and split into lines. The first line is the
signature (``%stf short;`` or ``%stf chapter;``). Metadata lines follow as
``Key: value``, with indented continuation lines, until a blank line. Each
body line is classified by its first non-whitespace character; runs of
plain lines are joined into paragraphs. Every emitted segment goes through
SegmentGrammar so the chapter rules are enforced as the scan proceeds.

RULES:
- Optional BOM; LF or CR+LF line endings; a CR anywhere else is an error
- Signature and format names are case-insensitive
- Continuation lines append one space plus their stripped text
- Blank line: gap, flushes the current paragraph, emits nothing
- "@title": chapter; "#": scene; "^path" then ">caption": image
- A ">" line anywhere except directly after "^" is an error
- Plain lines are right-trimmed and joined with single spaces
- Italic markup ("*", "**") is preserved verbatim
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional

from skald.config import media_type_for
from skald.core.grammar import SegmentGrammar
from skald.core.ir import (
    Chapter,
    Image,
    Manuscript,
    ManuscriptFormat,
    Paragraph,
    Scene,
    Segment,
)
from skald.core.metadata import MetadataBuilder
from skald.errors import (
    MalformedHeader,
    MalformedSource,
    MissingCaption,
    ResourceIOFailure,
    SkaldError,
    UnsupportedImageType,
)

logger = logging.getLogger(__name__)

_SIGNATURE_RE = re.compile(r"^%stf[ \t]+([A-Za-z0-9_]+)[ \t]*;[ \t]*$", re.IGNORECASE)
_META_RE = re.compile(r"^([A-Za-z0-9\-]+)[ \t]*:[ \t]*(.*)$")

_WS = " \t"


def split_source_lines(source: str | bytes) -> List[str]:
    """Decode STF input and split it into lines without terminators.

    Raises:
        MalformedSource: invalid UTF-8, or a CR not followed by LF.
    """
    if isinstance(source, bytes):
        try:
            source = source.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedSource("STF input is not valid UTF-8") from exc

    if source.startswith("\ufeff"):
        source = source[1:]

    lines = source.split("\n")
    if lines and lines[-1] == "":
        lines.pop()

    result = []
    for number, line in enumerate(lines, start=1):
        if line.endswith("\r"):
            line = line[:-1]
        if "\r" in line:
            raise MalformedSource("CR is only allowed before LF", line=number)
        result.append(line)
    return result


class SourceScanner:
    """Converts STF text into a Manuscript.

    WHY: Scanning is stateful (paragraph accumulator, header/body phase,
    grammar counters), so the state lives on an explicit object rather
    than in loose locals threaded through helpers.

    HOW: scan() resets the state, parses the header, then walks the body
    lines once. Image paths are resolved against base_dir.

    RULES:
    - One scan() call produces one Manuscript; the scanner can be reused
    - Errors carry the 1-based line number of the offending line
    """

    def __init__(self, base_dir: str | Path | None = None) -> None:
        self.base_dir = Path(base_dir) if base_dir is not None else None
        self._reset()

    def _reset(self) -> None:
        self.format: Optional[ManuscriptFormat] = None
        self.segments: List[Segment] = []
        self._grammar: Optional[SegmentGrammar] = None
        self._para_parts: Optional[List[str]] = None
        self._para_line = 0

    # -- public -------------------------------------------------------------

    def scan(self, source: str | bytes) -> Manuscript:
        self._reset()
        lines = split_source_lines(source)
        if not lines:
            raise MalformedHeader("Failed to read STF signature")

        self.format = self._parse_signature(lines[0])
        self._grammar = SegmentGrammar(self.format)
        body_start, metadata = self._parse_header(lines)
        self._scan_body(lines, body_start)

        logger.debug(
            "Scanned %s manuscript: %d segments", self.format.value, len(self.segments)
        )
        return Manuscript(format=self.format, metadata=metadata, segments=self.segments)

    # -- header -------------------------------------------------------------

    @staticmethod
    def _parse_signature(line: str) -> ManuscriptFormat:
        match = _SIGNATURE_RE.match(line)
        if not match:
            raise MalformedHeader("Invalid STF signature line", line=1)
        name = match.group(1).lower()
        try:
            return ManuscriptFormat(name)
        except ValueError:
            raise MalformedHeader(
                "Unrecognized STF format '{}' in signature line".format(match.group(1)),
                line=1,
            ) from None

    def _parse_header(self, lines: List[str]):
        """Parse metadata lines; return (index of first body line, Metadata)."""
        builder = MetadataBuilder()
        pending: Optional[List] = None  # [key, value, line number]

        for index in range(1, len(lines)):
            number = index + 1
            line = lines[index].rstrip(_WS)

            if pending is not None:
                if line[:1] in (" ", "\t"):
                    pending[1] = pending[1] + " " + line.lstrip(_WS)
                    continue
                self._add_meta(builder, *pending)
                pending = None

            if not line:
                try:
                    metadata = builder.build()
                except SkaldError as exc:
                    raise type(exc)(str(exc), line=number) from exc
                return index + 1, metadata

            match = _META_RE.match(line)
            if not match:
                raise MalformedHeader("Invalid metadata line", line=number)
            pending = [match.group(1), match.group(2), number]

        raise MalformedHeader("STF header did not end properly", line=len(lines))

    @staticmethod
    def _add_meta(builder: MetadataBuilder, key: str, value: str, number: int) -> None:
        try:
            builder.add(key, value)
        except SkaldError as exc:
            raise type(exc)(str(exc), line=number) from exc

    # -- body ---------------------------------------------------------------

    def _scan_body(self, lines: List[str], start: int) -> None:
        index = start
        while index < len(lines):
            number = index + 1
            content = lines[index].rstrip(_WS)
            lead = content.lstrip(_WS)
            index += 1

            if not lead:
                self._flush_paragraph()
                continue

            marker = lead[0]
            if marker == "@":
                self._flush_paragraph()
                title = lead[1:].strip(_WS)
                if not title:
                    raise MalformedSource("Invalid chapter declaration", line=number)
                self._emit(Chapter(title=title), number)

            elif marker == "#":
                self._flush_paragraph()
                if lead[1:].strip(_WS):
                    raise MalformedSource("Invalid scene change", line=number)
                self._emit(Scene(), number)

            elif marker == "^":
                self._flush_paragraph()
                self._grammar.check(Image, line=number)
                caption = lines[index] if index < len(lines) else None
                self._emit(self._image(lead[1:].strip(_WS), caption, number), number)
                index += 1

            elif marker == ">":
                raise MalformedSource("> only allowed after ^ command", line=number)

            else:
                if self._para_parts is None:
                    self._para_parts = []
                    self._para_line = number
                self._para_parts.append(content)

        self._flush_paragraph()
        self._grammar.finish()

    def _image(self, path_text: str, caption_line: Optional[str], number: int) -> Image:
        if not path_text:
            raise MalformedSource("Invalid image declaration", line=number)

        caption = None
        if caption_line is not None:
            caption_lead = caption_line.strip(_WS)
            if caption_lead.startswith(">"):
                caption = caption_lead[1:].strip(_WS)
        if not caption:
            raise MissingCaption("Missing > caption after ^ image", line=number + 1)

        media_type = media_type_for(path_text)
        if media_type is None:
            raise UnsupportedImageType(
                "Unsupported image file type '{}'".format(path_text), line=number
            )

        path = Path(path_text)
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        return Image(path=path, media_type=media_type, caption=caption)

    def _flush_paragraph(self) -> None:
        if self._para_parts is None:
            return
        text = " ".join(self._para_parts)
        self._para_parts = None
        self._emit(Paragraph(text=text), self._para_line)

    def _emit(self, segment: Segment, number: int) -> None:
        self._grammar.accept(segment, line=number)
        self.segments.append(segment)


def scan(source: str | bytes, base_dir: str | Path | None = None) -> Manuscript:
    """Scan STF text or bytes into a Manuscript."""
    return SourceScanner(base_dir=base_dir).scan(source)


def scan_path(path: str | Path) -> Manuscript:
    """Read and scan an STF file; image paths resolve next to the file."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ResourceIOFailure("Failed to read STF file {}".format(path)) from exc
    return SourceScanner(base_dir=path.parent).scan(data)
