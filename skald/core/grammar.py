"""Order-dependent segment grammar shared by scanner, encoder and decoder.

WHY: The chapter rules depend on what came before ("nothing but a chapter
may come first"), so they cannot be checked one segment at a time in
isolation. Keeping the rules in one small state machine guarantees the
scanner, the encoder and the decoder enforce exactly the same grammar, so
decode(encode(x)) either round-trips or fails the same way.

HOW: SegmentGrammar is fed every segment in order via accept() and told
when the sequence ends via finish(). It tracks only the format and how
many segments and chapters it has seen.

RULES:
- short: any Chapter raises IllegalChapterUsage
- chapter: the first segment must be a Chapter, else MissingFirstChapter
- chapter: a sequence that ends with no Chapter at all raises
  MissingFirstChapter
"""

from __future__ import annotations

from typing import Iterable, Optional, Type

from skald.core.ir import Chapter, ManuscriptFormat, Segment
from skald.errors import IllegalChapterUsage, MissingFirstChapter


class SegmentGrammar:
    """Incremental checker for the chapter-first / no-chapter-in-short rules."""

    def __init__(self, fmt: ManuscriptFormat) -> None:
        self.format = ManuscriptFormat(fmt)
        self.segment_count = 0
        self.chapter_count = 0

    def check(self, kind: Type[Segment], line: Optional[int] = None) -> None:
        """Raise if a segment of class *kind* may not come next. Counts nothing."""
        is_chapter = issubclass(kind, Chapter)
        if self.format is ManuscriptFormat.SHORT:
            if is_chapter:
                raise IllegalChapterUsage(
                    "Chapters are not allowed in short format", line=line
                )
        elif self.segment_count == 0 and not is_chapter:
            raise MissingFirstChapter(
                "Chapter format must begin with a chapter", line=line
            )

    def accept(self, segment: Segment, line: Optional[int] = None) -> Segment:
        """Check *segment* against everything seen so far and count it."""
        self.check(type(segment), line=line)
        self.segment_count += 1
        if isinstance(segment, Chapter):
            self.chapter_count += 1
        return segment

    def finish(self) -> None:
        """Check the end-of-sequence rule."""
        if self.format is ManuscriptFormat.CHAPTER and self.chapter_count == 0:
            raise MissingFirstChapter("Chapter format requires at least one chapter")

    def reset(self) -> None:
        self.segment_count = 0
        self.chapter_count = 0


def check_segments(fmt: ManuscriptFormat, segments: Iterable[Segment]) -> None:
    """Run a whole segment sequence through a fresh SegmentGrammar."""
    grammar = SegmentGrammar(fmt)
    for segment in segments:
        grammar.accept(segment)
    grammar.finish()
