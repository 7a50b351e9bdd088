"""Transport container decoder: MIME message → ordered segments.

WHY: Consumers of a transport container (typesetters, converters, the STF
writer) need the narrative back as an ordered stream of segments, with
each illustration available as a real file. The decoder must also refuse
any container the encoder could not have produced, rather than guessing.

HOW: The message is parsed with the standard email package. Part 0 is
loaded as the metadata block up front. The body is then walked lazily by a
cursor with three states (BEFORE_FIRST_PART, READING_TEXT_PART, AT_EOF)
over the remaining parts: text parts are read line by line, and an image
marker hands over to the image part that follows, which is materialized
into a session-managed temporary file.

RULES:
- The message must be multipart/mixed with part 0 application/json
- Exactly one part is a valid, empty body only for short format
- Part 1, and every part after an image part, must be text/plain
- "^" must be followed directly by its ">caption" line, then only blank
  lines until the end of the text part
- Every text part except the last must end with an image reference
- The part cursor never moves backwards except through rewind()
- rewind() keeps materialized images; a second pass creates no new files
- Any error closes a decoder-owned session before propagating
"""

from __future__ import annotations

import enum
import logging
from email import policy
from email.message import Message
from email.parser import BytesParser
from pathlib import Path
from typing import BinaryIO, Dict, Iterator, List, Optional

from skald.codec.lines import (
    CAPTION,
    CHAPTER,
    IMAGE,
    PARAGRAPH,
    SCENE,
    parse_line,
    split_part_lines,
)
from skald.codec.resources import ResourceSession
from skald.config import IMAGE_TYPES
from skald.core.grammar import SegmentGrammar
from skald.core.ir import (
    Chapter,
    Image,
    Manuscript,
    ManuscriptFormat,
    MetaValue,
    Paragraph,
    Scene,
    Segment,
)
from skald.core.metadata import metadata_from_json
from skald.errors import (
    MalformedContainer,
    MissingCaption,
    ResourceIOFailure,
    UnsupportedImageType,
)

logger = logging.getLogger(__name__)


class CursorState(enum.Enum):
    BEFORE_FIRST_PART = "before_first_part"
    READING_TEXT_PART = "reading_text_part"
    AT_EOF = "at_eof"


class ContainerDecoder:
    """Stateful reader over one parsed transport container.

    WHY: Segments are produced lazily so a large manuscript never has to be
    fully expanded, and images are only written to disk when reached.

    HOW: Construct from bytes, a binary file or a path. Call next_segment()
    until it returns None, or iterate the decoder. The metadata is
    available immediately after construction.

    RULES:
    - Owns its ResourceSession unless one is passed in
    - Image paths stay valid until close() (or the passed session's close)
    - After an error the decoder is unusable
    """

    def __init__(self, message: Message, session: Optional[ResourceSession] = None) -> None:
        self._owns_session = session is None
        self._session = session if session is not None else ResourceSession()
        self._parts: List[Message] = []
        self._images: Dict[int, Path] = {}
        self._state = CursorState.BEFORE_FIRST_PART
        self._cursor = 0
        self._lines: List[str] = []
        self._line_index = 0
        self._finished = False
        self._failed = False

        try:
            self.format, self.metadata = self._load_meta(message)
        except BaseException:
            self.close()
            raise
        self._grammar = SegmentGrammar(self.format)

        logger.info(
            "Opened %s container with %d parts", self.format.value, len(self._parts)
        )

    # -- constructors -------------------------------------------------------

    @classmethod
    def from_bytes(cls, data: bytes, session: Optional[ResourceSession] = None) -> "ContainerDecoder":
        return cls(BytesParser(policy=policy.default).parsebytes(data), session=session)

    @classmethod
    def from_file(cls, fp: BinaryIO, session: Optional[ResourceSession] = None) -> "ContainerDecoder":
        return cls(BytesParser(policy=policy.default).parse(fp), session=session)

    @classmethod
    def from_path(cls, path: str | Path, session: Optional[ResourceSession] = None) -> "ContainerDecoder":
        try:
            with open(path, "rb") as fp:
                return cls.from_file(fp, session=session)
        except OSError as exc:
            raise ResourceIOFailure("Failed to read container {}".format(path)) from exc

    # -- context management -------------------------------------------------

    def __enter__(self) -> "ContainerDecoder":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Release decoder-owned temporary files."""
        if self._owns_session:
            self._session.close()

    # -- metadata -----------------------------------------------------------

    def _load_meta(self, message: Message):
        if message.get_content_type() != "multipart/mixed" or not message.is_multipart():
            raise MalformedContainer("Skald MIME message must be multipart/mixed")

        self._parts = list(message.get_payload())
        if not self._parts:
            raise MalformedContainer("Skald MIME message must have at least one part")

        first = self._parts[0]
        if first.get_content_type() != "application/json":
            raise MalformedContainer("First part of Skald MIME must be application/json")

        return metadata_from_json(first.get_payload(decode=True) or b"")

    def get_meta(self, key: str) -> Optional[MetaValue]:
        return self.metadata.get(key)

    def has_meta(self, key: str) -> bool:
        return self.metadata.has(key)

    def meta_keys(self) -> List[str]:
        return self.metadata.keys()

    # -- cursor -------------------------------------------------------------

    @property
    def state(self) -> CursorState:
        return self._state

    @property
    def cursor(self) -> int:
        """Index of the container part currently being read."""
        return self._cursor

    def rewind(self) -> None:
        """Return to the start of the body, keeping materialized images."""
        if self._failed:
            raise MalformedContainer("Decoder is unusable after an error")
        self._state = CursorState.BEFORE_FIRST_PART
        self._cursor = 0
        self._lines = []
        self._line_index = 0
        self._finished = False
        self._grammar.reset()

    def next_segment(self) -> Optional[Segment]:
        """Return the next segment, or None once the body is exhausted.

        Raises:
            MalformedContainer: part layout or line grammar violation.
            MissingCaption: an image marker without its caption line.
            IllegalChapterUsage, MissingFirstChapter: chapter rules.
            UnsupportedImageType: image part of an unsupported type.
            ResourceIOFailure: an image could not be written to disk.
        """
        if self._failed:
            raise MalformedContainer("Decoder is unusable after an error")
        try:
            return self._advance()
        except BaseException:
            self._failed = True
            self.close()
            raise

    def __iter__(self) -> Iterator[Segment]:
        while True:
            segment = self.next_segment()
            if segment is None:
                return
            yield segment

    def segments(self) -> List[Segment]:
        """Rewind and decode the whole body into a list."""
        self.rewind()
        return list(self)

    def manuscript(self) -> Manuscript:
        return Manuscript(format=self.format, metadata=self.metadata, segments=self.segments())

    # -- state machine ------------------------------------------------------

    def _advance(self) -> Optional[Segment]:
        if self._state is CursorState.BEFORE_FIRST_PART:
            self._open_first_part()

        while self._state is CursorState.READING_TEXT_PART:
            if self._line_index >= len(self._lines):
                self._end_of_part()
                continue

            line = self._lines[self._line_index]
            self._line_index += 1
            parsed = parse_line(line)
            if parsed is None:
                continue

            sigil, payload = parsed
            if sigil == PARAGRAPH:
                return self._grammar.accept(Paragraph(text=payload))
            if sigil == CHAPTER:
                return self._grammar.accept(Chapter(title=payload))
            if sigil == SCENE:
                return self._grammar.accept(Scene())
            if sigil == IMAGE:
                return self._read_image()

        if not self._finished:
            self._finished = True
            self._grammar.finish()
        return None

    def _open_first_part(self) -> None:
        if len(self._parts) >= 2:
            self._open_text_part(1)
        elif self.format is ManuscriptFormat.SHORT:
            self._state = CursorState.AT_EOF
        else:
            raise MalformedContainer("Chapter-format container has no body parts")

    def _open_text_part(self, index: int) -> None:
        part = self._parts[index]
        if part.get_content_type() != "text/plain":
            raise MalformedContainer(
                "Container part {} must be text/plain, found {}".format(
                    index, part.get_content_type()
                )
            )
        charset = part.get_content_charset() or "utf-8"
        try:
            text = (part.get_payload(decode=True) or b"").decode(charset)
        except (LookupError, UnicodeDecodeError) as exc:
            raise MalformedContainer(
                "Container part {} is not valid {} text".format(index, charset)
            ) from exc

        self._cursor = index
        self._lines = split_part_lines(text)
        self._line_index = 0
        self._state = CursorState.READING_TEXT_PART
        logger.debug("Reading text part %d (%d lines)", index, len(self._lines))

    def _end_of_part(self) -> None:
        if self._cursor == len(self._parts) - 1:
            self._state = CursorState.AT_EOF
            return
        raise MalformedContainer(
            "Text part {} must end with an image reference".format(self._cursor)
        )

    def _read_image(self) -> Image:
        caption = None
        if self._line_index < len(self._lines):
            caption_line = self._lines[self._line_index]
            if caption_line.startswith(CAPTION):
                caption = caption_line[len(CAPTION):]
                self._line_index += 1
        if not caption:
            raise MissingCaption(
                "Image marker in part {} is not followed by a caption".format(self._cursor)
            )

        for line in self._lines[self._line_index:]:
            if line.strip(" \t"):
                raise MalformedContainer(
                    "Image reference must end text part {}".format(self._cursor)
                )

        image_index = self._cursor + 1
        if image_index >= len(self._parts):
            raise MalformedContainer(
                "Image reference in part {} has no image part".format(self._cursor)
            )
        part = self._parts[image_index]
        media_type = part.get_content_type()
        if not media_type.startswith("image/"):
            raise MalformedContainer(
                "Container part {} must be an image, found {}".format(image_index, media_type)
            )
        if media_type not in IMAGE_TYPES:
            raise UnsupportedImageType("Unrecognized image type '{}'".format(media_type))

        path = self._images.get(image_index)
        if path is None:
            path = self._session.materialize(part.get_payload(decode=True) or b"", media_type)
            self._images[image_index] = path
            logger.debug("Materialized image part %d to %s", image_index, path)

        segment = self._grammar.accept(Image(path=path, media_type=media_type, caption=caption))

        next_index = image_index + 1
        if next_index < len(self._parts):
            self._open_text_part(next_index)
        else:
            self._cursor = image_index
            self._state = CursorState.AT_EOF
        return segment


def decode(data: bytes, session: ResourceSession) -> Manuscript:
    """Decode container bytes into a Manuscript.

    Image paths point into *session*, which the caller closes when done
    with them.
    """
    decoder = ContainerDecoder.from_bytes(data, session=session)
    return decoder.manuscript()
