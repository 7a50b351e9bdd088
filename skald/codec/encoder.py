"""Transport container encoder: Manuscript → multipart/mixed MIME message.

WHY: Manuscripts travel as a single self-describing package that bundles
the metadata, the narrative text and the illustrations. MIME multipart is
the container: every mail and HTTP stack can carry it, and each part
declares its own media type.

HOW: The whole segment sequence is validated first (grammar, captions,
image types). Part 0 is the JSON metadata block. Segments are then
serialized into text parts; each Image closes the current text part with
its "^" marker and caption line and is followed by its own image part. The
complete message is built in memory before any bytes are returned.

RULES:
- Part 0: application/json metadata block
- Parts 1..N: text/plain (utf-8) and image/* parts, strictly alternating
- A text part ends right after an image's caption line
- No trailing text part after a final Image
- Image file extension must agree with the declared media type
- Nothing is written to disk by the encoder
"""

from __future__ import annotations

import logging
from email.mime.application import MIMEApplication
from email.mime.image import MIMEImage
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import List

from skald import config
from skald.codec.lines import format_segment_lines
from skald.codec.resources import extension_for
from skald.config import media_type_for
from skald.core.grammar import check_segments
from skald.core.ir import Image, Manuscript
from skald.core.metadata import metadata_to_json
from skald.errors import MissingCaption, ResourceIOFailure, UnsupportedImageType

logger = logging.getLogger(__name__)


def _check_image(image: Image) -> None:
    """Validate caption, media type and extension of one Image segment."""
    if not image.caption:
        raise MissingCaption("Image {} has no caption".format(image.path))
    extension_for(image.media_type)
    if media_type_for(Path(image.path).name) != image.media_type:
        raise UnsupportedImageType(
            "Image file '{}' does not match declared type {}".format(
                image.path, image.media_type
            )
        )


def _read_image(image: Image) -> bytes:
    try:
        return Path(image.path).read_bytes()
    except OSError as exc:
        raise ResourceIOFailure("Failed to read image file {}".format(image.path)) from exc


class ContainerEncoder:
    """Builds one transport container from one Manuscript."""

    def __init__(self, manuscript: Manuscript) -> None:
        self.manuscript = manuscript

    def validate(self) -> None:
        """Check the manuscript without building anything."""
        check_segments(self.manuscript.format, self.manuscript.segments)
        for segment in self.manuscript.segments:
            if isinstance(segment, Image):
                _check_image(segment)

    def build(self) -> MIMEMultipart:
        """Build the complete MIME message.

        Raises:
            IllegalChapterUsage, MissingFirstChapter: grammar violations.
            MissingCaption, UnsupportedImageType: bad Image segments.
            MalformedSource: segment text containing line breaks.
            ResourceIOFailure: an image file could not be read.
        """
        self.validate()

        message = MIMEMultipart("mixed")
        message["From"] = config.SKALD_MIME_FROM
        message["To"] = config.SKALD_MIME_TO
        message["Subject"] = config.SKALD_MIME_SUBJECT

        json_text = metadata_to_json(self.manuscript.format, self.manuscript.metadata)
        message.attach(MIMEApplication(json_text.encode("utf-8"), "json"))

        lines: List[str] = []
        image_count = 0
        for segment in self.manuscript.segments:
            lines.extend(format_segment_lines(segment))
            if isinstance(segment, Image):
                message.attach(self._text_part(lines))
                lines = []
                image_count += 1
                message.attach(self._image_part(segment, image_count))

        # Text after the last image (or the whole body when there are none)
        if lines:
            message.attach(self._text_part(lines))

        logger.info(
            "Encoded %s manuscript: %d segments, %d images, %d parts",
            self.manuscript.format.value,
            len(self.manuscript.segments),
            image_count,
            len(message.get_payload()),
        )
        return message

    def encode(self) -> bytes:
        return self.build().as_bytes()

    @staticmethod
    def _text_part(lines: List[str]) -> MIMEText:
        return MIMEText("\n".join(lines) + "\n", "plain", "utf-8")

    @staticmethod
    def _image_part(image: Image, number: int) -> MIMEImage:
        subtype = image.media_type.split("/", 1)[1]
        part = MIMEImage(_read_image(image), subtype)
        part.add_header(
            "Content-Disposition",
            "attachment",
            filename="pic{}{}".format(number, extension_for(image.media_type)),
        )
        return part


def encode(manuscript: Manuscript) -> bytes:
    """Encode a Manuscript into transport container bytes."""
    return ContainerEncoder(manuscript).encode()
