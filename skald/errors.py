"""Exception hierarchy for the Skald codec.

WHY: Every failure in the codec is terminal for the current operation and
the caller needs to tell them apart (bad header vs. bad container vs. a
filesystem problem) without parsing messages.

HOW: One base class, SkaldError, with one subclass per error kind. Errors
raised while reading STF text carry the 1-based line number.

RULES:
- Library code raises these; it never prints or exits
- OS errors are wrapped in ResourceIOFailure with the cause chained
- None of these errors are retried internally
"""

from __future__ import annotations


class SkaldError(Exception):
    """Base class for all codec errors."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        if line is not None:
            message = "STF line {}: {}".format(line, message)
        super().__init__(message)


class MalformedHeader(SkaldError):
    """The STF signature line or metadata header is invalid."""


class MalformedSource(SkaldError):
    """An STF body line, or a segment's text, cannot be represented."""


class InvalidField(SkaldError):
    """A metadata field is unknown, repeated, or has an invalid value."""


class InvalidPersonDeclaration(InvalidField):
    """A creator/contributor value is malformed or has an unknown role."""


class InvalidDate(InvalidField):
    """A date value is malformed or outside 1582-10-15 .. 9999-12-31."""


class MissingRequiredField(SkaldError):
    """title or unique-url is absent or empty."""


class IllegalChapterUsage(SkaldError):
    """A chapter appears in a short-format manuscript."""


class MissingFirstChapter(SkaldError):
    """A chapter-format manuscript does not begin with a chapter."""


class MissingCaption(SkaldError):
    """An image reference is not accompanied by its caption."""


class MalformedContainer(SkaldError):
    """The transport container violates the part layout or line grammar."""


class UnsupportedImageType(SkaldError):
    """An image has a media type or extension outside jpeg/png/svg."""


class ResourceIOFailure(SkaldError):
    """A filesystem operation on an image or temporary file failed."""
