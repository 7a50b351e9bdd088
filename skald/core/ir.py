"""Intermediate representation dataclasses for manuscripts.

WHY: Both codec directions exchange the same thing: a manuscript format, a
block of bibliographic metadata, and an ordered list of narrative segments.
A single, well-typed intermediate form decouples the STF scanner and writer
from the MIME encoder and decoder.

HOW: The types form a small hierarchy:
  ManuscriptFormat — "short" or "chapter"
  Person           — one creator/contributor declaration
  Metadata         — immutable field map with accessor methods
  Paragraph, Chapter, Scene, Image — the four segment kinds
  Manuscript       — format + metadata + segments

RULES:
- Segment order is the only addressing mechanism; there is no random access
- Metadata values are str, tuple[Person, ...] or tuple[str, ...]
- Metadata keys are lowercase; lookups are case-insensitive
- Paragraph text keeps its italic markup verbatim
- Image.path points at a real file; media_type is one of config.IMAGE_TYPES
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Iterator, Mapping, Tuple, Union

from skald.config import ROLE_NAMES


class ManuscriptFormat(str, enum.Enum):
    """Overall structure of a manuscript.

    Inherits from str so values serialize cleanly to JSON and compare equal
    to their STF spelling.
    """

    SHORT = "short"
    CHAPTER = "chapter"


@dataclass(frozen=True)
class Person:
    """A creator or contributor: relator role plus display and sort names."""

    role: str
    name: str
    sort_name: str

    @property
    def role_name(self) -> str:
        """Human-readable relator term, e.g. "illustrator" for "ill"."""
        return ROLE_NAMES[self.role]

    def as_declaration(self) -> str:
        """Render as the composite ``role; name; sort`` STF value."""
        return "{}; {}; {}".format(self.role, self.name, self.sort_name)


MetaValue = Union[str, Tuple[Person, ...], Tuple[str, ...]]


class Metadata:
    """Read-only bibliographic field map.

    WHY: Metadata is created once per codec session, from STF header lines
    or from a decoded JSON block, and must not change afterwards.

    HOW: Wraps a MappingProxyType over a private dict whose list values
    have been frozen into tuples. Build instances through
    skald.core.metadata (MetadataBuilder / assemble), which validates.

    RULES:
    - Keys are stored lowercase; get/has accept any case
    - title and unique_url are always present (enforced at assembly)
    """

    __slots__ = ("_fields",)

    def __init__(self, fields: Mapping[str, MetaValue]) -> None:
        frozen = {}
        for key, value in fields.items():
            if isinstance(value, list):
                value = tuple(value)
            frozen[key.lower()] = value
        self._fields = MappingProxyType(frozen)

    @property
    def fields(self) -> Mapping[str, MetaValue]:
        return self._fields

    @property
    def title(self) -> str:
        return self._fields["title"]

    @property
    def unique_url(self) -> str:
        return self._fields["unique-url"]

    def has(self, key: str) -> bool:
        return key.lower() in self._fields

    def get(self, key: str, default: MetaValue | None = None) -> MetaValue | None:
        return self._fields.get(key.lower(), default)

    def keys(self) -> list[str]:
        return sorted(self._fields)

    def __getitem__(self, key: str) -> MetaValue:
        return self._fields[key.lower()]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Metadata):
            return NotImplemented
        return dict(self._fields) == dict(other._fields)

    def __hash__(self) -> int:
        return hash(tuple(sorted(self._fields.items())))

    def __repr__(self) -> str:
        return "Metadata({!r})".format(dict(self._fields))


# ---------------------------------------------------------------------------
# Segments
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Paragraph:
    """One paragraph of narrative text, italic markup unresolved."""

    text: str
    kind = "paragraph"


@dataclass(frozen=True)
class Chapter:
    """Start of a chapter. Only legal in chapter-format manuscripts."""

    title: str
    kind = "chapter"


@dataclass(frozen=True)
class Scene:
    """Scene break. Carries no payload."""

    kind = "scene"


@dataclass(frozen=True)
class Image:
    """An embedded illustration.

    path is a file on disk: the author's file on the encode side, a
    session-managed temporary file on the decode side.
    """

    path: Path
    media_type: str
    caption: str
    kind = "image"


Segment = Union[Paragraph, Chapter, Scene, Image]


@dataclass
class Manuscript:
    """The complete intermediate representation of one manuscript.

    This is what the scanner produces and the encoder consumes, and what
    the decoder reconstructs and the STF writer consumes.
    """

    format: ManuscriptFormat
    metadata: Metadata
    segments: list[Segment] = field(default_factory=list)
