"""Configuration constants, controlled vocabularies, and .env loading.

WHY: The codec's controlled vocabularies (person roles, image media types,
metadata keys) and its few environment-tunable values belong in one place,
as plain data, so they can be read and changed without touching the
scanner or codec logic.

HOW: python-dotenv loads the .env file on import. Vocabularies are
module-level dicts, tuples and frozensets. Environment overrides are read
once with os.getenv and fall back to sensible defaults.

RULES:
- ROLE_CODES is the closed set of 29 lowercase MARC relator codes
- IMAGE_TYPES maps each supported media type to its canonical extension
- EXTENSION_TYPES maps every accepted file extension (lowercase, with dot)
  back to its media type
- META_KEY_ORDER is the preferred order of keys when writing an STF header
- Temp-storage and MIME header defaults can be overridden via environment
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the working directory (where the codec is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Person roles (MARC relator codes)
# ---------------------------------------------------------------------------

ROLE_NAMES: dict[str, str] = {
    "adp": "adapter",
    "ann": "annotator",
    "arr": "arranger",
    "art": "artist",
    "asn": "associated name",
    "aut": "author",
    "aqt": "author in quotations",
    "aft": "author of afterword",
    "aui": "author of introduction",
    "ant": "bibliographic antecedent",
    "bkp": "book producer",
    "clb": "collaborator",
    "cmm": "commentator",
    "dsr": "designer",
    "edt": "editor",
    "ill": "illustrator",
    "lyr": "lyricist",
    "mdc": "metadata contact",
    "mus": "musician",
    "nrt": "narrator",
    "oth": "other",
    "pht": "photographer",
    "prt": "printer",
    "red": "redactor",
    "rev": "reviewer",
    "spn": "sponsor",
    "ths": "thesis advisor",
    "trc": "transcriber",
    "trl": "translator",
}

ROLE_CODES: frozenset[str] = frozenset(ROLE_NAMES)
"""All recognized person role codes, lowercase."""

DEFAULT_ROLE = "aut"

# ---------------------------------------------------------------------------
# Metadata keys
# ---------------------------------------------------------------------------

SINGLE_KEYS: frozenset[str] = frozenset({
    "title", "description", "publisher", "date", "unique-url",
    "rights", "email", "website", "phone",
})

PERSON_KEYS: frozenset[str] = frozenset({"creator", "contributor"})

LIST_KEYS: frozenset[str] = frozenset({"mailing"})

REQUIRED_KEYS: tuple[str, ...] = ("title", "unique-url")

META_KEY_ORDER: tuple[str, ...] = (
    "title",
    "creator",
    "description",
    "publisher",
    "contributor",
    "date",
    "unique-url",
    "rights",
    "email",
    "website",
    "phone",
    "mailing",
)
"""Preferred ordering of metadata keys in a written STF header."""

# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

IMAGE_TYPES: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/svg+xml": ".svg",
}

EXTENSION_TYPES: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".svg": "image/svg+xml",
}

# ---------------------------------------------------------------------------
# Temporary storage and container headers
# ---------------------------------------------------------------------------

SKALD_TEMP_ROOT = os.getenv("SKALD_TEMP_ROOT") or None
SKALD_TEMP_PREFIX = os.getenv("SKALD_TEMP_PREFIX", "skald_")

SKALD_MIME_FROM = os.getenv("SKALD_MIME_FROM", "author@example.com")
SKALD_MIME_TO = os.getenv("SKALD_MIME_TO", "publisher@example.com")
SKALD_MIME_SUBJECT = os.getenv("SKALD_MIME_SUBJECT", "skald")


def media_type_for(path_or_suffix: str) -> str | None:
    """Return the media type implied by a file name or suffix, or None.

    Matching is case-insensitive: ``"Cover.JPG"`` and ``".jpg"`` both map
    to ``"image/jpeg"``.
    """
    name = path_or_suffix.lower()
    dot = name.rfind(".")
    if dot < 0:
        return None
    return EXTENSION_TYPES.get(name[dot:])
