"""Metadata field registry, validators, and the JSON metadata block.

WHY: Every manuscript carries bibliographic metadata that must be valid no
matter which direction it arrives from: typed in an STF header by a person,
or decoded from the JSON part of a transport container. Both paths share
the validators here so the two representations can never disagree.

HOW: validate_field() checks and canonicalizes one raw value according to
the key's kind (single string, person list, string list). MetadataBuilder
accumulates declarations in order, enforcing single-declaration rules, and
assemble() performs the required-field check once at the end.
metadata_to_json() / metadata_from_json() convert to and from the
container's metadata block, the latter validating its shape with
jsonschema before re-validating every field.

RULES:
- Keys are case-insensitive and stored lowercase
- Single-valued keys may be declared once; compound keys any number of times
- Person value with no ";" expands to "aut; V; V"; otherwise exactly two ";"
- Roles are three ASCII letters, case-folded into config.ROLE_CODES
- Dates are YYYY, YYYY-MM or YYYY-MM-DD within 1582-10-15 .. 9999-12-31
- No value may contain control characters U+0000..U+001F
- Person names may not contain ";"
- title and unique-url must be present and non-empty at assembly
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Tuple

import jsonschema

from skald.config import (
    DEFAULT_ROLE,
    LIST_KEYS,
    PERSON_KEYS,
    REQUIRED_KEYS,
    ROLE_CODES,
    SINGLE_KEYS,
)
from skald.core.ir import ManuscriptFormat, Metadata, MetaValue, Person
from skald.errors import (
    InvalidDate,
    InvalidField,
    InvalidPersonDeclaration,
    MalformedContainer,
    MissingRequiredField,
)

_DIGITS = frozenset("0123456789")

# Days in each month of a common year; February is adjusted for leap years.
_MONTH_DAYS = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)

_PERSON_ARRAY = {
    "type": "array",
    "items": {
        "type": "array",
        "items": {"type": "string"},
        "minItems": 3,
        "maxItems": 3,
    },
}

METADATA_BLOCK_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Skald metadata block",
    "type": "object",
    "required": ["stf", "meta"],
    "properties": {
        "stf": {"enum": [f.value for f in ManuscriptFormat]},
        "meta": {
            "type": "object",
            "properties": dict(
                {key: {"type": "string"} for key in sorted(SINGLE_KEYS)},
                creator=_PERSON_ARRAY,
                contributor=_PERSON_ARRAY,
                mailing={"type": "array", "items": {"type": "string"}},
            ),
            "additionalProperties": False,
        },
    },
}


def known_key(key: str) -> bool:
    """True if *key* (any case) is a recognized metadata key."""
    key = key.lower()
    return key in SINGLE_KEYS or key in PERSON_KEYS or key in LIST_KEYS


def _check_text(key: str, value: str) -> None:
    if any(ord(c) < 0x20 for c in value):
        raise InvalidField(
            "Metadata field '{}' contains control codes".format(key)
        )


def check_role(role: str) -> bool:
    """Return True if *role* is exactly three ASCII letters naming a known role."""
    if len(role) != 3 or not all(c.isascii() and c.isalpha() for c in role):
        return False
    return role.lower() in ROLE_CODES


def check_date(value: str) -> bool:
    """Return True if *value* is a valid YYYY, YYYY-MM or YYYY-MM-DD date.

    WHY: Publication dates must be real calendar dates in the Gregorian
    era, since downstream catalogs reject impossible ones.

    HOW: Split on "-", check digit-group widths, then apply the range and
    day-of-month rules without a regex.

    RULES:
    - Year in [1582, 9999]
    - 1582 only allows months 10-12 (Gregorian adoption)
    - 1582-10 only allows days >= 15
    - February has 29 days in years divisible by 4, except centuries not
      divisible by 400
    """
    groups = value.split("-")
    if len(groups) > 3:
        return False
    widths = (4, 2, 2)
    for width, group in zip(widths, groups):
        if len(group) != width or not set(group) <= _DIGITS:
            return False

    year = int(groups[0])
    if not 1582 <= year <= 9999:
        return False
    if len(groups) == 1:
        return True

    month = int(groups[1])
    min_month = 10 if year == 1582 else 1
    if not min_month <= month <= 12:
        return False
    if len(groups) == 2:
        return True

    day = int(groups[2])
    min_day = 15 if (year == 1582 and month == 10) else 1
    if day < min_day:
        return False

    max_day = _MONTH_DAYS[month - 1]
    if month == 2 and _is_leap(year):
        max_day = 29
    return day <= max_day


def _is_leap(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def parse_person(raw: str) -> Person:
    """Parse a ``role; name; sort`` declaration into a Person.

    A value without any ";" is shorthand for an author whose sort name is
    the display name: ``"Jim Smith"`` → ``aut; Jim Smith; Jim Smith``.
    """
    if ";" not in raw:
        raw = "{}; {}; {}".format(DEFAULT_ROLE, raw, raw)

    fields = raw.split(";")
    if len(fields) != 3:
        raise InvalidPersonDeclaration(
            "Invalid person declaration '{}'".format(raw)
        )
    role, name, sort_name = (f.strip(" \t") for f in fields)
    return make_person(role, name, sort_name)


def make_person(role: str, name: str, sort_name: str) -> Person:
    """Validate the three person fields and build a Person."""
    if not check_role(role):
        raise InvalidPersonDeclaration("Invalid person role '{}'".format(role))
    for value in (name, sort_name):
        if ";" in value:
            raise InvalidPersonDeclaration(
                "Person name '{}' may not contain ';'".format(value)
            )
        if any(ord(c) < 0x20 for c in value):
            raise InvalidPersonDeclaration(
                "Person name '{}' contains control codes".format(value)
            )
    return Person(role=role.lower(), name=name, sort_name=sort_name)


def validate_field(name: str, raw_value: Any) -> Any:
    """Validate and canonicalize one metadata value.

    WHY: The STF header and the JSON block deliver raw values in different
    shapes; this is the single place that decides what is acceptable.

    HOW: Dispatch on the key's kind. For person keys, a string is parsed
    as one declaration and a Person is returned; a (role, name, sort)
    sequence is validated field by field. Single keys return the string
    (dates checked). The mailing key returns the string line.

    RULES:
    - Unknown keys raise InvalidField
    - Returns one value; compound accumulation is MetadataBuilder's job
    """
    key = name.lower()
    if not known_key(key):
        raise InvalidField("Unrecognized STF metadata key '{}'".format(name))

    if key in PERSON_KEYS:
        if isinstance(raw_value, str):
            return parse_person(raw_value)
        role, person_name, sort_name = raw_value
        return make_person(role, person_name, sort_name)

    if not isinstance(raw_value, str):
        raise InvalidField("Metadata field '{}' must be a string".format(key))
    _check_text(key, raw_value)

    if key == "date" and not check_date(raw_value):
        raise InvalidDate("Date '{}' is in invalid format".format(raw_value))
    return raw_value


class MetadataBuilder:
    """Accumulates metadata declarations in order, then assembles them.

    HOW: Single-valued keys are stored once; a repeat raises InvalidField.
    Compound keys append to an ordered list, duplicates allowed.
    """

    def __init__(self) -> None:
        self._fields: Dict[str, Any] = {}

    def add(self, name: str, raw_value: Any) -> None:
        key = name.lower()
        value = validate_field(key, raw_value)
        if key in PERSON_KEYS or key in LIST_KEYS:
            self._fields.setdefault(key, []).append(value)
            return
        if key in self._fields:
            raise InvalidField(
                "{} metadata only allowed once".format(key.capitalize())
            )
        self._fields[key] = value

    def build(self) -> Metadata:
        return assemble(self._fields)


def assemble(fields: Dict[str, MetaValue]) -> Metadata:
    """Check required fields and freeze *fields* into a Metadata instance."""
    for key in REQUIRED_KEYS:
        value = fields.get(key)
        if not value:
            raise MissingRequiredField(
                "Must declare a {} in the metadata".format(key)
            )
    return Metadata(fields)


# ---------------------------------------------------------------------------
# JSON metadata block
# ---------------------------------------------------------------------------


def metadata_to_json(fmt: ManuscriptFormat, metadata: Metadata) -> str:
    """Serialize format and metadata into the container's JSON block.

    Person lists become arrays of ``[role, name, sort]`` and string lists
    become string arrays. Keys are sorted.
    """
    meta: Dict[str, Any] = {}
    for key in metadata.keys():
        value = metadata[key]
        if key in PERSON_KEYS:
            meta[key] = [[p.role, p.name, p.sort_name] for p in value]
        elif key in LIST_KEYS:
            meta[key] = list(value)
        else:
            meta[key] = value

    block = {"stf": ManuscriptFormat(fmt).value, "meta": meta}
    return json.dumps(block, indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def metadata_from_json(data: str | bytes) -> Tuple[ManuscriptFormat, Metadata]:
    """Parse and validate a JSON metadata block.

    Raises:
        MalformedContainer: the block is not JSON or does not match
            METADATA_BLOCK_SCHEMA.
        InvalidField, MissingRequiredField: a field fails validation.
    """
    try:
        block = json.loads(data)
    except ValueError as exc:
        raise MalformedContainer("Skald JSON syntax error: {}".format(exc)) from exc

    try:
        jsonschema.validate(instance=block, schema=METADATA_BLOCK_SCHEMA)
    except jsonschema.ValidationError as exc:
        raise MalformedContainer(
            "Skald JSON metadata block is invalid: {}".format(exc.message)
        ) from exc

    builder = MetadataBuilder()
    for key in sorted(block["meta"]):
        value = block["meta"][key]
        if key in PERSON_KEYS or key in LIST_KEYS:
            items: List[Any] = value
            for item in items:
                builder.add(key, item)
        else:
            builder.add(key, value)

    return ManuscriptFormat(block["stf"]), builder.build()
