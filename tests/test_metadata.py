"""Unit tests for the metadata model.

WHY: Metadata arrives from two directions (STF header, JSON block) and
both must be held to exactly the same rules. Wrong date arithmetic or a
lax role check would let invalid catalog data through silently.

HOW: Tests cover the date validator's calendar edges, person parsing and
role vocabulary, field dispatch, builder accumulation rules, the
required-field check, and the JSON block in both directions.

RULES:
- Date edge cases follow the Gregorian cutover (1582-10-15) and leap rules
- JSON tests use metadata_to_json output as the well-formed baseline
"""

import json

import pytest

from skald.core.ir import ManuscriptFormat, Metadata, Person
from skald.core.metadata import (
    MetadataBuilder,
    assemble,
    check_date,
    check_role,
    metadata_from_json,
    metadata_to_json,
    parse_person,
    validate_field,
)
from skald.errors import (
    InvalidDate,
    InvalidField,
    InvalidPersonDeclaration,
    MalformedContainer,
    MissingRequiredField,
)


class TestCheckDate:
    """check_date enforces format, range, cutover and leap-year rules."""

    @pytest.mark.parametrize("value", [
        "1582",
        "1582-10",
        "1582-10-15",
        "2000-02-29",
        "2024-02-29",
        "1999-12-31",
        "9999-12-31",
        "2021-04-30",
    ])
    def test_valid_dates(self, value):
        assert check_date(value) is True

    @pytest.mark.parametrize("value", [
        "1582-10-14",
        "1582-09",
        "1581",
        "1900-02-29",
        "2023-02-29",
        "10000",
        "2021-04-31",
        "2021-13",
        "2021-00",
        "2021-01-00",
        "2021-1-01",
        "21-01-01",
        "2021-01-01-01",
        "",
        "abcd",
        "2021/01/01",
    ])
    def test_invalid_dates(self, value):
        assert check_date(value) is False


class TestPersonParsing:
    """parse_person handles shorthand, full declarations and bad input."""

    def test_shorthand_expands_to_author(self):
        person = parse_person("Jim Smith")
        assert person == Person(role="aut", name="Jim Smith", sort_name="Jim Smith")
        assert person.role_name == "author"

    def test_full_declaration(self):
        person = parse_person("ill; Jim Smith; Smith, Jim")
        assert person.role == "ill"
        assert person.role_name == "illustrator"
        assert person.name == "Jim Smith"
        assert person.sort_name == "Smith, Jim"

    def test_role_is_case_folded(self):
        assert parse_person("EDT; A; B").role == "edt"

    def test_fields_are_trimmed(self):
        person = parse_person(" trl ;\tAnn Lee\t;  Lee, Ann ")
        assert person == Person(role="trl", name="Ann Lee", sort_name="Lee, Ann")

    @pytest.mark.parametrize("raw", [
        "bad;only;two;fields",
        "aut; Jim Smith",
        "xyz; Jim; Smith",
        "au; Jim; Smith",
        "auth; Jim; Smith",
    ])
    def test_invalid_declarations(self, raw):
        with pytest.raises(InvalidPersonDeclaration):
            parse_person(raw)

    def test_as_declaration(self):
        assert Person("aut", "A", "B").as_declaration() == "aut; A; B"

    def test_check_role(self):
        assert check_role("aut")
        assert check_role("Ill")
        assert not check_role("zzz")
        assert not check_role("a1t")


class TestValidateField:
    """validate_field dispatches on the key kind."""

    def test_unknown_key(self):
        with pytest.raises(InvalidField):
            validate_field("Colour", "blue")

    def test_keys_are_case_insensitive(self):
        assert validate_field("TITLE", "Hello") == "Hello"

    def test_date_is_checked(self):
        with pytest.raises(InvalidDate):
            validate_field("date", "1900-02-29")

    def test_invalid_date_is_an_invalid_field(self):
        with pytest.raises(InvalidField):
            validate_field("date", "tomorrow")

    def test_person_from_sequence(self):
        person = validate_field("contributor", ["edt", "A", "B"])
        assert person == Person("edt", "A", "B")

    def test_person_name_with_separator_rejected(self):
        with pytest.raises(InvalidPersonDeclaration):
            validate_field("creator", ["aut", "A;B", "C"])

    def test_control_codes_rejected(self):
        with pytest.raises(InvalidField):
            validate_field("title", "Line one\nLine two")

    def test_person_name_with_newline_rejected(self):
        with pytest.raises(InvalidPersonDeclaration):
            validate_field("creator", ["aut", "A\r\nB", "C"])


class TestMetadataBuilder:
    """MetadataBuilder accumulates declarations in order."""

    def test_compound_fields_keep_order_and_duplicates(self):
        builder = MetadataBuilder()
        builder.add("Title", "T")
        builder.add("Unique-URL", "u")
        builder.add("Creator", "B Person")
        builder.add("creator", "A Person")
        builder.add("creator", "A Person")
        builder.add("Mailing", "line 1")
        builder.add("Mailing", "line 2")
        metadata = builder.build()

        names = [p.name for p in metadata["creator"]]
        assert names == ["B Person", "A Person", "A Person"]
        assert metadata.get("mailing") == ("line 1", "line 2")

    def test_single_key_declared_twice(self):
        builder = MetadataBuilder()
        builder.add("title", "One")
        with pytest.raises(InvalidField, match="only allowed once"):
            builder.add("Title", "Two")

    def test_required_check_is_order_independent(self):
        builder = MetadataBuilder()
        builder.add("unique-url", "u")
        builder.add("date", "2020")
        builder.add("title", "T")
        metadata = builder.build()
        assert metadata.title == "T"
        assert metadata.unique_url == "u"

    @pytest.mark.parametrize("fields", [
        {"unique-url": "u"},
        {"title": "T"},
        {"title": "", "unique-url": "u"},
        {},
    ])
    def test_missing_required(self, fields):
        with pytest.raises(MissingRequiredField):
            assemble(fields)


class TestMetadataAccessors:
    """Metadata is read-only and case-insensitive."""

    def test_lookup_is_case_insensitive(self):
        metadata = assemble({"title": "T", "unique-url": "u"})
        assert metadata.has("Title")
        assert metadata.get("UNIQUE-URL") == "u"
        assert "title" in metadata
        assert metadata.keys() == ["title", "unique-url"]

    def test_fields_are_immutable(self):
        metadata = assemble({"title": "T", "unique-url": "u", "mailing": ["a"]})
        with pytest.raises(TypeError):
            metadata.fields["title"] = "X"
        assert isinstance(metadata["mailing"], tuple)


class TestJsonBlock:
    """metadata_to_json / metadata_from_json convert the container block."""

    def _metadata(self):
        builder = MetadataBuilder()
        builder.add("title", "Ünïcode \"quoted\" \\ title")
        builder.add("unique-url", "https://example.com/x")
        builder.add("creator", "ill; Jim Smith; Smith, Jim")
        builder.add("mailing", "1 Road")
        return builder.build()

    def test_block_layout(self):
        text = metadata_to_json(ManuscriptFormat.SHORT, self._metadata())
        block = json.loads(text)
        assert block["stf"] == "short"
        assert block["meta"]["creator"] == [["ill", "Jim Smith", "Smith, Jim"]]
        assert block["meta"]["mailing"] == ["1 Road"]
        assert list(block["meta"]) == sorted(block["meta"])

    def test_round_trip(self):
        metadata = self._metadata()
        text = metadata_to_json(ManuscriptFormat.CHAPTER, metadata)
        fmt, decoded = metadata_from_json(text.encode("utf-8"))
        assert fmt is ManuscriptFormat.CHAPTER
        assert decoded == metadata

    def test_not_json(self):
        with pytest.raises(MalformedContainer):
            metadata_from_json(b"{not json")

    @pytest.mark.parametrize("block", [
        [],
        {"stf": "short"},
        {"meta": {}},
        {"stf": "novel", "meta": {"title": "T", "unique-url": "u"}},
        {"stf": "short", "meta": {"title": 5, "unique-url": "u"}},
        {"stf": "short", "meta": {"title": "T", "unique-url": "u", "colour": "x"}},
        {"stf": "short", "meta": {"title": "T", "unique-url": "u", "creator": [["aut", "A"]]}},
        {"stf": "short", "meta": {"title": "T", "unique-url": "u", "mailing": "x"}},
    ])
    def test_schema_violations(self, block):
        with pytest.raises(MalformedContainer):
            metadata_from_json(json.dumps(block))

    def test_field_validators_run_on_decoded_block(self):
        block = {"stf": "short", "meta": {"title": "T", "unique-url": "u", "date": "1582-10-14"}}
        with pytest.raises(InvalidDate):
            metadata_from_json(json.dumps(block))

    def test_decoded_role_checked(self):
        block = {"stf": "short", "meta": {"title": "T", "unique-url": "u", "creator": [["zzz", "A", "B"]]}}
        with pytest.raises(InvalidPersonDeclaration):
            metadata_from_json(json.dumps(block))

    def test_missing_required_in_block(self):
        block = {"stf": "short", "meta": {"title": "T"}}
        with pytest.raises(MissingRequiredField):
            metadata_from_json(json.dumps(block))

    def test_metadata_equality(self):
        assert assemble({"title": "T", "unique-url": "u"}) == Metadata({"title": "T", "unique-url": "u"})
