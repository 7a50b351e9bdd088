"""Tests for the static configuration tables."""

import pytest

from skald import config


def test_role_vocabulary():
    assert len(config.ROLE_NAMES) == 29
    assert config.ROLE_CODES == frozenset(config.ROLE_NAMES)
    assert config.DEFAULT_ROLE in config.ROLE_CODES
    assert all(len(code) == 3 and code.isalpha() for code in config.ROLE_CODES)


def test_key_sets_are_disjoint():
    assert not config.SINGLE_KEYS & config.PERSON_KEYS
    assert not config.SINGLE_KEYS & config.LIST_KEYS
    known = config.SINGLE_KEYS | config.PERSON_KEYS | config.LIST_KEYS
    assert set(config.META_KEY_ORDER) == known
    assert set(config.REQUIRED_KEYS) <= config.SINGLE_KEYS


@pytest.mark.parametrize("name, expected", [
    ("cover.png", "image/png"),
    ("PHOTO.JPG", "image/jpeg"),
    ("photo.jpeg", "image/jpeg"),
    ("map.svg", "image/svg+xml"),
    (".png", "image/png"),
    ("anim.gif", None),
    ("noext", None),
])
def test_media_type_for(name, expected):
    assert config.media_type_for(name) == expected
