"""Shared test fixtures for the skald test suite.

WHY: Most test modules need the same sample manuscript, the same small
image files, and a way to hand-build containers that the encoder would
never produce. Centralizing them here keeps the tests focused on behavior.

HOW: Pytest fixtures write the sample images into tmp_path, provide the
sample STF text with relative image paths, a resource session rooted in
tmp_path, and a container builder for malformed-input tests.

RULES:
- Image bytes are arbitrary; the codec never inspects image content
- Every session fixture is rooted in tmp_path so leftovers are visible
- Owned decoder sessions are redirected into tmp_path via monkeypatch
"""

import json
from email.mime.application import MIMEApplication
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email import encoders
from typing import Any, List, Tuple

import pytest

from skald import config
from skald.codec.resources import ResourceSession


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR fake png body \x00\xff"
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00 fake jpeg body \xff\xd9"
SVG_BYTES = b'<svg xmlns="http://www.w3.org/2000/svg" width="1" height="1"/>\n'

SAMPLE_STF = """\
%stf chapter;
Title: The Lighthouse
Creator: Jim Smith
Creator: ill; Ann Lee; Lee, Ann
Description: A short novel
  about a lighthouse keeper.
Unique-URL: https://example.com/lighthouse
Date: 2021-06-01
Mailing: 12 Harbour Road
Mailing: Portsmouth

@ The Keeper

It was a *dark* and stormy
night.

#

^ cover.png
> The lighthouse at dusk

@ The Storm

The end **really**.

^ map.svg
> Map of the coast
"""

MINIMAL_META = {"title": "T", "unique-url": "https://example.com/t"}


@pytest.fixture
def sample_stf():
    return SAMPLE_STF


@pytest.fixture
def meta_block():
    """Return a function building a well-formed metadata block for a format."""

    def _block(fmt="short", **extra):
        meta = dict(MINIMAL_META)
        meta.update(extra)
        return {"stf": fmt, "meta": meta}

    return _block


@pytest.fixture
def image_dir(tmp_path):
    """Directory holding cover.png, photo.jpg and map.svg."""
    directory = tmp_path / "images"
    directory.mkdir()
    (directory / "cover.png").write_bytes(PNG_BYTES)
    (directory / "photo.jpg").write_bytes(JPEG_BYTES)
    (directory / "map.svg").write_bytes(SVG_BYTES)
    return directory


@pytest.fixture
def temp_root(tmp_path, monkeypatch):
    """Empty directory that every ResourceSession in the test uses."""
    root = tmp_path / "session-temp"
    root.mkdir()
    monkeypatch.setattr(config, "SKALD_TEMP_ROOT", str(root))
    return root


@pytest.fixture
def session(temp_root):
    with ResourceSession() as s:
        yield s


@pytest.fixture
def build_container():
    """Return a function that hand-builds a container.

    The function takes the metadata block (dict, or raw str for invalid
    JSON) and a list of (media_type, content) body parts, and returns
    container bytes.
    """

    def _build(meta: Any, parts: List[Tuple[str, Any]]) -> bytes:
        message = MIMEMultipart("mixed")
        raw = meta if isinstance(meta, str) else json.dumps(meta)
        message.attach(MIMEApplication(raw.encode("utf-8"), "json"))
        for media_type, content in parts:
            maintype, subtype = media_type.split("/", 1)
            if maintype == "text":
                message.attach(MIMEText(content, subtype, "utf-8"))
            else:
                part = MIMEBase(maintype, subtype)
                part.set_payload(content)
                encoders.encode_base64(part)
                message.attach(part)
        return message.as_bytes()

    return _build
