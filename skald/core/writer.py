"""STF writer: Manuscript → STF text plus extracted image files.

WHY: A decoded container has to be editable again by a person. Writing it
back out as STF, with its images copied next to it under simple names,
closes the loop so authors can unpack, edit and re-pack a manuscript.

HOW: The header is the signature line followed by metadata lines in the
canonical key order. Each segment is written after a blank line. Images
are copied into the output directory as pic1.jpg, pic2.png, ... in order
of appearance and referenced by that name.

RULES:
- Metadata keys in config.META_KEY_ORDER; "Unique-URL" capitalized
  specially, all other keys title-cased
- Person values are written as "role; name; sort"
- One blank line before every segment
- Chapters as "@ title", scenes as "#", images as "^ picN.ext" + "> caption"
- A paragraph that would be read back as a marker line is rejected
- Every line is validated before any image is copied; a failed copy
  removes the copies already made
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import List, Tuple

from skald.config import IMAGE_TYPES, LIST_KEYS, META_KEY_ORDER, PERSON_KEYS
from skald.core.ir import Chapter, Image, Manuscript, Paragraph, Scene
from skald.errors import MalformedSource, ResourceIOFailure

logger = logging.getLogger(__name__)

_MARKERS = ("@", "#", "^", ">")


def display_key(key: str) -> str:
    """STF spelling of a metadata key, e.g. "unique-url" → "Unique-URL"."""
    if key == "unique-url":
        return "Unique-URL"
    return key.capitalize()


def _header_lines(manuscript: Manuscript) -> List[str]:
    lines = ["%stf {};".format(manuscript.format.value)]
    metadata = manuscript.metadata
    for key in META_KEY_ORDER:
        if not metadata.has(key):
            continue
        value = metadata[key]
        name = display_key(key)
        if key in PERSON_KEYS:
            lines.extend("{}: {}".format(name, p.as_declaration()) for p in value)
        elif key in LIST_KEYS:
            lines.extend("{}: {}".format(name, s) for s in value)
        else:
            lines.append("{}: {}".format(name, value))
    return lines


def _paragraph_line(text: str) -> str:
    lead = text.lstrip(" \t")
    if not lead or lead[0] in _MARKERS:
        raise MalformedSource(
            "Paragraph cannot be written as STF: '{}'".format(text[:40])
        )
    return text


def _chapter_title(title: str) -> str:
    if not title.strip(" \t"):
        raise MalformedSource("Chapter title cannot be empty")
    return title


def write_stf(manuscript: Manuscript, output_dir: str | Path, image_stem: str = "pic") -> str:
    """Render *manuscript* as STF text, copying its images into *output_dir*.

    Returns:
        The STF document as a string (LF line endings, trailing newline).

    Raises:
        MalformedSource: a paragraph starts with a marker character, or a
            chapter title is empty. Nothing is copied in that case.
        ResourceIOFailure: an image could not be copied.
    """
    output_dir = Path(output_dir)
    lines = _header_lines(manuscript)
    copies: List[Tuple[Path, Path]] = []

    for segment in manuscript.segments:
        lines.append("")
        if isinstance(segment, Paragraph):
            lines.append(_paragraph_line(segment.text))
        elif isinstance(segment, Chapter):
            lines.append("@ {}".format(_chapter_title(segment.title)))
        elif isinstance(segment, Scene):
            lines.append("#")
        elif isinstance(segment, Image):
            name = "{}{}{}".format(
                image_stem, len(copies) + 1, IMAGE_TYPES[segment.media_type]
            )
            copies.append((Path(segment.path), output_dir / name))
            lines.append("^ {}".format(name))
            lines.append("> {}".format(segment.caption))

    # The header must end with a blank line even when the body is empty
    if not manuscript.segments:
        lines.append("")

    _copy_images(copies)
    return "\n".join(lines) + "\n"


def _copy_images(copies: List[Tuple[Path, Path]]) -> None:
    """Copy every image, or none: a failure removes the copies already made."""
    done: List[Path] = []
    try:
        for source, target in copies:
            shutil.copyfile(source, target)
            done.append(target)
    except OSError as exc:
        for target in done:
            try:
                target.unlink()
            except OSError:
                logger.warning("Failed to remove partial output: %s", target)
        raise ResourceIOFailure("Failed to copy image file {}".format(source)) from exc
