"""End-to-end pack and unpack pipelines.

WHY: Most callers want one of two things: turn an STF manuscript (plus
its image files) into a transport container, or turn a container back
into an editable STF manuscript with its images alongside. These two
functions wire the scanner, codec, writer and resource session together.

HOW: pack() scans the source and encodes it. unpack() decodes inside a
ResourceSession, writes the STF text and copies images out, and the
session removes its temporary files when the block exits, on success or
on error.

RULES:
- pack(): str/bytes are STF content; a Path is an STF file whose
  directory anchors relative image paths
- unpack(): bytes are container content; a Path is a container file
- unpack() writes "<stem>.stf" and "picN.<ext>" into output_dir
- No temporary file outlives either call
"""

from __future__ import annotations

import logging
from pathlib import Path

from skald.codec.decoder import ContainerDecoder
from skald.codec.encoder import encode
from skald.codec.resources import ResourceSession
from skald.core.scanner import scan, scan_path
from skald.core.writer import write_stf
from skald.errors import ResourceIOFailure

logger = logging.getLogger(__name__)


def pack(source: str | bytes | Path, base_dir: str | Path | None = None) -> bytes:
    """Convert an STF manuscript into transport container bytes."""
    if isinstance(source, Path):
        manuscript = scan_path(source)
    else:
        manuscript = scan(source, base_dir=base_dir)
    return encode(manuscript)


def unpack(
    container: bytes | Path,
    output_dir: str | Path,
    stem: str = "manuscript",
) -> Path:
    """Unpack a transport container into an STF file and image files.

    Returns:
        Path of the written STF file.
    """
    output_dir = Path(output_dir)
    if not output_dir.is_dir():
        raise ResourceIOFailure("Output directory does not exist: {}".format(output_dir))

    with ResourceSession() as session:
        if isinstance(container, Path):
            decoder = ContainerDecoder.from_path(container, session=session)
        else:
            decoder = ContainerDecoder.from_bytes(container, session=session)
        manuscript = decoder.manuscript()
        text = write_stf(manuscript, output_dir)

    stf_path = output_dir / "{}.stf".format(stem)
    try:
        stf_path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise ResourceIOFailure("Failed to write {}".format(stf_path)) from exc

    logger.info("Unpacked %d segments to %s", len(manuscript.segments), stf_path)
    return stf_path
