"""Session-scoped temporary files for extracted images.

WHY: Decoding a container turns every image part into a file on disk so
callers can hand the path to other tools. Those files belong to the codec
session and must disappear when the session ends, whether it finished
normally or failed halfway through, and concurrent sessions must never
collide on file names.

HOW: ResourceSession lazily creates one private directory with
tempfile.mkdtemp (unique per session) and writes every new file inside it.
close() unlinks the tracked files and removes the directory. The session is
a context manager so release happens on every exit path.

RULES:
- A Path whose extension already matches the media type is reused as-is:
  never copied, never tracked, never deleted
- Anything else is copied into a new temp file with the right extension
- close() is idempotent; a closed session refuses new work
- Filesystem errors surface as ResourceIOFailure
- Cleanup failures are logged, not raised
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

from skald import config
from skald.config import IMAGE_TYPES, media_type_for
from skald.errors import ResourceIOFailure, UnsupportedImageType

logger = logging.getLogger(__name__)


def extension_for(media_type: str) -> str:
    """Return the canonical file extension for a supported image media type."""
    try:
        return IMAGE_TYPES[media_type]
    except KeyError:
        raise UnsupportedImageType(
            "Unrecognized image type '{}'".format(media_type)
        ) from None


class ResourceSession:
    """Owns the temporary files created during one encode or decode."""

    def __init__(
        self,
        temp_root: str | Path | None = None,
        prefix: Optional[str] = None,
    ) -> None:
        self._temp_root = temp_root if temp_root is not None else config.SKALD_TEMP_ROOT
        self._prefix = prefix if prefix is not None else config.SKALD_TEMP_PREFIX
        self._directory: Optional[Path] = None
        self._tracked: List[Path] = []
        self._counter = 0
        self.closed = False

    def __enter__(self) -> "ResourceSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def directory(self) -> Optional[Path]:
        """The session's private directory, or None if nothing was created yet."""
        return self._directory

    @property
    def tracked(self) -> tuple[Path, ...]:
        return tuple(self._tracked)

    def _ensure_directory(self) -> Path:
        if self.closed:
            raise ResourceIOFailure("Resource session is already closed")
        if self._directory is None:
            try:
                self._directory = Path(
                    tempfile.mkdtemp(prefix=self._prefix, dir=self._temp_root)
                )
            except OSError as exc:
                raise ResourceIOFailure("Failed to create temporary directory") from exc
            logger.debug("Created session directory %s", self._directory)
        return self._directory

    def new_file(self, suffix: str) -> Path:
        """Create an empty, tracked file in the session directory."""
        directory = self._ensure_directory()
        self._counter += 1
        try:
            fd, name = tempfile.mkstemp(
                prefix="part{}_".format(self._counter), suffix=suffix, dir=directory
            )
            os.close(fd)
        except OSError as exc:
            raise ResourceIOFailure("Failed to create temporary file") from exc
        path = Path(name)
        self._tracked.append(path)
        return path

    def materialize(self, source: bytes | Path, media_type: str) -> Path:
        """Return a file holding *source* whose extension matches *media_type*.

        WHY: Consumers of decoded images identify the format by extension,
        so every image handle must carry the right one.

        HOW: An existing Path with the matching extension is returned
        untouched. A Path with another extension is copied, and raw bytes
        are written, into a new tracked temp file.

        Raises:
            UnsupportedImageType: media_type is not jpeg, png or svg.
            ResourceIOFailure: the file could not be read or written.
        """
        suffix = extension_for(media_type)

        if isinstance(source, Path):
            if media_type_for(source.name) == media_type and source.is_file():
                return source
            target = self.new_file(suffix)
            try:
                shutil.copyfile(source, target)
            except OSError as exc:
                raise ResourceIOFailure(
                    "Failed to copy image file {}".format(source)
                ) from exc
            return target

        target = self.new_file(suffix)
        try:
            target.write_bytes(source)
        except OSError as exc:
            raise ResourceIOFailure("Failed to write image file {}".format(target)) from exc
        return target

    def close(self) -> None:
        """Remove every tracked file and the session directory."""
        if self.closed:
            return
        self.closed = True

        for path in self._tracked:
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError:
                logger.warning("Failed to remove temp file: %s", path)
        self._tracked.clear()

        if self._directory is not None and self._directory.exists():
            try:
                shutil.rmtree(self._directory)
            except OSError:
                logger.warning("Failed to clean up temp dir: %s", self._directory)
            else:
                logger.debug("Removed session directory %s", self._directory)
