"""Zip archive reading and writing for virtual file sets.

Entries are pulled from the archive one at a time and buffered in memory as
they are read. A failure anywhere in the archive fails the whole read, so
callers never see a partial file set.

Example:
    Read an uploaded archive and write a bundle back:
        >>> with open("parcels.zip", "rb") as stream:
        ...     files = read_archive(stream)
        >>> sorted(files)
        ['parcels.dbf', 'parcels.prj', 'parcels.shp']
        >>> bundle = write_archive(files)
"""

from __future__ import annotations

import io
import logging
import pathlib
import zipfile
import zlib
from typing import TYPE_CHECKING, BinaryIO

from geoconvert.conversion import errors, models

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

logger = logging.getLogger(__name__)

_READ_ERRORS = (
    zipfile.BadZipFile,
    zlib.error,
    EOFError,
    NotImplementedError,
    RuntimeError,
    ValueError,
)


def _safe_entry_name(name: str) -> str | None:
    """Return the entry path if it stays inside the archive root."""
    normalized = name.replace("\\", "/")
    path = pathlib.PurePosixPath(normalized)
    if path.is_absolute() or ".." in path.parts:
        return None
    return str(path)


def iter_entries(stream: bytes | BinaryIO) -> Iterator[tuple[str, bytes]]:
    """Lazily yield ``(path, content)`` for each file entry of a zip archive.

    Directory entries are skipped. Zero-length entries are yielded with
    empty content. Entries whose path would escape the archive root are
    skipped with a warning.

    Raises:
        ArchiveCorruptError: If the archive or any entry cannot be read.
    """
    if isinstance(stream, bytes | bytearray):
        stream = io.BytesIO(stream)
    try:
        with zipfile.ZipFile(stream) as archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                name = _safe_entry_name(info.filename)
                if name is None:
                    logger.warning("Skipping unsafe archive entry %r", info.filename)
                    continue
                with archive.open(info) as entry:
                    yield name, entry.read()
    except _READ_ERRORS as exc:
        raise errors.ArchiveCorruptError(
            f"Uploaded archive could not be read: {exc}"
        ) from exc


def read_archive(stream: bytes | BinaryIO) -> models.VirtualFileSet:
    """Extract every file entry of a zip archive into a virtual file set.

    Args:
        stream: Archive bytes or a seekable binary file object.

    Returns:
        Mapping from entry path to entry content, in archive order.

    Raises:
        ArchiveCorruptError: If the archive cannot be parsed. Nothing is
            returned in that case, even if some entries were already read.
    """
    files: models.VirtualFileSet = {}
    for name, content in iter_entries(stream):
        if name in files:
            logger.debug("Duplicate archive entry %s, keeping the last one", name)
        files[name] = content
    logger.debug("Read %d entries from archive", len(files))
    return files


def write_archive(files: Mapping[str, models.FileContent]) -> bytes:
    """Bundle a virtual file set into deflated zip bytes, in mapping order."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()
