"""Upload classification by content sniffing.

The media type of an upload is decided from its leading bytes with libmagic,
never from the client's filename. Archives are expanded into a virtual file
set; anything else becomes a one-entry set keyed by the client filename.

Uploads whose type cannot be determined fail closed with
UnknownMediaTypeError instead of falling back to a default type.
"""

from __future__ import annotations

import logging
import re
from typing import BinaryIO

from geoconvert.conversion import archive, errors, models

logger = logging.getLogger(__name__)

SNIFF_BYTES = 2048

ARCHIVE_MEDIA_TYPES = frozenset({"application/zip", "application/x-zip-compressed"})
TEXT_MEDIA_TYPES = frozenset({"application/json", "application/geo+json"})
_UNDETERMINED_MEDIA_TYPES = frozenset({"application/x-empty", "inode/x-empty"})

_WHITESPACE = re.compile(r"\s+")


def sniff_media_type(head: bytes) -> str | None:
    """Determine the media type of a payload from its leading bytes.

    Returns:
        The MIME type reported by libmagic, or None when the payload is
        empty or libmagic cannot tell what it is.
    """
    if not head:
        return None
    import magic

    media_type = magic.from_buffer(head, mime=True)
    if not media_type or media_type in _UNDETERMINED_MEDIA_TYPES:
        return None
    return media_type


def normalize_filename(name: str) -> str:
    """Make a filename safe to use as an instruction token and a path."""
    return _WHITESPACE.sub("_", name.strip().replace("\\", "/")).lower()


def _read_head(source: bytes | BinaryIO) -> bytes:
    if isinstance(source, bytes | bytearray):
        return bytes(source[:SNIFF_BYTES])
    head = source.read(SNIFF_BYTES)
    source.seek(0)
    return head


def _read_all(source: bytes | BinaryIO) -> bytes:
    if isinstance(source, bytes | bytearray):
        return bytes(source)
    return source.read()


def _as_content(data: bytes, media_type: str) -> models.FileContent:
    if media_type.startswith("text/") or media_type in TEXT_MEDIA_TYPES:
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            return data
    return data


def classify(source: bytes | BinaryIO, filename: str) -> models.VirtualFileSet:
    """Turn an upload into a normalized virtual file set.

    Args:
        source: Raw upload bytes or a seekable binary file object.
        filename: Client-supplied name, used only to key a non-archive upload.

    Returns:
        Mapping from normalized filename to content.

    Raises:
        UnknownMediaTypeError: If sniffing cannot determine the media type.
        ArchiveCorruptError: If the upload sniffs as an archive but cannot
            be read.
    """
    media_type = sniff_media_type(_read_head(source))
    if media_type is None:
        raise errors.UnknownMediaTypeError(
            "Uploaded file has an unknown / undetectable mime type."
        )
    logger.debug("Upload %r sniffed as %s", filename, media_type)

    if media_type in ARCHIVE_MEDIA_TYPES:
        entries = archive.read_archive(source)
        return {normalize_filename(name): content for name, content in entries.items()}

    return {normalize_filename(filename): _as_content(_read_all(source), media_type)}
