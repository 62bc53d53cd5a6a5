"""Data models shared by the conversion pipeline stages.

A conversion never outlives its request: the request, the virtual file sets
built from it and the result are all created and dropped inside a single
call to ``pipeline.convert``.

Example:
    Describe a request converting an uploaded archive to GeoJSON:
        >>> from geoconvert.conversion.models import (
        ...     ConversionOption, ConversionRequest, OptionKey,
        ... )
        >>> request = ConversionRequest(
        ...     source=zip_bytes,
        ...     source_filename="parcels.zip",
        ...     target_format="geojson",
        ...     options=[ConversionOption(OptionKey.PROJ, "wgs84")],
        ... )
"""

from __future__ import annotations

import dataclasses
import enum
import urllib.parse
from typing import BinaryIO

FileContent = bytes | str
VirtualFileSet = dict[str, FileContent]

DEFAULT_DOWNLOAD_STEM = "output"


class OptionKey(enum.StrEnum):
    """Engine commands a client may attach to a conversion.

    Each member renders as ``-<value> <argument>`` in the instruction.
    """

    PROJ = "proj"
    SIMPLIFY = "simplify"
    FILTER_FIELDS = "filter-fields"
    RENAME_FIELDS = "rename-fields"
    DISSOLVE = "dissolve"
    SPLIT = "split"


@dataclasses.dataclass(frozen=True)
class ConversionOption:
    key: OptionKey
    value: str


@dataclasses.dataclass(frozen=True)
class FormatDescriptor:
    """Static description of one supported conversion target.

    Attributes:
        key: Format key clients request (e.g. "geojson").
        input_extension: File extension the format uses when uploaded.
        output_extension: Extension of the file the engine is asked to write.
        input_mime: Media type of the format as an upload.
        output_mime: Media type of a single engine output file.
        bundle_extension: Extension of the archive returned for formats whose
            canonical output is several component files.
        bundle_mime: Media type of that archive.
    """

    key: str
    input_extension: str
    output_extension: str
    input_mime: str
    output_mime: str
    bundle_extension: str | None = None
    bundle_mime: str | None = None

    @property
    def is_bundle(self) -> bool:
        return self.bundle_mime is not None


@dataclasses.dataclass
class ConversionRequest:
    source: bytes | BinaryIO
    source_filename: str
    target_format: str
    options: list[ConversionOption] = dataclasses.field(default_factory=list)


@dataclasses.dataclass(frozen=True)
class ConversionResult:
    """Converted payload plus what a response needs to describe it."""

    content: bytes
    content_type: str
    filename: str

    @property
    def content_length(self) -> int:
        return len(self.content)

    @property
    def content_disposition(self) -> str:
        """Attachment header value, safe to encode as latin-1.

        Names that are not plain ASCII get an ASCII ``filename`` fallback
        plus an RFC 5987 ``filename*`` parameter carrying the UTF-8 name.
        """
        encoded = urllib.parse.quote(self.filename, safe="")
        if encoded == self.filename:
            return f'attachment; filename="{self.filename}"'
        return (
            f'attachment; filename="{self.ascii_filename}"; '
            f"filename*=UTF-8''{encoded}"
        )

    @property
    def ascii_filename(self) -> str:
        """Printable-ASCII rendering of the filename without quotes."""
        kept = "".join(
            char
            for char in self.filename
            if " " <= char <= "~" and char not in '"\\'
        )
        if not kept or kept.startswith("."):
            kept = f"{DEFAULT_DOWNLOAD_STEM}{kept}"
        return kept
