"""Turns the engine's output file set into one response payload.

A single output of an ordinary format is returned byte for byte with the
format's own media type. Several outputs, or any output of a bundle-output
format such as shapefile, are zipped: the archive is built in memory,
written to a request-scoped temporary file and read back from it, and the
result carries the archive media type and extension.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from geoconvert.conversion import archive, errors, formats, models, tempfiles

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Mapping

logger = logging.getLogger(__name__)


def _as_bytes(content: models.FileContent) -> bytes:
    return content.encode("utf-8") if isinstance(content, str) else content


def bundle(
    outputs: Mapping[str, models.FileContent],
    storage_dir: pathlib.Path,
) -> bytes:
    """Zip the output set through a request-scoped temporary file.

    Raises:
        AssemblyError: If writing the archive or the temp-file round-trip
            fails.
    """
    try:
        payload = archive.write_archive(outputs)
        with tempfiles.request_scoped_path(storage_dir, suffix=".zip") as path:
            path.write_bytes(payload)
            return path.read_bytes()
    except (OSError, ValueError) as exc:
        logger.warning("Bundling %d outputs failed: %s", len(outputs), exc)
        raise errors.AssemblyError(f"Could not bundle conversion output: {exc}") from exc


def assemble(
    outputs: Mapping[str, models.FileContent],
    descriptor: models.FormatDescriptor,
    storage_dir: pathlib.Path,
    stem: str = "output",
) -> models.ConversionResult:
    """Build the conversion result for an engine output set.

    Args:
        outputs: Files produced by the engine.
        descriptor: Requested target format.
        storage_dir: Directory for the temporary bundle file.
        stem: Base name for the suggested download filename.

    Returns:
        ConversionResult with content, media type and filename.

    Raises:
        AssemblyError: If there is nothing to assemble or bundling fails.
    """
    if not outputs:
        raise errors.AssemblyError("Conversion produced no output files")

    if len(outputs) == 1 and not descriptor.is_bundle:
        (content,) = outputs.values()
        return models.ConversionResult(
            content=_as_bytes(content),
            content_type=descriptor.output_mime,
            filename=f"{stem}.{descriptor.output_extension}",
        )

    logger.debug("Bundling %d output files for %s", len(outputs), descriptor.key)
    return models.ConversionResult(
        content=bundle(outputs, storage_dir),
        content_type=descriptor.bundle_mime or formats.ZIP_MIME,
        filename=f"{stem}.{descriptor.bundle_extension or 'zip'}",
    )
