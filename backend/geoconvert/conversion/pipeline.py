"""Conversion orchestration.

``convert`` runs one request through every stage:

    classify -> select/order -> build instruction -> invoke engine -> assemble

Each call is independent; the only shared resource is the storage directory,
in which every artifact has a request-unique name. Blocking stages run in
worker threads so concurrent requests do not stall the event loop. Every
failure is terminal for the request and there are no retries.

Example:
    Convert an uploaded archive to GeoJSON:
        >>> result = await convert(
        ...     models.ConversionRequest(
        ...         source=zip_bytes,
        ...         source_filename="parcels.zip",
        ...         target_format="geojson",
        ...     ),
        ...     engine.get_engine(settings),
        ...     settings,
        ... )
        >>> result.content_type
        'application/json'
"""

from __future__ import annotations

import asyncio
import logging
import pathlib
from typing import TYPE_CHECKING

from geoconvert.conversion import (
    assembler,
    classifier,
    commands,
    engine,
    formats,
    models,
    selector,
)

if TYPE_CHECKING:
    from geoconvert.core import config

logger = logging.getLogger(__name__)


def download_stem(source_filename: str) -> str:
    """Base name for the converted download, derived from the upload name."""
    stem = pathlib.PurePosixPath(classifier.normalize_filename(source_filename)).stem
    return stem or commands.DEFAULT_OUTPUT_STEM


async def convert(
    request: models.ConversionRequest,
    conversion_engine: engine.EngineProtocol,
    settings: config.Settings,
) -> models.ConversionResult:
    """Convert one uploaded dataset to the requested format.

    Args:
        request: Upload payload, filename, target format and options.
        conversion_engine: Engine the instruction is sent to.
        settings: Settings supplying the storage directory.

    Returns:
        The converted payload with media type and download filename.

    Raises:
        ValidationError: Unknown target format, invalid options or no
            convertible files in the upload.
        UnknownMediaTypeError: The upload's type cannot be determined.
        ArchiveCorruptError: The upload is an unreadable archive.
        TransformationError: The engine failed.
        AssemblyError: The output could not be bundled.
    """
    descriptor = formats.get_format(request.target_format)
    options = commands.validate_options(request.options)

    files = await asyncio.to_thread(
        classifier.classify, request.source, request.source_filename
    )
    inputs = selector.select_inputs(files)
    instruction = commands.build_instruction(descriptor, inputs, options)
    logger.info(
        "Converting %s to %s (%d input files)",
        request.source_filename,
        descriptor.key,
        len(inputs),
    )

    outputs = await asyncio.to_thread(
        engine.invoke,
        conversion_engine,
        instruction,
        selector.ordered_file_set(files, inputs),
    )
    return await asyncio.to_thread(
        assembler.assemble,
        outputs,
        descriptor,
        settings.storage_dir,
        download_stem(request.source_filename),
    )
