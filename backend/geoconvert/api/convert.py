"""File conversion API endpoints.

This module provides REST API endpoints that accept a geospatial upload
(a single file or a zip archive of shapefile components), convert it with
the configured engine, and stream the result back as an attachment. Uploads
are spooled to a request-scoped temporary file with size validation and
removed as soon as the request finishes.

Failures are raised as ConversionError subclasses and rendered by the
application's exception handler as ``{"error": {"type", "message"}}``.

Example:
    Convert a zipped shapefile to GeoJSON:
        >>> response = client.post(
        ...     "/api/convert",
        ...     files={"file": ("parcels.zip", open("parcels.zip", "rb"))},
        ...     data={"target_format": "geojson",
        ...           "options": '{"proj": "wgs84"}'},
        ... )
        >>> response.headers["content-type"]
        'application/json'

    Convert to a shapefile bundle:
        >>> response = client.post(
        ...     "/api/convert",
        ...     files={"file": ("parcels.geojson", open("parcels.geojson", "rb"))},
        ...     data={"target_format": "shapefile"},
        ... )
        >>> response.headers["content-disposition"]
        'attachment; filename="parcels.zip"'
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import fastapi
import pydantic

from geoconvert.conversion import (
    engine,
    errors,
    formats,
    models,
    pipeline,
    tempfiles,
)
from geoconvert.core import config

if TYPE_CHECKING:
    import pathlib

logger = logging.getLogger(__name__)

router = fastapi.APIRouter(prefix="/api", tags=["convert"])
legacy_router = fastapi.APIRouter(tags=["legacy"])

_OPTIONS_ADAPTER = pydantic.TypeAdapter(dict[models.OptionKey, str])


def _get_engine(
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> engine.EngineProtocol:
    """Resolve the conversion engine dependency.

    Args:
        settings: Application settings (injected via FastAPI Depends).

    Returns:
        EngineProtocol implementation (MapshaperEngine in production).
    """
    return engine.get_engine(settings)


def _parse_options(raw: str | None) -> list[models.ConversionOption]:
    """Parse the JSON options form field into conversion options.

    Args:
        raw: JSON object mapping option keys to values, or None.

    Returns:
        Options in the order they were given.

    Raises:
        ValidationError: If the field is not a JSON object of known option
            keys to string values.
    """
    if not raw:
        return []
    try:
        parsed = _OPTIONS_ADAPTER.validate_json(raw)
    except pydantic.ValidationError as exc:
        allowed = ", ".join(key.value for key in models.OptionKey)
        raise errors.ValidationError(
            f"Invalid options; expected a JSON object with keys from: {allowed}"
        ) from exc
    return [models.ConversionOption(key, value) for key, value in parsed.items()]


def _spool_upload(
    file: fastapi.UploadFile,
    target_path: pathlib.Path,
    max_size: int,
) -> None:
    """Copy an uploaded file to disk with size validation.

    Args:
        file: FastAPI UploadFile object containing the file data.
        target_path: Request-scoped path to write to.
        max_size: Maximum allowed file size in bytes.

    Raises:
        UploadTooLargeError: If the file exceeds the maximum size limit.
    """
    size = 0
    with target_path.open("wb") as target:
        for chunk in iter(lambda: file.file.read(1024 * 1024), b""):
            size += len(chunk)
            if size > max_size:
                raise errors.UploadTooLargeError(
                    f"Upload exceeds the {max_size} byte limit"
                )

            target.write(chunk)


def _to_response(result: models.ConversionResult) -> fastapi.Response:
    return fastapi.Response(
        content=result.content,
        media_type=result.content_type,
        headers={"Content-Disposition": result.content_disposition},
    )


async def _convert_upload(
    file: fastapi.UploadFile,
    target_format: str,
    options: list[models.ConversionOption],
    settings: config.Settings,
    conversion_engine: engine.EngineProtocol,
) -> models.ConversionResult:
    filename = file.filename or ""
    with tempfiles.request_scoped_path(
        settings.storage_dir, suffix=".upload"
    ) as upload_path:
        await asyncio.to_thread(
            _spool_upload, file, upload_path, settings.max_upload_size_bytes
        )
        with upload_path.open("rb") as source:
            return await pipeline.convert(
                models.ConversionRequest(
                    source=source,
                    source_filename=filename,
                    target_format=target_format,
                    options=options,
                ),
                conversion_engine,
                settings,
            )


@router.post("/convert")
async def convert_file(
    file: fastapi.UploadFile,
    target_format: str | None = fastapi.Form(None),  # noqa: B008
    options: str | None = fastapi.Form(None),  # noqa: B008
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    conversion_engine: engine.EngineProtocol = fastapi.Depends(_get_engine),  # noqa: B008
) -> fastapi.Response:
    """Convert an uploaded dataset to the requested format.

    The upload's type is sniffed from its content. Zip archives are
    expanded and their shapefile components ordered for the engine; any
    other upload is converted as a single file.

    Args:
        file: Uploaded file from multipart form data.
        target_format: Format key from GET /api/formats; defaults to the
            configured default format.
        options: Optional JSON object of engine options, e.g.
            ``{"proj": "wgs84", "simplify": "10%"}``.
        settings: Application settings (injected via FastAPI Depends).
        conversion_engine: Engine (injected via FastAPI Depends).

    Returns:
        The converted file as an attachment. Multi-file outputs and
        shapefile outputs are returned as a zip archive.

    Raises:
        ConversionError: Any pipeline failure, an oversized upload
            included, rendered as a structured error payload.
    """
    result = await _convert_upload(
        file,
        target_format or settings.default_target_format,
        _parse_options(options),
        settings,
        conversion_engine,
    )
    return _to_response(result)


@router.get("/formats")
async def list_formats() -> dict[str, Any]:
    """List supported target formats and allowed option keys."""
    return {
        "formats": [
            {
                "key": descriptor.key,
                "input_extension": descriptor.input_extension,
                "output_extension": descriptor.output_extension,
                "output_mime": descriptor.output_mime,
                "bundle": descriptor.is_bundle,
            }
            for descriptor in formats.FORMATS.values()
        ],
        "options": [key.value for key in models.OptionKey],
    }


@legacy_router.post("/shp-to-geojson")
async def shp_to_geojson(
    shp_file: fastapi.UploadFile,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    conversion_engine: engine.EngineProtocol = fastapi.Depends(_get_engine),  # noqa: B008
) -> fastapi.Response:
    """Convert a shapefile upload to GeoJSON with no options.

    Kept for clients of the original single-purpose endpoint, which posts
    the upload in the ``shp_file`` form field.
    """
    result = await _convert_upload(
        shp_file, "geojson", [], settings, conversion_engine
    )
    return _to_response(result)
