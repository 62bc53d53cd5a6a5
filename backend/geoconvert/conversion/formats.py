"""Static table of supported conversion targets.

The table is built once at import and exposed read-only. Shapefile is the
only bundle-output format: the engine writes .shp/.shx/.dbf/.prj siblings
and the service always returns them zipped.
"""

from __future__ import annotations

import types
from typing import TYPE_CHECKING

from geoconvert.conversion import errors, models

if TYPE_CHECKING:
    from collections.abc import Mapping

ZIP_MIME = "application/zip"

_DESCRIPTORS = (
    models.FormatDescriptor(
        key="geojson",
        input_extension="geojson",
        output_extension="geojson",
        input_mime="application/geo+json",
        output_mime="application/json",
    ),
    models.FormatDescriptor(
        key="topojson",
        input_extension="topojson",
        output_extension="topojson",
        input_mime="application/json",
        output_mime="application/json",
    ),
    models.FormatDescriptor(
        key="shapefile",
        input_extension="shp",
        output_extension="shp",
        input_mime="application/x-esri-shape",
        output_mime="application/x-esri-shape",
        bundle_extension="zip",
        bundle_mime=ZIP_MIME,
    ),
    models.FormatDescriptor(
        key="json",
        input_extension="json",
        output_extension="json",
        input_mime="application/json",
        output_mime="application/json",
    ),
    models.FormatDescriptor(
        key="csv",
        input_extension="csv",
        output_extension="csv",
        input_mime="text/csv",
        output_mime="text/csv",
    ),
    models.FormatDescriptor(
        key="tsv",
        input_extension="tsv",
        output_extension="tsv",
        input_mime="text/tab-separated-values",
        output_mime="text/tab-separated-values",
    ),
    models.FormatDescriptor(
        key="dbf",
        input_extension="dbf",
        output_extension="dbf",
        input_mime="application/x-dbf",
        output_mime="application/x-dbf",
    ),
    models.FormatDescriptor(
        key="kml",
        input_extension="kml",
        output_extension="kml",
        input_mime="application/vnd.google-earth.kml+xml",
        output_mime="application/vnd.google-earth.kml+xml",
    ),
    models.FormatDescriptor(
        key="svg",
        input_extension="svg",
        output_extension="svg",
        input_mime="image/svg+xml",
        output_mime="image/svg+xml",
    ),
)

FORMATS: Mapping[str, models.FormatDescriptor] = types.MappingProxyType(
    {descriptor.key: descriptor for descriptor in _DESCRIPTORS}
)


def get_format(key: str) -> models.FormatDescriptor:
    """Look up the descriptor for a format key.

    Raises:
        ValidationError: If the key is not a supported target format.
    """
    try:
        return FORMATS[key.lower()]
    except KeyError:
        supported = ", ".join(sorted(FORMATS))
        raise errors.ValidationError(
            f"Unsupported target format '{key}'. Expected one of: {supported}"
        ) from None
