"""Selection and ordering of engine input files.

The engine pairs shapefile components by the order they are declared in, so
the projection sidecar must come first, the attribute table second and the
geometry file third. Other recognized formats follow the ranked components
in the order they appeared in the upload.

Entries with unrecognized extensions and operating-system metadata entries
are dropped without error.
"""

from __future__ import annotations

import logging
import pathlib
from typing import TYPE_CHECKING

from geoconvert.conversion import models

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)

COMPONENT_RANKS: Mapping[str, int] = {
    "prj": 0,
    "dbf": 1,
    "shp": 2,
}

PASS_THROUGH_EXTENSIONS = frozenset(
    {
        "geojson",
        "json",
        "topojson",
        "csv",
        "tsv",
        "kml",
        "kmz",
    }
)

_UNRANKED = len(COMPONENT_RANKS)


def extension_of(name: str) -> str:
    return pathlib.PurePosixPath(name).suffix.lstrip(".").lower()


def _is_metadata_entry(name: str) -> bool:
    path = pathlib.PurePosixPath(name)
    parts = {part.lower() for part in path.parts}
    return "__macosx" in parts or path.name.startswith("._")


def is_recognized(name: str) -> bool:
    if _is_metadata_entry(name):
        return False
    extension = extension_of(name)
    return extension in COMPONENT_RANKS or extension in PASS_THROUGH_EXTENSIONS


def rank(name: str) -> int:
    """Position class of a file in the engine's input declaration."""
    return COMPONENT_RANKS.get(extension_of(name), _UNRANKED)


def select_inputs(files: Iterable[str]) -> list[str]:
    """Pick recognized input files and put them in engine declaration order.

    Args:
        files: Names of a virtual file set, in upload order.

    Returns:
        Recognized names ordered projection, attributes, geometry, then
        everything else in upload order.
    """
    names = list(files)
    selected = [name for name in names if is_recognized(name)]
    dropped = len(names) - len(selected)
    if dropped:
        logger.debug("Ignoring %d unrecognized upload entries", dropped)
    # sorted() is stable, so equal ranks keep upload order
    return sorted(selected, key=rank)


def ordered_file_set(
    files: Mapping[str, models.FileContent],
    names: Iterable[str],
) -> models.VirtualFileSet:
    return {name: files[name] for name in names}
