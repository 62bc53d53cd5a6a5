"""Tests for the async conversion pipeline in geoconvert.conversion.pipeline.

A fake engine implementing EngineProtocol records every call, so tests can
check both what reached the engine and that failures short-circuit before
it. Content sniffing is replaced by a prefix check to keep results
independent of the host's libmagic database.
"""

from __future__ import annotations

import asyncio
import collections
import contextlib
import io
import pathlib
import threading
import zipfile
from typing import TYPE_CHECKING, Any

import pytest

from geoconvert.conversion import (
    classifier,
    commands,
    errors,
    formats,
    models,
    pipeline,
    tempfiles,
)
from geoconvert.core import config

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

GEOJSON = b'{"type":"FeatureCollection","features":[]}'
SHAPEFILE_OUTPUTS = {
    "output.shp": b"\x00\x00\x27\x0a shp",
    "output.shx": b"\x00\x00\x27\x0a shx",
    "output.dbf": b"\x03 dbf",
    "output.prj": b'GEOGCS["WGS 84"]',
}


class FakeEngine:
    """Engine double returning canned outputs and counting calls."""

    def __init__(
        self,
        outputs: Mapping[str, bytes],
        barrier: threading.Barrier | None = None,
    ) -> None:
        self.outputs = dict(outputs)
        self.barrier = barrier
        self.calls: list[tuple[commands.Instruction, dict[str, Any]]] = []

    def apply(
        self,
        instruction: commands.Instruction,
        files: Mapping[str, Any],
    ) -> dict[str, bytes]:
        self.calls.append((instruction, dict(files)))
        if self.barrier is not None:
            self.barrier.wait(timeout=5)
        return dict(self.outputs)


def _fake_sniff(head: bytes) -> str | None:
    if head.startswith(b"PK"):
        return "application/zip"
    if head.startswith(b"{"):
        return "application/json"
    return None


def _zip(entries: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def _parcel_zip() -> bytes:
    return _zip(
        {
            "parcel.shp": b"\x00\x00\x27\x0a geometry",
            "parcel.prj": b'GEOGCS["WGS 84"]',
            "parcel.dbf": b"\x03 attributes",
        }
    )


def _settings(tmp_path: pathlib.Path) -> config.Settings:
    settings = config.Settings(storage_dir=tmp_path / "work")
    settings.ensure_directories()
    return settings


def _request(
    source: bytes,
    filename: str = "parcel.zip",
    target_format: str = "geojson",
    options: list[models.ConversionOption] | None = None,
) -> models.ConversionRequest:
    return models.ConversionRequest(
        source=source,
        source_filename=filename,
        target_format=target_format,
        options=options or [],
    )


@pytest.fixture(autouse=True)
def _sniffer(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(classifier, "sniff_media_type", _fake_sniff)


def test_parcel_zip_to_geojson(tmp_path: pathlib.Path) -> None:
    engine = FakeEngine({"output.geojson": GEOJSON})
    result = asyncio.run(
        pipeline.convert(_request(_parcel_zip()), engine, _settings(tmp_path))
    )

    assert result.content == GEOJSON
    assert result.content_type == "application/json"
    assert result.filename == "parcel.geojson"
    (instruction, files), = engine.calls
    assert instruction.tokens() == [
        "-i",
        "parcel.prj",
        "parcel.dbf",
        "parcel.shp",
        "-o",
        "output.geojson",
    ]
    assert list(files) == ["parcel.prj", "parcel.dbf", "parcel.shp"]


def test_parcel_zip_to_shapefile_bundle(tmp_path: pathlib.Path) -> None:
    engine = FakeEngine(SHAPEFILE_OUTPUTS)
    settings = _settings(tmp_path)
    result = asyncio.run(
        pipeline.convert(
            _request(_parcel_zip(), target_format="shapefile"), engine, settings
        )
    )

    assert result.content_type == formats.ZIP_MIME
    assert result.filename == "parcel.zip"
    assert result.content_disposition.endswith('.zip"')
    with zipfile.ZipFile(io.BytesIO(result.content)) as zf:
        assert {name: zf.read(name) for name in zf.namelist()} == SHAPEFILE_OUTPUTS
    assert list(settings.storage_dir.iterdir()) == []


def test_options_reach_engine_before_output(tmp_path: pathlib.Path) -> None:
    engine = FakeEngine({"output.geojson": GEOJSON})
    options = [
        models.ConversionOption(models.OptionKey.PROJ, "wgs84"),
        models.ConversionOption(models.OptionKey.SIMPLIFY, "15%"),
    ]
    asyncio.run(
        pipeline.convert(
            _request(_parcel_zip(), options=options), engine, _settings(tmp_path)
        )
    )
    (instruction, _), = engine.calls
    assert str(instruction) == (
        "-i parcel.prj parcel.dbf parcel.shp -proj wgs84 -simplify 15% "
        "-o output.geojson"
    )


def test_single_file_upload_keyed_by_filename(tmp_path: pathlib.Path) -> None:
    engine = FakeEngine({"output.topojson": b"{}"})
    result = asyncio.run(
        pipeline.convert(
            _request(GEOJSON, filename="Town Roads.GeoJSON", target_format="topojson"),
            engine,
            _settings(tmp_path),
        )
    )
    (instruction, files), = engine.calls
    assert instruction.inputs == ("town_roads.geojson",)
    assert files == {"town_roads.geojson": GEOJSON.decode("utf-8")}
    assert result.filename == "town_roads.topojson"


def test_unknown_media_type_skips_engine(tmp_path: pathlib.Path) -> None:
    engine = FakeEngine({"output.geojson": GEOJSON})
    with pytest.raises(errors.UnknownMediaTypeError):
        asyncio.run(
            pipeline.convert(_request(b"\x13\x37"), engine, _settings(tmp_path))
        )
    assert engine.calls == []


def test_corrupt_archive_skips_engine(tmp_path: pathlib.Path) -> None:
    engine = FakeEngine({"output.geojson": GEOJSON})
    with pytest.raises(errors.ArchiveCorruptError):
        asyncio.run(
            pipeline.convert(
                _request(b"PK\x03\x04 truncated"), engine, _settings(tmp_path)
            )
        )
    assert engine.calls == []


def test_invalid_option_skips_engine(tmp_path: pathlib.Path) -> None:
    engine = FakeEngine({"output.geojson": GEOJSON})
    bad = models.ConversionOption("o", "x.json")  # type: ignore[arg-type]
    with pytest.raises(errors.ValidationError):
        asyncio.run(
            pipeline.convert(
                _request(_parcel_zip(), options=[bad]), engine, _settings(tmp_path)
            )
        )
    assert engine.calls == []


def test_archive_without_inputs_rejected(tmp_path: pathlib.Path) -> None:
    engine = FakeEngine({"output.geojson": GEOJSON})
    upload = _zip({"readme.txt": b"hi", "__MACOSX/._parcel.shp": b""})
    with pytest.raises(errors.ValidationError):
        asyncio.run(pipeline.convert(_request(upload), engine, _settings(tmp_path)))
    assert engine.calls == []


def test_engine_failure_surfaces(tmp_path: pathlib.Path) -> None:
    class BrokenEngine:
        def apply(self, instruction: Any, files: Any) -> dict[str, bytes]:
            raise RuntimeError("Error: Unable to import parcel.prj")

    with pytest.raises(errors.TransformationError, match="Unable to import"):
        asyncio.run(
            pipeline.convert(
                _request(_parcel_zip()), BrokenEngine(), _settings(tmp_path)
            )
        )


def test_concurrent_bundles_use_private_temp_files(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    """Two overlapping bundle conversions never share a temporary file."""
    settings = _settings(tmp_path)
    acquired: list[pathlib.Path] = []
    unlinked: collections.Counter[pathlib.Path] = collections.Counter()
    original_scope = tempfiles.request_scoped_path
    original_unlink = pathlib.Path.unlink

    @contextlib.contextmanager
    def recording_scope(
        directory: pathlib.Path, suffix: str = ""
    ) -> Iterator[pathlib.Path]:
        with original_scope(directory, suffix) as path:
            acquired.append(path)
            yield path

    def counting_unlink(self: pathlib.Path, missing_ok: bool = False) -> None:
        unlinked[self] += 1
        original_unlink(self, missing_ok=missing_ok)

    monkeypatch.setattr(tempfiles, "request_scoped_path", recording_scope)
    monkeypatch.setattr(pathlib.Path, "unlink", counting_unlink)

    barrier = threading.Barrier(2)
    first = FakeEngine({"a.shp": b"first-shp", "a.dbf": b"first-dbf"}, barrier)
    second = FakeEngine({"a.shp": b"second-shp", "a.dbf": b"second-dbf"}, barrier)

    async def run_both() -> list[models.ConversionResult]:
        return await asyncio.gather(
            pipeline.convert(
                _request(_parcel_zip(), target_format="shapefile"), first, settings
            ),
            pipeline.convert(
                _request(_parcel_zip(), target_format="shapefile"), second, settings
            ),
        )

    results = asyncio.run(run_both())

    assert len(acquired) == 2
    assert acquired[0] != acquired[1]
    for path in acquired:
        assert unlinked[path] == 1
        assert not path.exists()
    for result, expected in zip(results, (first, second), strict=True):
        with zipfile.ZipFile(io.BytesIO(result.content)) as zf:
            assert zf.read("a.shp") == expected.outputs["a.shp"]
            assert zf.read("a.dbf") == expected.outputs["a.dbf"]
