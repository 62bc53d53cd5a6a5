"""Boundary to the external geometry-transformation engine.

The engine takes an instruction and a virtual file set and hands back the
files it wrote. The production engine is the mapshaper command-line tool:
the file set is written into a private input directory, the CLI runs
there, and every file it writes to a separate output directory is returned.

Engine failures are never interpreted here. ``invoke`` wraps whatever the
engine raises in TransformationError, keeping the engine's own message.
"""

from __future__ import annotations

import logging
import pathlib
import tempfile
from typing import TYPE_CHECKING, Protocol

from geoconvert.conversion import errors
from geoconvert.utils import cli_helpers

if TYPE_CHECKING:
    from collections.abc import Mapping

    from geoconvert.conversion import commands, models
    from geoconvert.core import config

logger = logging.getLogger(__name__)


class EngineProtocol(Protocol):
    """Protocol interface for geometry-transformation engines."""

    def apply(
        self,
        instruction: commands.Instruction,
        files: Mapping[str, models.FileContent],
    ) -> dict[str, bytes]: ...


class MapshaperEngine(EngineProtocol):
    """Runs instructions through the mapshaper CLI in a scratch directory."""

    def __init__(self, settings: config.Settings) -> None:
        self.settings = settings

    def _materialize(
        self,
        workdir: pathlib.Path,
        files: Mapping[str, models.FileContent],
    ) -> None:
        root = workdir.resolve()
        for name, content in files.items():
            target = (workdir / name).resolve()
            if not target.is_relative_to(root):
                raise cli_helpers.CommandError(
                    f"Input path escapes working directory: {name}"
                )
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, str):
                target.write_text(content, encoding="utf-8")
            else:
                target.write_bytes(content)

    def apply(
        self,
        instruction: commands.Instruction,
        files: Mapping[str, models.FileContent],
    ) -> dict[str, bytes]:
        """Run one instruction and collect the files it produced.

        Inputs are written under ``input/`` and the CLI runs there, while
        the output designator is redirected into a sibling ``output/``
        directory, so an input can share the output's name.

        Args:
            instruction: Instruction to pass to the CLI.
            files: Input files, written under their names before the run.

        Returns:
            Mapping from output path (relative to the output directory)
            to content.

        Raises:
            CommandError: If the CLI fails, times out or cannot be found.
        """
        self.settings.storage_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(
            prefix="engine-", dir=self.settings.storage_dir
        ) as tmp:
            input_dir = pathlib.Path(tmp) / "input"
            output_dir = pathlib.Path(tmp) / "output"
            input_dir.mkdir()
            output_dir.mkdir()
            self._materialize(input_dir, files)
            redirected = instruction.with_output(output_dir / instruction.output)
            cli_helpers.run_command(
                [*self.settings.mapshaper_command, *redirected.tokens()],
                workdir=input_dir,
                timeout=self.settings.engine_timeout_seconds,
            )
            return {
                path.relative_to(output_dir).as_posix(): path.read_bytes()
                for path in sorted(output_dir.rglob("*"))
                if path.is_file()
            }


def get_engine(settings: config.Settings) -> EngineProtocol:
    """Return the production engine for the given settings."""
    return MapshaperEngine(settings)


def invoke(
    engine: EngineProtocol,
    instruction: commands.Instruction,
    files: Mapping[str, models.FileContent],
) -> dict[str, bytes]:
    """Pass an instruction and file set to the engine, unmodified.

    Raises:
        TransformationError: If the engine fails for any reason or writes
            no output. The message is the engine's own diagnostic.
    """
    logger.debug("Invoking engine: %s", instruction)
    try:
        outputs = engine.apply(instruction, files)
    except Exception as exc:
        logger.warning("Engine failed on '%s': %s", instruction, exc)
        raise errors.TransformationError(str(exc) or type(exc).__name__) from exc
    if not outputs:
        raise errors.TransformationError(
            f"Engine produced no output for '{instruction}'"
        )
    return outputs
