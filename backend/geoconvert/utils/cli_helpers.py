"""Safe execution wrapper for the conversion engine command-line tool.

This module provides a safe interface for executing the mapshaper CLI (or
any other command-line tool) as a subprocess. It handles error checking and
provides clear error messages when commands fail or run past their time
limit.

All commands are executed with proper error handling, and non-zero exit codes
result in CommandError exceptions with the command's stderr output.

Example:
    Convert a shapefile bundle inside a working directory:
        >>> from geoconvert.utils.cli_helpers import run_command, CommandError

        >>> try:
        ...     run_command(
        ...         ["mapshaper", "-i", "a.prj", "a.dbf", "a.shp",
        ...          "-o", "output.geojson"],
        ...         workdir=pathlib.Path("/tmp/work"),
        ...         timeout=60,
        ...     )
        ... except CommandError as e:
        ...     print(f"Command failed: {e}")
"""

from __future__ import annotations

import logging
import subprocess
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


class CommandError(RuntimeError):
    """Exception raised when a subprocess command fails.

    Contains the error message from the failed command's stderr output, or a
    description of why the command could not run to completion (missing
    executable, timeout).
    """


def run_command(
    command: Iterable[str | pathlib.Path],
    workdir: pathlib.Path | None = None,
    timeout: float | None = None,
) -> str:
    """Execute a command and raise on non-zero exit.

    Args:
        command: Iterable arguments to execute (e.g., ["mapshaper", "-i", ...]).
        workdir: Optional working directory for the command execution.
        timeout: Optional limit in seconds; the process is killed past it.

    Returns:
        The command's stdout.

    Raises:
        CommandError: if the command exits with a non-zero status code,
            cannot be started, or exceeds the timeout. The exception message
            contains the stderr output from the command when available.
    """
    args = [str(part) for part in command]
    logger.debug("Running %s in %s", args, workdir)
    try:
        result = subprocess.run(
            args,
            cwd=workdir,
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
        )
    except FileNotFoundError as exc:
        raise CommandError(f"Executable not found: {args[0]}") from exc
    except subprocess.TimeoutExpired as exc:
        raise CommandError(f"Command timed out after {timeout} seconds") from exc
    if result.returncode != 0:
        raise CommandError(result.stderr.strip() or "Unknown command failure")
    return result.stdout
