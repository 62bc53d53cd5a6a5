"""Request-scoped temporary files.

Each temporary path is named with a fresh random token, so concurrent
requests sharing one storage directory never touch each other's files. The
path is removed when the context exits, whether the body succeeded or
raised.

Example:
    Round-trip bytes through a private temporary file:
        >>> with request_scoped_path(settings.storage_dir, ".zip") as path:
        ...     path.write_bytes(payload)
        ...     data = path.read_bytes()
"""

from __future__ import annotations

import contextlib
import logging
import secrets
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

TOKEN_BYTES = 16


def new_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


@contextlib.contextmanager
def request_scoped_path(
    directory: pathlib.Path,
    suffix: str = "",
) -> Iterator[pathlib.Path]:
    """Yield a unique, not yet created path inside ``directory``.

    Whatever the body writes at the path is deleted on exit.

    Args:
        directory: Parent directory, created if missing.
        suffix: Extension appended to the random name (e.g. ".zip").

    Yields:
        Path of the form ``<directory>/<random token><suffix>``.
    """
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{new_token()}{suffix}"
    logger.debug("Acquired temporary path %s", path)
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)
        logger.debug("Released temporary path %s", path)
