"""Application settings and configuration management.

This module provides Pydantic-based settings management that loads
configuration from environment variables or a .env file. Settings include
the working directory for request-scoped temporary artifacts, the command
used to reach the conversion engine, CORS origins, and upload size limits.

Example:
    Settings can be accessed via the cached get_settings() function:
        >>> from geoconvert.core.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.mapshaper_command)

    Environment variables can override defaults:
        >>> STORAGE_DIR=/custom/path/work
        >>> MAX_UPLOAD_SIZE_BYTES=1073741824
        >>> ENGINE_TIMEOUT_SECONDS=600
"""

import functools
import pathlib

import pydantic_settings


class Settings(pydantic_settings.BaseSettings):
    """Runtime configuration pulled from environment variables or defaults.

    All settings can be overridden via environment variables or .env file.
    The storage directory is created on demand via ensure_directories().

    Attributes:
        storage_dir: Directory for spooled uploads, engine working
            directories and bundle archives. Every artifact written here
            is request-scoped and removed before the request completes.
        allow_origins: List of allowed CORS origins (["*"] allows all).
        max_upload_size_bytes: Maximum file upload size (default 512MB).
        mapshaper_command: Argument prefix used to launch the engine CLI.
        engine_timeout_seconds: Wall-clock limit for one engine call,
            None disables the limit.
        default_target_format: Format key used when a request names none.
        log_level: Root logging level applied by the app factory.

    Example:
        Create settings with custom values:
            >>> settings = Settings(
            ...     storage_dir=Path("/custom/work"),
            ...     mapshaper_command=["npx", "mapshaper"],
            ...     max_upload_size_bytes=1024 * 1024 * 1024  # 1GB
            ... )
            >>> settings.ensure_directories()
    """

    storage_dir: pathlib.Path = pathlib.Path("/tmp/geoconvert/work")
    allow_origins: list[str] = ["*"]
    max_upload_size_bytes: int = 512 * 1024 * 1024
    mapshaper_command: list[str] = ["mapshaper"]
    engine_timeout_seconds: float | None = 300.0
    default_target_format: str = "geojson"
    log_level: str = "INFO"

    model_config = pydantic_settings.SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    def ensure_directories(self) -> None:
        """Create the working directory for temporary artifacts."""
        self.storage_dir.mkdir(parents=True, exist_ok=True)


@functools.lru_cache
def get_settings() -> Settings:
    """Get cached settings instance with directories initialized.

    Settings are loaded from environment variables or .env file and cached
    for the lifetime of the application. Directories are created on first call.
    Subsequent calls return the same cached instance.

    Returns:
        Settings instance with all configuration values populated and
        directories ensured to exist.

    Example:
        The settings are cached, so multiple calls return the same instance:
            >>> settings1 = get_settings()
            >>> settings2 = get_settings()
            >>> assert settings1 is settings2  # Same instance
    """
    settings = Settings()
    settings.ensure_directories()
    return settings
