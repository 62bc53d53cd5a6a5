"""Error taxonomy for the conversion pipeline.

Every failure a conversion can hit is terminal for its request. Each error
class carries a stable ``error_type`` code and the HTTP status the API layer
answers with, and renders itself as the structured payload returned to
clients:

    {"error": {"type": "ARCHIVE_CORRUPT", "message": "..."}}
"""

from __future__ import annotations

from typing import Any, ClassVar


class ConversionError(Exception):
    """Base class for all conversion failures."""

    error_type: ClassVar[str] = "PROCESSING_ERROR"
    status_code: ClassVar[int] = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def payload(self) -> dict[str, Any]:
        """Structured error body for API responses."""
        return {"error": {"type": self.error_type, "message": self.message}}


class UnknownMediaTypeError(ConversionError):
    """Content sniffing could not classify the upload."""

    error_type = "UNKNOWN_MEDIA_TYPE"
    status_code = 415


class ArchiveCorruptError(ConversionError):
    """The uploaded archive could not be parsed or decompressed."""

    error_type = "ARCHIVE_CORRUPT"
    status_code = 400


class ValidationError(ConversionError):
    """Request fields or options fall outside what the engine accepts."""

    error_type = "VALIDATION_ERROR"
    status_code = 400


class TransformationError(ConversionError):
    """The engine rejected or failed on the input and instruction."""

    error_type = "TRANSFORMATION_ERROR"
    status_code = 422


class AssemblyError(ConversionError):
    """Bundling the engine output or the temp-file round-trip failed."""

    error_type = "ASSEMBLY_ERROR"
    status_code = 500


class UploadTooLargeError(ConversionError):
    """The upload exceeds the configured size limit."""

    error_type = "UPLOAD_TOO_LARGE"
    status_code = 413
