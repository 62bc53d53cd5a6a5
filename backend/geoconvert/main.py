"""FastAPI application entrypoint and configuration.

This module provides the main FastAPI application factory that sets up
logging, CORS middleware, the conversion routers and the structured error
handler, and exposes a health check endpoint for monitoring.

Example:
    The application can be run with uvicorn:
        $ uvicorn geoconvert.main:app --reload

    Or imported and used programmatically:
        >>> from geoconvert.main import app
        >>> # Use app in ASGI server
"""

import logging

import fastapi
from fastapi import responses
from fastapi.middleware import cors

from geoconvert.api import convert
from geoconvert.conversion import errors
from geoconvert.core import config

logger = logging.getLogger(__name__)


def create_app() -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    Configures logging from settings, includes the conversion routers,
    installs CORS middleware and registers the handler that renders
    conversion failures as ``{"error": {"type", "message"}}`` payloads.

    Returns:
        Configured FastAPI application instance ready for ASGI server.
    """
    settings = config.get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = fastapi.FastAPI(title="Geo Convert", version="0.1.0")

    app.include_router(convert.router)
    app.include_router(convert.legacy_router)

    app.add_middleware(
        cors.CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(errors.ConversionError)
    async def conversion_error_handler(  # type: ignore[misc]
        request: fastapi.Request,
        exc: errors.ConversionError,
    ) -> responses.JSONResponse:
        """Render a pipeline failure as a structured error response."""
        logger.warning(
            "Conversion failed on %s: %s: %s",
            request.url.path,
            exc.error_type,
            exc.message,
        )
        return responses.JSONResponse(
            status_code=exc.status_code,
            content=exc.payload(),
        )

    @app.get("/health")
    async def health() -> dict[str, str]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers.

        Returns:
            Dictionary with status "ok" if the service is running.
        """
        return {"status": "ok"}

    return app


app = create_app()
