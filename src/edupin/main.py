"""Main application entrypoint for EduPin Engine."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from edupin.api.v1 import routes_health
from edupin.api.v1.dependencies import close_pinning_client, get_pinning_client
from edupin.api.v1.routes_pinning import router as pinning_router
from edupin.core.config import settings
from edupin.core.logging import setup_logging
from edupin.models.pinning import ErrorResponse
from edupin.pinning.exceptions import (
    AdmissionDenied,
    ConfigurationError,
    PinningError,
    ProviderRejected,
    TransientNetworkError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Checked in order; the first matching class decides the status
ERROR_STATUS_CODES = [
    (ValidationError, 400),
    (AdmissionDenied, 507),
    (ProviderRejected, 502),
    (TransientNetworkError, 503),
    (ConfigurationError, 500),
]


def status_for(error: PinningError) -> int:
    for error_class, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_class):
            return status_code
    cause = getattr(error, "cause", None)
    if isinstance(cause, PinningError):
        return status_for(cause)
    return 500


async def pinning_error_handler(request: Request, exc: PinningError) -> JSONResponse:
    """Render a PinningError as a JSON body with reason and hint."""
    status_code = status_for(exc)
    code = getattr(exc, "code", None)
    body = ErrorResponse(
        error=type(exc).__name__,
        reason=exc.reason,
        hint=exc.hint,
        stage=exc.stage.value if exc.stage else None,
        code=code.value if code else None,
    )

    log = logger.error if status_code >= 500 else logger.warning
    log(
        f"{request.method} {request.url.path} failed: {exc.reason}",
        extra={"status_code": status_code, "error_type": type(exc).__name__},
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    # Initialize logging first
    setup_logging()

    app = FastAPI(
        title=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
    )

    app.include_router(routes_health.router, tags=["health"])
    app.include_router(pinning_router)
    app.add_exception_handler(PinningError, pinning_error_handler)

    @app.on_event("startup")
    async def startup_event():
        """Build the pinning client so a missing credential fails at startup."""
        get_pinning_client()
        logger.info(
            "EduPin Engine started",
            extra={"environment": settings.ENV, "version": settings.SERVICE_VERSION},
        )

    @app.on_event("shutdown")
    async def shutdown_event():
        """Close the pinning client."""
        await close_pinning_client()
        logger.info("EduPin Engine shutting down")

    return app


# Export app instance for ASGI servers
app = create_app()
