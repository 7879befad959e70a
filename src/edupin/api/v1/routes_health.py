"""Health check endpoints for EduPin Engine."""

from fastapi import APIRouter, Depends

from edupin.api.v1.dependencies import get_pinning_client
from edupin.core.config import settings
from edupin.pinning.client import PinningClient

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint.

    Returns service status, name, and version information without touching
    the provider, so it stays fast during startup.

    Returns:
        dict: Health status response with status, service, and version fields
    """
    return {
        "status": "ok",
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
    }


@router.get("/api/v1/health/provider")
async def provider_health(client: PinningClient = Depends(get_pinning_client)) -> dict:
    """Check provider listing access, plan capabilities and the public gateway."""
    return await client.health_check()
