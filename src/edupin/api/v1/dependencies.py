"""Shared dependencies for API routes."""

import logging
from typing import Optional

from edupin.core.config import settings
from edupin.pinning.client import PinningClient

logger = logging.getLogger(__name__)

_client: Optional[PinningClient] = None


def get_pinning_client() -> PinningClient:
    """Return the process-wide pinning client, building it on first use."""
    global _client
    if _client is None:
        _client = PinningClient(settings)
    return _client


async def close_pinning_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
        logger.info("Pinning client closed")
