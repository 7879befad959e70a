"""Read URL resolution for pinned content.

Resolution walks an ordered list of strategies; each returns a URL or None
and the first URL wins. The public gateway closes the list and cannot fail,
so a valid content id always resolves to some URL.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from edupin.core.logging import cid_context
from edupin.pinning.capabilities import CapabilityProber, ProviderCapabilities
from edupin.pinning.content import Visibility
from edupin.pinning.provider import PinningProviderApi

logger = logging.getLogger(__name__)


class UrlSource(str, Enum):
    PUBLIC_GATEWAY = "public_gateway"
    DEDICATED_GATEWAY = "dedicated_gateway"
    SIGNED_URL = "signed_url"


@dataclass
class ResolvedUrl:
    url: str
    source: UrlSource
    warning: Optional[str] = None


@dataclass
class ReadRequest:
    """One resolution: the cleaned cid, caller options and collected warnings."""

    cid: str
    visibility: Visibility = Visibility.PUBLIC
    force_public: bool = False
    expires: Optional[int] = None
    warnings: List[str] = field(default_factory=list)


Strategy = Callable[[ReadRequest], Awaitable[Optional[ResolvedUrl]]]


def clean_cid(cid: str) -> str:
    """Strip whitespace and any ``ipfs://`` or ``/ipfs/`` prefix.

    Raises:
        ValueError: If nothing remains
    """
    cleaned = (cid or "").strip()
    for prefix in ("ipfs://", "/ipfs/", "ipfs/"):
        if cleaned.lower().startswith(prefix):
            cleaned = cleaned[len(prefix):]
    cleaned = cleaned.strip().strip("/")
    if not cleaned:
        raise ValueError("Content id must not be empty")
    return cleaned


def gateway_url(gateway: str, cid: str) -> str:
    return f"{gateway.rstrip('/')}/ipfs/{cid}"


class GatewayResolver:
    """Choose the best reachable read URL for a content id."""

    def __init__(
        self,
        prober: CapabilityProber,
        provider: PinningProviderApi,
        public_gateway: str = "https://gateway.pinata.cloud",
        gateway_probe_timeout: float = 3.0,
        default_ttl_seconds: int = 3600,
    ):
        self.prober = prober
        self.provider = provider
        self.public_gateway = public_gateway.rstrip("/")
        if self.public_gateway.endswith("/ipfs"):
            self.public_gateway = self.public_gateway[: -len("/ipfs")]
        self.gateway_probe_timeout = gateway_probe_timeout
        self.default_ttl_seconds = default_ttl_seconds

        self.strategies: List[Strategy] = [
            self._force_public,
            self._signed_url,
            self._dedicated_gateway,
        ]

    def public_url(self, cid: str) -> str:
        return gateway_url(self.public_gateway, clean_cid(cid))

    def dedicated_url(self, cid: str, capabilities: ProviderCapabilities) -> Optional[str]:
        if not capabilities.dedicated_gateway:
            return None
        return gateway_url(capabilities.dedicated_gateway, clean_cid(cid))

    async def resolve_read_url(
        self,
        cid: str,
        visibility: Visibility = Visibility.PUBLIC,
        force_public: bool = False,
        expires: Optional[int] = None,
    ) -> ResolvedUrl:
        """Resolve a read URL; degrades to the public gateway instead of raising.

        Raises:
            ValueError: Only for a blank content id
        """
        read = ReadRequest(
            cid=clean_cid(cid),
            visibility=visibility,
            force_public=force_public,
            expires=expires,
        )
        token = cid_context.set(read.cid)
        try:
            for strategy in self.strategies:
                try:
                    resolved = await strategy(read)
                except Exception as e:
                    logger.warning(
                        "Read URL strategy failed, trying the next one",
                        extra={
                            "strategy": getattr(strategy, "__name__", repr(strategy)).lstrip("_"),
                            "error": str(e),
                            "error_type": type(e).__name__,
                        },
                    )
                    continue
                if resolved is not None:
                    if resolved.warning is None and read.warnings:
                        resolved.warning = " ".join(read.warnings)
                    return resolved

            return ResolvedUrl(
                url=gateway_url(self.public_gateway, read.cid),
                source=UrlSource.PUBLIC_GATEWAY,
                warning=" ".join(read.warnings) or None,
            )
        finally:
            cid_context.reset(token)

    async def _force_public(self, read: ReadRequest) -> Optional[ResolvedUrl]:
        if not read.force_public:
            return None
        return ResolvedUrl(
            url=gateway_url(self.public_gateway, read.cid),
            source=UrlSource.PUBLIC_GATEWAY,
        )

    async def _signed_url(self, read: ReadRequest) -> Optional[ResolvedUrl]:
        if read.visibility is not Visibility.PRIVATE:
            return None

        capabilities = await self.prober.ensure_capabilities_known()
        if not capabilities.signed_urls_available:
            read.warnings.append(
                "Signed URLs are not available on the current plan; using the public gateway."
            )
            return None

        try:
            url = await self.mint_signed_url(read.cid, read.expires)
        except Exception:
            read.warnings.append("Signed URL creation failed; using the public gateway.")
            raise
        return ResolvedUrl(url=url, source=UrlSource.SIGNED_URL)

    async def _dedicated_gateway(self, read: ReadRequest) -> Optional[ResolvedUrl]:
        capabilities = await self.prober.ensure_capabilities_known()
        url = self.dedicated_url(read.cid, capabilities)
        if url is None:
            return None

        await self.provider.check_gateway(url, timeout=self.gateway_probe_timeout)
        return ResolvedUrl(url=url, source=UrlSource.DEDICATED_GATEWAY)

    async def mint_signed_url(self, cid: str, expires: Optional[int] = None) -> str:
        return await self.provider.create_signed_url(
            clean_cid(cid),
            expires=expires or self.default_ttl_seconds,
        )
