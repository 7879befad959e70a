"""Provider capability discovery.

The provider gates signed URLs and dedicated gateways behind paid plans, and
says so with a 403 on the signing endpoint. Discovery runs at most once per
process: the first caller starts a probe, concurrent callers await that same
probe, and a definite answer (a minted URL or a 403) is kept for the life of
the process. Any other failure leaves the capabilities unknown so the next
caller probes again.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from edupin.pinning.content import Visibility
from edupin.pinning.exceptions import PinningError, ProviderRejected
from edupin.pinning.provider import PinningProviderApi

logger = logging.getLogger(__name__)

# Placeholder reference signed during probing; the provider signs without checking existence
PROBE_CID = "bafkreigh2akiscaildcqabsyg3dfr6chu3fgpregiymsck7e7aqa4s52zy"
PROBE_TTL_SECONDS = 30


class PlanTier(str, Enum):
    FREE = "free"
    PAID = "paid"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ProviderCapabilities:
    """What the provider account can do beyond plain public pinning."""

    signed_urls_available: bool = False
    dedicated_gateway: Optional[str] = None
    plan_tier: PlanTier = PlanTier.UNKNOWN

    @property
    def is_known(self) -> bool:
        return self.plan_tier is not PlanTier.UNKNOWN


UNKNOWN_CAPABILITIES = ProviderCapabilities()


def normalize_gateway(gateway: Optional[str]) -> Optional[str]:
    """Turn a gateway host or URL into ``https://host`` form."""
    if not gateway or not gateway.strip():
        return None
    gateway = gateway.strip().rstrip("/")
    if gateway.endswith("/ipfs"):
        gateway = gateway[: -len("/ipfs")]
    if not re.match(r"^https?://", gateway):
        gateway = f"https://{gateway}"
    return gateway


def extract_gateway(url: Optional[str], suffix: str) -> Optional[str]:
    """Pull a dedicated gateway host ending in ``suffix`` out of a URL."""
    if not url or not suffix:
        return None
    match = re.search(rf"https?://([^/\s\"]+{re.escape(suffix)})", url)
    if not match:
        return None
    return f"https://{match.group(1)}"


class CapabilityProber:
    """Single-flight, memoized discovery of :class:`ProviderCapabilities`."""

    def __init__(
        self,
        provider: PinningProviderApi,
        probe_timeout: float = 5.0,
        gateway_suffix: str = ".mypinata.cloud",
        configured_gateway: Optional[str] = None,
    ):
        """Initialize the prober.

        Args:
            provider: Provider API used for the probe requests
            probe_timeout: Timeout in seconds for each probe request
            gateway_suffix: Host suffix identifying a dedicated gateway
            configured_gateway: Dedicated gateway known up front; skips gateway discovery
        """
        self.provider = provider
        self.probe_timeout = probe_timeout
        self.gateway_suffix = gateway_suffix
        self.configured_gateway = normalize_gateway(configured_gateway)
        self._resolved: Optional[ProviderCapabilities] = None
        self._inflight: Optional[asyncio.Future] = None
        self.probe_count = 0

    @property
    def cached(self) -> Optional[ProviderCapabilities]:
        """The sticky result, or None while capabilities are still unknown."""
        return self._resolved

    async def ensure_capabilities_known(self) -> ProviderCapabilities:
        """Return the provider capabilities, probing on first need.

        Safe to call repeatedly and concurrently. Never raises: a failed
        probe yields capabilities with ``plan_tier=UNKNOWN``.
        """
        if self._resolved is not None:
            return self._resolved

        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._run_probe())
            self._inflight.add_done_callback(self._clear_inflight)

        # Shielded so a cancelled caller does not cancel the probe others await
        return await asyncio.shield(self._inflight)

    def _clear_inflight(self, _future: asyncio.Future) -> None:
        self._inflight = None

    async def _run_probe(self) -> ProviderCapabilities:
        self.probe_count += 1
        try:
            capabilities, sticky = await self._probe()
        except Exception as e:
            logger.warning(
                "Capability probe failed unexpectedly",
                extra={"error": str(e), "error_type": type(e).__name__},
                exc_info=True,
            )
            return UNKNOWN_CAPABILITIES

        if sticky:
            self._resolved = capabilities
        logger.info(
            "Provider capabilities probed",
            extra={
                "plan_tier": capabilities.plan_tier.value,
                "signed_urls_available": capabilities.signed_urls_available,
                "dedicated_gateway": capabilities.dedicated_gateway,
                "sticky": sticky,
            },
        )
        return capabilities

    async def _probe(self) -> Tuple[ProviderCapabilities, bool]:
        try:
            signed_url = await self.provider.create_signed_url(
                PROBE_CID,
                expires=PROBE_TTL_SECONDS,
                max_attempts=1,
                timeout=self.probe_timeout,
            )
        except ProviderRejected as e:
            if e.status_code == 403:
                logger.info("Signed URLs require a paid plan; using free plan limits and the public gateway")
                return (
                    ProviderCapabilities(
                        signed_urls_available=False,
                        dedicated_gateway=self.configured_gateway,
                        plan_tier=PlanTier.FREE,
                    ),
                    True,
                )
            logger.warning(
                "Capability probe rejected",
                extra={"status_code": e.status_code, "error": e.reason},
            )
            return self._unknown(), False
        except PinningError as e:
            logger.warning(
                "Capability probe failed, will retry on next use",
                extra={"error": e.reason, "error_type": type(e).__name__},
            )
            return self._unknown(), False

        gateway = self.configured_gateway or await self._discover_gateway(signed_url)
        return (
            ProviderCapabilities(
                signed_urls_available=True,
                dedicated_gateway=gateway,
                plan_tier=PlanTier.PAID,
            ),
            True,
        )

    def _unknown(self) -> ProviderCapabilities:
        return ProviderCapabilities(dedicated_gateway=self.configured_gateway)

    async def _discover_gateway(self, probe_url: str) -> Optional[str]:
        """Find the dedicated gateway from the probe URL or the latest file."""
        gateway = extract_gateway(probe_url, self.gateway_suffix)
        if gateway:
            return gateway

        try:
            page = await self.provider.list_files(
                Visibility.PRIVATE,
                limit=1,
                max_attempts=1,
                timeout=self.probe_timeout,
            )
            if not page.files:
                return None
            signed_url = await self.provider.create_signed_url(
                page.files[0].cid,
                expires=PROBE_TTL_SECONDS,
                max_attempts=1,
                timeout=self.probe_timeout,
            )
            return extract_gateway(signed_url, self.gateway_suffix)
        except PinningError as e:
            logger.info(
                "No dedicated gateway found, using the public gateway",
                extra={"error": e.reason},
            )
            return None
