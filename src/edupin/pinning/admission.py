"""Quota-aware admission control for uploads.

Admission is advisory. Two uploaders checking at the same moment may both be
admitted against the same snapshot; the provider's own hard limit is the final
authority. A failed usage listing admits the upload with a warning.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from edupin.core.config import Settings
from edupin.pinning.capabilities import CapabilityProber, PlanTier, ProviderCapabilities
from edupin.pinning.content import Visibility, format_file_size
from edupin.pinning.exceptions import PinningError
from edupin.pinning.provider import PinningProviderApi
from edupin.pinning.usage import QuotaLimits, UsageSnapshot

logger = logging.getLogger(__name__)


@dataclass
class AdmissionDecision:
    allowed: bool
    projected_usage: Optional[UsageSnapshot] = None
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    verified: bool = True  # False when usage could not be read


class AdmissionController:
    """Decide whether a candidate upload fits the quota."""

    def __init__(
        self,
        provider: PinningProviderApi,
        prober: CapabilityProber,
        free_limits: QuotaLimits,
        paid_limits: QuotaLimits,
        warn_threshold_pct: float = 80.0,
        recommend_threshold_pct: float = 70.0,
        page_size: int = 500,
    ):
        self.provider = provider
        self.prober = prober
        self.free_limits = free_limits
        self.paid_limits = paid_limits
        self.warn_threshold_pct = warn_threshold_pct
        self.recommend_threshold_pct = recommend_threshold_pct
        self.page_size = page_size

    @classmethod
    def from_settings(
        cls,
        provider: PinningProviderApi,
        prober: CapabilityProber,
        settings: Settings,
    ) -> "AdmissionController":
        return cls(
            provider,
            prober,
            free_limits=QuotaLimits.free(settings),
            paid_limits=QuotaLimits.paid(settings),
            warn_threshold_pct=settings.SOFT_QUOTA_WARN_THRESHOLD_PCT,
            recommend_threshold_pct=settings.SOFT_QUOTA_RECOMMEND_THRESHOLD_PCT,
            page_size=settings.LISTING_PAGE_SIZE,
        )

    def current_limits(self, capabilities: Optional[ProviderCapabilities] = None) -> QuotaLimits:
        """Paid limits once a paid plan has been confirmed, free limits otherwise."""
        if capabilities is None:
            capabilities = self.prober.cached
        if capabilities is not None and capabilities.plan_tier is PlanTier.PAID:
            return self.paid_limits
        return self.free_limits

    async def get_usage(self) -> UsageSnapshot:
        """List both networks and build a fresh usage snapshot.

        The plan is probed first so a paid account is measured against the
        paid limits from the first upload on.

        Raises:
            PinningError: If any listing page fails or returns malformed records
        """
        capabilities = await self.prober.ensure_capabilities_known()

        files = []
        for visibility in (Visibility.PUBLIC, Visibility.PRIVATE):
            async for pinned in self.provider.iter_files(visibility, page_size=self.page_size):
                files.append(pinned)

        snapshot = UsageSnapshot.from_files(files, self.current_limits(capabilities))
        logger.info(
            "Usage snapshot built",
            extra={
                "used_count": snapshot.used_count,
                "count_limit": snapshot.count_limit,
                "used_bytes": snapshot.used_bytes,
                "bytes_limit": snapshot.bytes_limit,
                "plan_tier": capabilities.plan_tier.value,
            },
        )
        return snapshot

    async def check_admission(self, candidate_size: int) -> AdmissionDecision:
        """Decide whether ``candidate_size`` more bytes and one more object fit."""
        try:
            snapshot = await self.get_usage()
        except PinningError as e:
            logger.warning(
                "Could not read usage, admitting upload unverified",
                extra={"error": e.reason, "candidate_size": candidate_size},
            )
            return AdmissionDecision(
                allowed=True,
                verified=False,
                warnings=[f"Could not verify storage capacity ({e.reason}). Upload with care."],
            )

        return self.decide(snapshot, candidate_size)

    def decide(self, snapshot: UsageSnapshot, candidate_size: int) -> AdmissionDecision:
        """Pure admission decision against a given snapshot."""
        projected = snapshot.project(candidate_size)
        decision = AdmissionDecision(allowed=True, projected_usage=projected)

        if projected.used_count > projected.count_limit:
            decision.allowed = False
            decision.warnings.append(
                f"Upload would exceed the file count limit "
                f"({projected.used_count}/{projected.count_limit})"
            )

        if projected.used_bytes > projected.bytes_limit:
            decision.allowed = False
            decision.warnings.append(
                f"Upload would exceed the storage limit "
                f"({format_file_size(projected.used_bytes)}/{format_file_size(projected.bytes_limit)})"
            )

        if decision.allowed:
            if projected.bytes_pct > self.warn_threshold_pct:
                decision.warnings.append(
                    f"After upload, storage will be {projected.bytes_pct:.1f}% full"
                )
            if projected.count_pct > self.warn_threshold_pct:
                decision.warnings.append(
                    f"After upload, file count will be {projected.count_pct:.1f}% of the limit"
                )

        if max(projected.bytes_pct, projected.count_pct) > self.recommend_threshold_pct:
            decision.recommendations.extend(
                [
                    "Compress content before upload",
                    "Delete unused content to free up quota",
                ]
            )

        logger.info(
            "Admission decided",
            extra={
                "allowed": decision.allowed,
                "candidate_size": candidate_size,
                "projected_count": projected.used_count,
                "projected_bytes": projected.used_bytes,
                "warnings": len(decision.warnings),
            },
        )
        return decision
