"""Upload pipeline: Validate, Admit, Send, Resolve URLs.

Stages run strictly in order and none is retried here; retries for the Send
stage live in the request executor. The first failing stage ends the upload
with its error tagged by stage.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from edupin.core.logging import cid_context
from edupin.pinning.admission import AdmissionController, AdmissionDecision
from edupin.pinning.capabilities import CapabilityProber
from edupin.pinning.content import NormalizedContent, UploadRequest, Visibility
from edupin.pinning.exceptions import AdmissionDenied, PinningError, UploadError, UploadStage
from edupin.pinning.gateway import GatewayResolver
from edupin.pinning.normalizer import ContentPolicy, normalize
from edupin.pinning.provider import PinnedFile, PinningProviderApi

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    """A completed upload and every access URL that could be derived."""

    cid: str
    size: int
    media_type: str
    visibility: Visibility
    duplicate: bool
    file_id: Optional[str] = None
    name: Optional[str] = None
    public_url: Optional[str] = None
    gateway_url: Optional[str] = None
    signed_url: Optional[str] = None
    warning: Optional[str] = None  # Explains a missing signed URL
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


def build_keyvalues(content: NormalizedContent) -> Dict[str, str]:
    """Caller tags followed by the system tags, all values as strings."""
    keyvalues = {str(key): str(value) for key, value in content.request.tags.items()}
    keyvalues.update(
        {
            "originalFileName": content.filename,
            "fileSize": str(content.size),
            "mimeType": content.media_type,
            "uploadedAt": datetime.now(timezone.utc).isoformat(),
        }
    )
    return keyvalues


class UploadOrchestrator:
    """Compose normalization, admission, upload and URL resolution."""

    def __init__(
        self,
        policy: ContentPolicy,
        admission: AdmissionController,
        provider: PinningProviderApi,
        prober: CapabilityProber,
        resolver: GatewayResolver,
        signed_url_ttl_seconds: int = 3600,
    ):
        self.policy = policy
        self.admission = admission
        self.provider = provider
        self.prober = prober
        self.resolver = resolver
        self.signed_url_ttl_seconds = signed_url_ttl_seconds

    async def upload(self, request: UploadRequest) -> UploadResult:
        """Run one upload through all stages.

        Raises:
            ValidationError: Content failed normalization (no network call made)
            AdmissionDenied: The upload would exceed the quota (nothing sent)
            TransientNetworkError: Send failed after all retry attempts
            ProviderRejected: The provider refused the upload
            UploadError: Any unexpected failure, tagged with its stage
        """
        stage = UploadStage.VALIDATE
        try:
            content = normalize(request, self.policy)

            stage = UploadStage.ADMIT
            decision = await self.admission.check_admission(content.size)
            if not decision.allowed:
                raise AdmissionDenied(decision)

            stage = UploadStage.SEND
            pinned = await self.provider.upload_file(content, build_keyvalues(content))

            stage = UploadStage.RESOLVE_URLS
            return await self._build_result(content, decision, pinned)
        except PinningError as e:
            if e.stage is None:
                e.stage = stage
            logger.warning(
                f"Upload failed during {e.stage.value}: {e.reason}",
                extra={
                    "stage": e.stage.value,
                    "file_name": request.filename,
                    "error_type": type(e).__name__,
                    "hint": e.hint,
                },
            )
            raise
        except Exception as e:
            logger.error(
                f"Upload failed unexpectedly during {stage.value}",
                extra={"stage": stage.value, "file_name": request.filename},
                exc_info=True,
            )
            raise UploadError(stage, e) from e

    async def _build_result(
        self,
        content: NormalizedContent,
        decision: AdmissionDecision,
        pinned: PinnedFile,
    ) -> UploadResult:
        token = cid_context.set(pinned.cid)
        try:
            capabilities = await self.prober.ensure_capabilities_known()
            result = UploadResult(
                cid=pinned.cid,
                size=pinned.size or content.size,
                media_type=content.media_type,
                visibility=content.visibility,
                duplicate=pinned.is_duplicate,
                file_id=pinned.id or None,
                name=pinned.name or content.filename,
                public_url=self.resolver.public_url(pinned.cid),
                gateway_url=self.resolver.dedicated_url(pinned.cid, capabilities),
                warnings=content.warnings + decision.warnings,
                recommendations=list(decision.recommendations),
            )

            if content.visibility is Visibility.PRIVATE:
                if capabilities.signed_urls_available:
                    try:
                        result.signed_url = await self.resolver.mint_signed_url(
                            pinned.cid, self.signed_url_ttl_seconds
                        )
                    except PinningError as e:
                        logger.warning(
                            "Signed URL creation failed, falling back to the public gateway",
                            extra={"error": e.reason},
                        )
                        result.warning = "Signed URL creation failed. Using the public gateway URL as fallback."
                else:
                    result.warning = (
                        "Signed URLs are not available on the current plan. "
                        "Using the public gateway URL as fallback."
                    )

            logger.info(
                "Upload complete",
                extra={
                    "file_id": result.file_id,
                    "size_bytes": result.size,
                    "media_type": result.media_type,
                    "visibility": result.visibility.value,
                    "duplicate": result.duplicate,
                    "signed_url": result.signed_url is not None,
                },
            )
            return result
        finally:
            cid_context.reset(token)
