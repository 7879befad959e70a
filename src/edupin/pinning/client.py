"""Resilient pinning client.

Usage:
    async with PinningClient() as client:
        result = await client.upload(b"...", "lesson1.mp4", media_type="video")
        url = await client.resolve_read_url(result.cid)
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union

import httpx

from edupin.core.config import Settings, settings as default_settings
from edupin.pinning.admission import AdmissionController, AdmissionDecision
from edupin.pinning.capabilities import CapabilityProber, PlanTier, ProviderCapabilities
from edupin.pinning.content import BytesSource, UploadRequest, Visibility, as_content_source
from edupin.pinning.exceptions import ConfigurationError, PinningError, ProviderRejected
from edupin.pinning.executor import RequestExecutor
from edupin.pinning.gateway import GatewayResolver, ResolvedUrl
from edupin.pinning.normalizer import ContentPolicy
from edupin.pinning.orchestrator import UploadOrchestrator, UploadResult
from edupin.pinning.provider import (
    FileContent,
    FilePage,
    GroupPage,
    PinnedFile,
    PinnedGroup,
    PinningProviderApi,
)
from edupin.pinning.usage import UsageAdvice, UsageSnapshot, usage_advice

logger = logging.getLogger(__name__)


class PinningClient:
    """Upload, admission and read-path entry point for one provider account."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        executor: Optional[RequestExecutor] = None,
    ):
        """Build the client and its components.

        Args:
            settings: Settings to build from (defaults to the process settings)
            http_client: Shared httpx client; created and owned here when omitted
            executor: Request executor override, e.g. with a recording sleep

        Raises:
            ConfigurationError: If no provider credential is configured
        """
        self.settings = settings or default_settings
        if not self.settings.PINATA_JWT:
            raise ConfigurationError(
                "PINATA_JWT is not configured",
                "Set the PINATA_JWT environment variable to the provider API key",
            )

        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient()
        self.executor = executor or RequestExecutor.from_settings(self.http_client, self.settings)

        self.provider = PinningProviderApi(
            self.executor,
            jwt=self.settings.PINATA_JWT,
            api_url=self.settings.PINATA_API_URL,
            upload_url=self.settings.PINATA_UPLOAD_URL,
        )
        self.prober = CapabilityProber(
            self.provider,
            probe_timeout=self.settings.probe_timeout_seconds,
            gateway_suffix=self.settings.DEDICATED_GATEWAY_SUFFIX,
            configured_gateway=self.settings.DEDICATED_GATEWAY or None,
        )
        self.resolver = GatewayResolver(
            self.prober,
            self.provider,
            public_gateway=self.settings.PUBLIC_GATEWAY_URL,
            gateway_probe_timeout=self.settings.gateway_probe_timeout_seconds,
            default_ttl_seconds=self.settings.DEFAULT_SIGNED_URL_TTL_SECONDS,
        )
        self.admission = AdmissionController.from_settings(self.provider, self.prober, self.settings)
        self.orchestrator = UploadOrchestrator(
            ContentPolicy.from_settings(self.settings),
            self.admission,
            self.provider,
            self.prober,
            self.resolver,
            signed_url_ttl_seconds=self.settings.DEFAULT_SIGNED_URL_TTL_SECONDS,
        )

        logger.info(
            "Pinning client initialized",
            extra={
                "api_url": self.settings.PINATA_API_URL,
                "public_gateway": self.settings.PUBLIC_GATEWAY_URL,
                "dedicated_gateway": self.prober.configured_gateway,
                "max_retry_attempts": self.settings.MAX_RETRY_ATTEMPTS,
            },
        )

    async def __aenter__(self) -> "PinningClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self.http_client.aclose()

    async def upload(
        self,
        content: Any,
        filename: str,
        media_type: Optional[str] = None,
        visibility: Union[Visibility, str] = Visibility.PUBLIC,
        tags: Optional[Mapping[str, Any]] = None,
        group_id: Optional[str] = None,
    ) -> UploadResult:
        """Upload bytes, a binary stream or a file path."""
        request = UploadRequest(
            source=as_content_source(content),
            filename=filename,
            declared_media_type=media_type,
            visibility=Visibility(visibility),
            group_id=group_id,
            tags=dict(tags or {}),
        )
        return await self.orchestrator.upload(request)

    async def upload_json(
        self,
        data: Union[Mapping[str, Any], list, str],
        name: str = "data.json",
        visibility: Union[Visibility, str] = Visibility.PUBLIC,
        tags: Optional[Mapping[str, Any]] = None,
        group_id: Optional[str] = None,
    ) -> UploadResult:
        """Serialize ``data`` and upload it as ``application/json``."""
        payload = data if isinstance(data, str) else json.dumps(data, indent=2)
        if not name.lower().endswith(".json"):
            name = f"{name}.json"
        tags = {"type": "json", **(tags or {})}
        return await self.upload(
            BytesSource(payload.encode("utf-8")),
            name,
            media_type="application/json",
            visibility=visibility,
            tags=tags,
            group_id=group_id,
        )

    async def resolve_read_url(
        self,
        cid: str,
        visibility: Union[Visibility, str] = Visibility.PUBLIC,
        force_public: bool = False,
        expires: Optional[int] = None,
    ) -> ResolvedUrl:
        return await self.resolver.resolve_read_url(
            cid,
            Visibility(visibility),
            force_public=force_public,
            expires=expires,
        )

    async def check_admission(self, candidate_size: int) -> AdmissionDecision:
        return await self.admission.check_admission(candidate_size)

    async def get_usage(self) -> UsageSnapshot:
        return await self.admission.get_usage()

    def usage_advice(self, snapshot: UsageSnapshot) -> UsageAdvice:
        return usage_advice(
            snapshot,
            warn_threshold_pct=self.settings.SOFT_QUOTA_WARN_THRESHOLD_PCT,
            recommend_threshold_pct=self.settings.SOFT_QUOTA_RECOMMEND_THRESHOLD_PCT,
        )

    async def ensure_capabilities_known(self) -> ProviderCapabilities:
        return await self.prober.ensure_capabilities_known()

    async def list_files(
        self,
        visibility: Union[Visibility, str] = Visibility.PUBLIC,
        limit: int = 10,
        page_token: Optional[str] = None,
        **filters: Any,
    ) -> FilePage:
        return await self.provider.list_files(
            Visibility(visibility),
            limit=limit,
            page_token=page_token,
            **filters,
        )

    async def get_file(self, file_id: str, visibility: Union[Visibility, str] = Visibility.PRIVATE) -> PinnedFile:
        return await self.provider.get_file(file_id, Visibility(visibility))

    async def delete_file(self, file_id: str, visibility: Union[Visibility, str] = Visibility.PRIVATE) -> None:
        await self.provider.delete_file(file_id, Visibility(visibility))

    async def update_file(
        self,
        file_id: str,
        visibility: Union[Visibility, str] = Visibility.PRIVATE,
        name: Optional[str] = None,
        tags: Optional[Mapping[str, Any]] = None,
    ) -> PinnedFile:
        """Rename a pinned file and/or replace its key/value tags."""
        if name is not None and not name.strip():
            raise ValueError("File name must not be empty")
        return await self.provider.update_file(
            file_id,
            Visibility(visibility),
            name=name.strip() if name is not None else None,
            keyvalues=dict(tags) if tags is not None else None,
        )

    async def get_file_content(
        self,
        cid: str,
        visibility: Union[Visibility, str] = Visibility.PUBLIC,
        force_public: bool = False,
        expires: Optional[int] = None,
    ) -> FileContent:
        """Fetch content through the best read URL for ``cid``.

        Raises:
            ValueError: For a blank content id
            ProviderRejected: When the gateway refuses the read
            TransientNetworkError: When the gateway stays unreachable
        """
        resolved = await self.resolve_read_url(cid, visibility, force_public=force_public, expires=expires)
        content = await self.provider.fetch_content(
            resolved.url,
            timeout=self.settings.content_fetch_timeout_seconds,
        )
        logger.info(
            "Fetched content",
            extra={
                "source": resolved.source.value,
                "size_bytes": content.size,
                "media_type": content.media_type,
            },
        )
        return content

    async def create_group(
        self,
        name: str,
        visibility: Union[Visibility, str] = Visibility.PRIVATE,
        is_public: bool = False,
    ) -> PinnedGroup:
        if not name or not name.strip():
            raise ValueError("Group name must not be empty")
        return await self.provider.create_group(name.strip(), Visibility(visibility), is_public=is_public)

    async def list_groups(
        self,
        visibility: Union[Visibility, str] = Visibility.PRIVATE,
        name: Optional[str] = None,
        is_public: Optional[bool] = None,
        limit: Optional[int] = None,
        page_token: Optional[str] = None,
    ) -> GroupPage:
        return await self.provider.list_groups(
            Visibility(visibility),
            name=name,
            is_public=is_public,
            limit=limit,
            page_token=page_token,
        )

    async def add_file_to_group(
        self,
        group_id: str,
        file_id: str,
        visibility: Union[Visibility, str] = Visibility.PRIVATE,
    ) -> None:
        await self.provider.add_file_to_group(group_id, file_id, Visibility(visibility))

    async def remove_file_from_group(
        self,
        group_id: str,
        file_id: str,
        visibility: Union[Visibility, str] = Visibility.PRIVATE,
    ) -> None:
        await self.provider.remove_file_from_group(group_id, file_id, Visibility(visibility))

    async def health_check(self) -> Dict[str, Any]:
        """Check listing access, capabilities and the public gateway.

        Returns:
            ``{"status": "healthy" | "warning" | "unhealthy", "timestamp", "checks"}``
        """
        checks: Dict[str, Dict[str, Any]] = {}

        try:
            page = await self.provider.list_files(Visibility.PUBLIC, limit=1, max_attempts=1)
            checks["file_listing"] = {
                "status": "success",
                "message": "File listing works",
                "file_count": len(page.files),
            }
        except PinningError as e:
            checks["file_listing"] = {"status": "failed", "message": e.reason}

        capabilities = await self.prober.ensure_capabilities_known()
        checks["plan"] = {
            "status": "info" if capabilities.plan_tier is not PlanTier.UNKNOWN else "warning",
            "plan_tier": capabilities.plan_tier.value,
            "signed_urls_available": capabilities.signed_urls_available,
            "dedicated_gateway": capabilities.dedicated_gateway,
        }

        try:
            await self.provider.check_gateway(
                self.resolver.public_gateway,
                timeout=self.settings.gateway_probe_timeout_seconds,
            )
            checks["gateway"] = {"status": "success", "message": "Public gateway accessible"}
        except ProviderRejected as e:
            checks["gateway"] = {
                "status": "warning",
                "message": "Public gateway may have issues",
                "status_code": e.status_code,
            }
        except PinningError as e:
            checks["gateway"] = {"status": "failed", "message": e.reason}

        statuses = [check["status"] for check in checks.values()]
        if checks["file_listing"]["status"] == "failed":
            status = "unhealthy"
        elif "failed" in statuses or "warning" in statuses:
            status = "warning"
        else:
            status = "healthy"

        return {
            "status": status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": checks,
        }
