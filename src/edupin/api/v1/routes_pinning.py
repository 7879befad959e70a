"""Pinning API routes."""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from edupin.api.v1.dependencies import get_pinning_client
from edupin.models.pinning import (
    AdmissionRequest,
    AdmissionResponse,
    CategoryUsageModel,
    FileResponse,
    FileUpdateRequest,
    GroupCreateRequest,
    GroupListResponse,
    GroupResponse,
    ReadUrlResponse,
    UploadResponse,
    UsageModel,
    UsageResponse,
)
from edupin.pinning.capabilities import PlanTier
from edupin.pinning.client import PinningClient
from edupin.pinning.content import StreamSource, Visibility
from edupin.pinning.orchestrator import UploadResult
from edupin.pinning.provider import PinnedFile, PinnedGroup
from edupin.pinning.usage import UsageSnapshot

router = APIRouter(prefix="/api/v1", tags=["pinning"])
logger = logging.getLogger(__name__)


def _parse_visibility(value: str) -> Visibility:
    try:
        return Visibility(value.strip().lower())
    except ValueError:
        raise HTTPException(status_code=400, detail="visibility must be 'public' or 'private'")


def _parse_tags(tags: Optional[str]) -> dict:
    if not tags:
        return {}
    try:
        parsed = json.loads(tags)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="tags must be a JSON object")
    if not isinstance(parsed, dict):
        raise HTTPException(status_code=400, detail="tags must be a JSON object")
    return {str(key): str(value) for key, value in parsed.items()}


def _usage_model(snapshot: UsageSnapshot) -> UsageModel:
    return UsageModel(
        used_count=snapshot.used_count,
        count_limit=snapshot.count_limit,
        count_pct=round(snapshot.count_pct, 2),
        used_bytes=snapshot.used_bytes,
        bytes_limit=snapshot.bytes_limit,
        bytes_pct=round(snapshot.bytes_pct, 2),
        summary=snapshot.summary(),
        by_media_class={
            key: CategoryUsageModel(count=value.count, bytes=value.bytes)
            for key, value in snapshot.by_media_class.items()
        },
        by_visibility={
            key: CategoryUsageModel(count=value.count, bytes=value.bytes)
            for key, value in snapshot.by_visibility.items()
        },
    )


def _file_response(pinned: PinnedFile) -> FileResponse:
    return FileResponse(
        file_id=pinned.id,
        cid=pinned.cid,
        name=pinned.name,
        size_bytes=pinned.size,
        media_type=pinned.mime_type,
        visibility=pinned.visibility.value,
        group_id=pinned.group_id,
        tags=pinned.keyvalues,
    )


def _group_response(group: PinnedGroup) -> GroupResponse:
    return GroupResponse(
        group_id=group.id,
        name=group.name,
        visibility=group.visibility.value,
        is_public=group.is_public,
        created_at=group.created_at,
    )


def _upload_response(result: UploadResult) -> UploadResponse:
    return UploadResponse(
        cid=result.cid,
        file_id=result.file_id,
        name=result.name,
        size_bytes=result.size,
        media_type=result.media_type,
        visibility=result.visibility.value,
        duplicate=result.duplicate,
        public_url=result.public_url,
        gateway_url=result.gateway_url,
        signed_url=result.signed_url,
        warning=result.warning,
        warnings=result.warnings,
        recommendations=result.recommendations,
    )


@router.post("/upload", response_model=UploadResponse, status_code=201)
async def upload_file(
    file: UploadFile = File(...),
    visibility: str = Form("public"),
    group_id: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    client: PinningClient = Depends(get_pinning_client),
) -> UploadResponse:
    """Upload a file to the pinning provider."""
    result = await client.upload(
        StreamSource(file.file),
        file.filename or "",
        media_type=file.content_type,
        visibility=_parse_visibility(visibility),
        tags=_parse_tags(tags),
        group_id=group_id or None,
    )

    logger.info(
        f"Upload completed: cid={result.cid}, size={result.size}, duplicate={result.duplicate}"
    )
    return _upload_response(result)


@router.post("/admission", response_model=AdmissionResponse)
async def check_admission(
    request: AdmissionRequest,
    client: PinningClient = Depends(get_pinning_client),
) -> AdmissionResponse:
    """Check whether an upload of the given size fits the quota."""
    decision = await client.check_admission(request.size_bytes)
    return AdmissionResponse(
        allowed=decision.allowed,
        verified=decision.verified,
        projected_usage=_usage_model(decision.projected_usage) if decision.projected_usage else None,
        warnings=decision.warnings,
        recommendations=decision.recommendations,
    )


@router.get("/usage", response_model=UsageResponse)
async def get_usage(client: PinningClient = Depends(get_pinning_client)) -> UsageResponse:
    """Report current usage with warnings and recommendations."""
    snapshot = await client.get_usage()
    advice = client.usage_advice(snapshot)
    capabilities = client.prober.cached
    return UsageResponse(
        usage=_usage_model(snapshot),
        plan_tier=capabilities.plan_tier.value if capabilities else PlanTier.UNKNOWN.value,
        warnings=advice.warnings,
        recommendations=advice.recommendations,
    )


@router.get("/files/{cid}/url", response_model=ReadUrlResponse)
async def resolve_read_url(
    cid: str,
    visibility: str = Query("public"),
    force_public: bool = Query(False),
    expires: Optional[int] = Query(None, gt=0),
    client: PinningClient = Depends(get_pinning_client),
) -> ReadUrlResponse:
    """Resolve the best read URL for a content id."""
    try:
        resolved = await client.resolve_read_url(
            cid,
            _parse_visibility(visibility),
            force_public=force_public,
            expires=expires,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return ReadUrlResponse(
        cid=cid.strip(),
        url=resolved.url,
        source=resolved.source.value,
        warning=resolved.warning,
    )


@router.delete("/files/{file_id}", status_code=204)
async def delete_file(
    file_id: str,
    visibility: str = Query("private"),
    client: PinningClient = Depends(get_pinning_client),
) -> None:
    """Remove a pinned file."""
    await client.delete_file(file_id, _parse_visibility(visibility))


@router.patch("/files/{file_id}", response_model=FileResponse)
async def update_file(
    file_id: str,
    request: FileUpdateRequest,
    visibility: str = Query("private"),
    client: PinningClient = Depends(get_pinning_client),
) -> FileResponse:
    """Rename a pinned file or replace its tags."""
    if request.name is None and request.tags is None:
        raise HTTPException(status_code=400, detail="Provide a name or tags to update")
    try:
        pinned = await client.update_file(
            file_id,
            _parse_visibility(visibility),
            name=request.name,
            tags=request.tags,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _file_response(pinned)


@router.post("/groups", response_model=GroupResponse, status_code=201)
async def create_group(
    request: GroupCreateRequest,
    client: PinningClient = Depends(get_pinning_client),
) -> GroupResponse:
    """Create a group for related content."""
    try:
        group = await client.create_group(
            request.name,
            Visibility(request.visibility),
            is_public=request.is_public,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _group_response(group)


@router.get("/groups", response_model=GroupListResponse)
async def list_groups(
    visibility: str = Query("private"),
    name: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, gt=0),
    page_token: Optional[str] = Query(None),
    client: PinningClient = Depends(get_pinning_client),
) -> GroupListResponse:
    """List groups on one network."""
    page = await client.list_groups(
        _parse_visibility(visibility),
        name=name,
        limit=limit,
        page_token=page_token,
    )
    return GroupListResponse(
        groups=[_group_response(group) for group in page.groups],
        next_page_token=page.next_page_token,
    )


@router.put("/groups/{group_id}/files/{file_id}", status_code=204)
async def add_file_to_group(
    group_id: str,
    file_id: str,
    visibility: str = Query("private"),
    client: PinningClient = Depends(get_pinning_client),
) -> None:
    """Add a pinned file to a group."""
    await client.add_file_to_group(group_id, file_id, _parse_visibility(visibility))


@router.delete("/groups/{group_id}/files/{file_id}", status_code=204)
async def remove_file_from_group(
    group_id: str,
    file_id: str,
    visibility: str = Query("private"),
    client: PinningClient = Depends(get_pinning_client),
) -> None:
    """Remove a pinned file from a group."""
    await client.remove_file_from_group(group_id, file_id, _parse_visibility(visibility))
