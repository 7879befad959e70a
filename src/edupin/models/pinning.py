"""Pinning API data models."""

from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional


class UploadResponse(BaseModel):
    """Response model for a completed upload."""

    cid: str
    file_id: Optional[str] = None
    name: Optional[str] = None
    size_bytes: int
    media_type: str
    visibility: Literal["public", "private"]
    duplicate: bool
    public_url: Optional[str] = None
    gateway_url: Optional[str] = None
    signed_url: Optional[str] = None
    warning: Optional[str] = None
    warnings: List[str] = []
    recommendations: List[str] = []


class AdmissionRequest(BaseModel):
    """Request model for an admission check."""

    size_bytes: int = Field(ge=0)


class CategoryUsageModel(BaseModel):
    count: int
    bytes: int


class UsageModel(BaseModel):
    """Usage counters against the active quota."""

    used_count: int
    count_limit: int
    count_pct: float
    used_bytes: int
    bytes_limit: int
    bytes_pct: float
    summary: str
    by_media_class: Dict[str, CategoryUsageModel] = {}
    by_visibility: Dict[str, CategoryUsageModel] = {}


class AdmissionResponse(BaseModel):
    """Response model for an admission check."""

    allowed: bool
    verified: bool
    projected_usage: Optional[UsageModel] = None
    warnings: List[str] = []
    recommendations: List[str] = []


class UsageResponse(BaseModel):
    """Response model for the usage report."""

    usage: UsageModel
    plan_tier: str
    warnings: List[str] = []
    recommendations: List[str] = []


class ReadUrlResponse(BaseModel):
    """Response model for read URL resolution."""

    cid: str
    url: str
    source: str
    warning: Optional[str] = None


class FileUpdateRequest(BaseModel):
    """Request model for a file metadata update."""

    name: Optional[str] = None
    tags: Optional[Dict[str, str]] = None


class FileResponse(BaseModel):
    """A pinned file as reported by the provider."""

    file_id: str
    cid: str
    name: str
    size_bytes: int
    media_type: str
    visibility: Literal["public", "private"]
    group_id: Optional[str] = None
    tags: Dict[str, str] = {}


class GroupCreateRequest(BaseModel):
    """Request model for creating a group."""

    name: str = Field(min_length=1)
    visibility: Literal["public", "private"] = "private"
    is_public: bool = False


class GroupResponse(BaseModel):
    group_id: str
    name: str
    visibility: Literal["public", "private"]
    is_public: bool
    created_at: Optional[str] = None


class GroupListResponse(BaseModel):
    groups: List[GroupResponse]
    next_page_token: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error body for pinning failures."""

    error: str
    reason: str
    hint: Optional[str] = None
    stage: Optional[str] = None
    code: Optional[str] = None
