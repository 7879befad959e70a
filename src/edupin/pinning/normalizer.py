"""Content normalization and policy validation."""

import logging
from dataclasses import dataclass
from typing import Tuple

from edupin.core.config import Settings
from edupin.pinning.content import (
    NormalizedContent,
    SizeBucket,
    UploadRequest,
    format_file_size,
)
from edupin.pinning.exceptions import ValidationCode, ValidationError
from edupin.pinning.media_types import (
    GENERIC_BINARY_TYPE,
    canonical_media_type,
    detect_media_type,
    file_extension,
    is_generic_media_type,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContentPolicy:
    """Size ceiling, bucket thresholds and media type allowlist."""

    max_content_size_bytes: int = 100 * 1024 * 1024
    small_threshold_bytes: int = 10 * 1024 * 1024
    medium_threshold_bytes: int = 25 * 1024 * 1024
    large_threshold_bytes: int = 50 * 1024 * 1024
    accepted_media_types: Tuple[str, ...] = ()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ContentPolicy":
        return cls(
            max_content_size_bytes=settings.MAX_CONTENT_SIZE_BYTES,
            small_threshold_bytes=settings.SMALL_CONTENT_THRESHOLD_BYTES,
            medium_threshold_bytes=settings.MEDIUM_CONTENT_THRESHOLD_BYTES,
            large_threshold_bytes=settings.LARGE_CONTENT_THRESHOLD_BYTES,
            accepted_media_types=tuple(settings.accepted_media_types),
        )

    def classify_size(self, size: int) -> SizeBucket:
        if size > self.max_content_size_bytes:
            return SizeBucket.OVER_LIMIT
        if size <= self.small_threshold_bytes:
            return SizeBucket.SMALL
        if size <= self.medium_threshold_bytes:
            return SizeBucket.MEDIUM
        return SizeBucket.LARGE


def resolve_media_type(filename: str, declared_media_type: str | None) -> str:
    """Pick the specific media type for an upload.

    A specific declared type wins. A generic or missing one is replaced by
    the extension lookup, falling back to the generic binary type.
    """
    if not is_generic_media_type(declared_media_type):
        return canonical_media_type(declared_media_type)
    return detect_media_type(filename) or GENERIC_BINARY_TYPE


def normalize(request: UploadRequest, policy: ContentPolicy) -> NormalizedContent:
    """Validate an upload request and resolve its media type.

    Args:
        request: The caller's upload request
        policy: Content policy to validate against

    Returns:
        NormalizedContent with a specific media type, size bucket and advisory warnings

    Raises:
        ValidationError: EMPTY_FILE, MISSING_NAME, UNSUPPORTED_FORMAT or FILE_TOO_LARGE
    """
    filename = (request.filename or "").strip()
    size = request.size
    if size <= 0:
        raise ValidationError(
            ValidationCode.EMPTY_FILE,
            f"File '{filename}' is empty" if filename else "File is empty",
            "Select a file with content",
        )

    if not filename:
        raise ValidationError(
            ValidationCode.MISSING_NAME,
            "A file name is required",
            "Provide the original file name including its extension",
        )

    media_type = resolve_media_type(filename, request.declared_media_type)
    if media_type != canonical_media_type(request.declared_media_type):
        logger.debug(
            "Resolved media type from file extension",
            extra={
                "file_name": filename,
                "declared_media_type": request.declared_media_type,
                "media_type": media_type,
            },
        )

    accepted = policy.accepted_media_types
    if accepted and media_type not in accepted:
        extension = file_extension(filename) or "none"
        raise ValidationError(
            ValidationCode.UNSUPPORTED_FORMAT,
            f"Unsupported format {media_type} (extension: {extension})",
            f"Use one of: {', '.join(accepted)}",
        )

    bucket = policy.classify_size(size)
    if bucket is SizeBucket.OVER_LIMIT:
        raise ValidationError(
            ValidationCode.FILE_TOO_LARGE,
            f"File is too large ({format_file_size(size)}); "
            f"the maximum is {format_file_size(policy.max_content_size_bytes)}",
            "Reduce the file size, e.g. compress the video or lower its resolution",
        )

    compression_recommended = size > policy.medium_threshold_bytes
    warnings = []
    if size > policy.large_threshold_bytes:
        warnings.append(
            f"Large file ({format_file_size(size)}). Upload may take a while."
        )
    if compression_recommended:
        warnings.append("Consider compressing the file to save storage and bandwidth.")

    return NormalizedContent(
        request=request,
        media_type=media_type,
        size=size,
        size_bucket=bucket,
        warnings=warnings,
        compression_recommended=compression_recommended,
    )
