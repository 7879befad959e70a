"""
Resilient Pinning Client

Uploads content to a content-addressed pinning provider and resolves read URLs
for it. Content is normalized and admitted against the plan quota before it is
sent; provider capabilities (signed URLs, a dedicated gateway) are discovered
once per process and shared by all callers.
"""

from edupin.pinning.admission import AdmissionDecision
from edupin.pinning.capabilities import PlanTier, ProviderCapabilities
from edupin.pinning.client import PinningClient
from edupin.pinning.content import Visibility, format_file_size
from edupin.pinning.exceptions import (
    AdmissionDenied,
    ConfigurationError,
    PinningError,
    ProviderRejected,
    TransientNetworkError,
    UploadError,
    ValidationError,
)
from edupin.pinning.gateway import ResolvedUrl, UrlSource
from edupin.pinning.orchestrator import UploadResult
from edupin.pinning.provider import FileContent, PinnedFile, PinnedGroup
from edupin.pinning.usage import UsageSnapshot

__all__ = [
    "PinningClient",
    "UploadResult",
    "PinnedFile",
    "PinnedGroup",
    "FileContent",
    "ResolvedUrl",
    "UrlSource",
    "AdmissionDecision",
    "UsageSnapshot",
    "ProviderCapabilities",
    "PlanTier",
    "Visibility",
    "format_file_size",
    "PinningError",
    "ConfigurationError",
    "ValidationError",
    "AdmissionDenied",
    "TransientNetworkError",
    "ProviderRejected",
    "UploadError",
]
