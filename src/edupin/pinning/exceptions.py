"""Custom exceptions for the pinning client."""

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from edupin.pinning.admission import AdmissionDecision


class UploadStage(str, Enum):
    """Orchestrator stages, in execution order."""

    VALIDATE = "validate"
    ADMIT = "admit"
    SEND = "send"
    RESOLVE_URLS = "resolve_urls"


class FailureKind(str, Enum):
    """Classification of a failed network attempt."""

    TIMEOUT = "timeout"
    NETWORK = "network"
    CLIENT_ERROR = "client_error"  # HTTP 4xx
    SERVER_ERROR = "server_error"  # HTTP 5xx


class ValidationCode(str, Enum):
    """Caller-fixable content problems."""

    EMPTY_FILE = "EMPTY_FILE"
    MISSING_NAME = "MISSING_NAME"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"


class PinningError(Exception):
    """Base exception for the pinning client.

    Every error carries a human-readable ``reason`` and, where the caller
    can do something about it, a remediation ``hint``. ``stage`` is filled
    in by the upload orchestrator when the error terminates an upload.
    """

    def __init__(self, reason: str, hint: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.hint = hint
        self.stage: Optional[UploadStage] = None

    def __str__(self) -> str:
        if self.hint:
            return f"{self.reason} ({self.hint})"
        return self.reason


class ConfigurationError(PinningError):
    """Exception raised when the client cannot be built from its settings."""
    pass


class ValidationError(PinningError):
    """Exception raised when content fails normalization."""

    def __init__(self, code: ValidationCode, reason: str, hint: Optional[str] = None):
        super().__init__(reason, hint)
        self.code = code


class AdmissionDenied(PinningError):
    """Exception raised when an upload would exceed the quota."""

    def __init__(self, decision: "AdmissionDecision"):
        reason = "; ".join(decision.warnings) or "Upload would exceed the storage quota"
        super().__init__(reason, "Free up quota by deleting unused content or reduce the file size")
        self.decision = decision


class TransientNetworkError(PinningError):
    """Exception raised on timeouts, connection failures and 5xx responses."""

    def __init__(
        self,
        reason: str,
        kind: FailureKind,
        status_code: Optional[int] = None,
        hint: Optional[str] = "Check connectivity and try again later",
    ):
        super().__init__(reason, hint)
        self.kind = kind
        self.status_code = status_code


class ProviderRejected(PinningError):
    """Exception raised on 4xx responses; never retried."""

    def __init__(self, reason: str, status_code: int, hint: Optional[str] = None):
        super().__init__(reason, hint)
        self.status_code = status_code
        self.kind = FailureKind.CLIENT_ERROR


class InvalidProviderResponse(PinningError):
    """Exception raised when a successful response lacks mandatory fields."""
    pass


class UploadError(PinningError):
    """Terminal orchestrator error wrapping an unexpected cause."""

    def __init__(self, stage: UploadStage, cause: BaseException):
        super().__init__(f"Upload failed during {stage.value}: {cause}")
        self.stage = stage
        self.cause = cause
