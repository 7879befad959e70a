"""Tests for structured logging and error status mapping."""

import json
import logging
import sys

import pytest

from edupin.core.logging import CloudLoggingFormatter, cid_context, setup_logging
from edupin.main import status_for
from edupin.pinning.admission import AdmissionDecision
from edupin.pinning.exceptions import (
    AdmissionDenied,
    ConfigurationError,
    FailureKind,
    ProviderRejected,
    TransientNetworkError,
    UploadError,
    UploadStage,
    ValidationCode,
    ValidationError,
)


def make_record(msg="hello", exc_info=None, **extra):
    record = logging.LogRecord(
        name="edupin.pinning.executor",
        level=logging.WARNING,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_emits_single_line_json():
    line = CloudLoggingFormatter().format(make_record(attempt=2, call="upload"))

    assert "\n" not in line
    entry = json.loads(line)
    assert entry["severity"] == "WARNING"
    assert entry["message"] == "hello"
    assert entry["logger"] == "edupin.pinning.executor"
    assert entry["timestamp"].endswith("Z")
    assert entry["attempt"] == 2
    assert entry["call"] == "upload"
    assert "cid" not in entry


def test_formatter_includes_cid_from_context():
    token = cid_context.set("bafy-test-cid")
    try:
        entry = json.loads(CloudLoggingFormatter().format(make_record()))
    finally:
        cid_context.reset(token)

    assert entry["cid"] == "bafy-test-cid"


def test_formatter_includes_exception():
    try:
        raise RuntimeError("gateway exploded")
    except RuntimeError:
        record = make_record(exc_info=sys.exc_info())

    entry = json.loads(CloudLoggingFormatter().format(record))

    assert entry["exception_type"] == "RuntimeError"
    assert entry["exception_message"] == "gateway exploded"
    assert "Traceback" in entry["exception"]


def test_setup_logging_quiets_http_client_loggers():
    setup_logging()

    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("httpcore").level == logging.WARNING
    assert len(logging.getLogger().handlers) == 1


@pytest.mark.parametrize(
    "error,status",
    [
        (ValidationError(ValidationCode.EMPTY_FILE, "empty"), 400),
        (AdmissionDenied(AdmissionDecision(allowed=False, warnings=["full"])), 507),
        (ProviderRejected("Request rejected (401)", 401), 502),
        (TransientNetworkError("timed out", FailureKind.TIMEOUT), 503),
        (ConfigurationError("PINATA_JWT is not set"), 500),
    ],
)
def test_status_for_error_classes(error, status):
    assert status_for(error) == status


def test_status_for_wrapped_error_follows_cause():
    cause = TransientNetworkError("timed out", FailureKind.TIMEOUT)
    assert status_for(UploadError(UploadStage.SEND, cause)) == 503
    assert status_for(UploadError(UploadStage.SEND, RuntimeError("boom"))) == 500
