"""Tests for content normalization."""

import pytest

from edupin.pinning.content import BytesSource, SizeBucket, UploadRequest
from edupin.pinning.exceptions import ValidationCode, ValidationError
from edupin.pinning.normalizer import ContentPolicy, normalize, resolve_media_type

MB = 1024 * 1024


class SizedSource(BytesSource):
    """Reports an arbitrary size without holding that many bytes."""

    def __init__(self, size: int):
        super().__init__(b"x")
        self._size = size

    @property
    def size(self) -> int:
        return self._size


def make_request(filename="lesson1.mp4", size=MB, declared=None) -> UploadRequest:
    return UploadRequest(source=SizedSource(size), filename=filename, declared_media_type=declared)


@pytest.fixture
def policy():
    return ContentPolicy()


@pytest.mark.parametrize("declared", ["video", "video/*", "*/*", "application/octet-stream"])
def test_generic_declared_type_resolved_from_extension(policy, declared):
    content = normalize(make_request("clip.mp4", declared=declared), policy)

    assert content.media_type == "video/mp4"
    assert content.size_bucket == SizeBucket.SMALL
    assert content.warnings == []


def test_missing_declared_type_resolved_from_extension(policy):
    content = normalize(make_request("notes.pdf"), policy)
    assert content.media_type == "application/pdf"


def test_specific_declared_type_wins(policy):
    content = normalize(make_request("clip.bin", declared="video/webm"), policy)
    assert content.media_type == "video/webm"


def test_unknown_extension_falls_back_to_binary(policy):
    content = normalize(make_request("data.xyz", declared="application/octet-stream"), policy)
    assert content.media_type == "application/octet-stream"


def test_normalization_is_deterministic(policy):
    first = normalize(make_request("lecture.mov", size=60 * MB, declared="video"), policy)
    second = normalize(make_request("lecture.mov", size=60 * MB, declared="video"), policy)

    assert first.media_type == second.media_type == "video/quicktime"
    assert first.size_bucket == second.size_bucket
    assert first.warnings == second.warnings


def test_empty_file_rejected(policy):
    with pytest.raises(ValidationError) as exc_info:
        normalize(make_request(size=0), policy)

    assert exc_info.value.code == ValidationCode.EMPTY_FILE
    assert exc_info.value.hint


@pytest.mark.parametrize("filename", ["", "   ", None])
def test_missing_name_rejected(policy, filename):
    with pytest.raises(ValidationError) as exc_info:
        normalize(make_request(filename=filename), policy)

    assert exc_info.value.code == ValidationCode.MISSING_NAME


def test_file_too_large_rejected(policy):
    with pytest.raises(ValidationError) as exc_info:
        normalize(make_request(size=101 * MB), policy)

    assert exc_info.value.code == ValidationCode.FILE_TOO_LARGE
    assert "100 MB" in exc_info.value.reason
    assert "reduce" in exc_info.value.hint.lower()


def test_file_at_ceiling_accepted(policy):
    content = normalize(make_request(size=100 * MB), policy)
    assert content.size_bucket == SizeBucket.LARGE


def test_unsupported_format_with_allowlist():
    policy = ContentPolicy(accepted_media_types=("video/mp4", "image/png"))

    with pytest.raises(ValidationError) as exc_info:
        normalize(make_request("unknown.xyz"), policy)

    assert exc_info.value.code == ValidationCode.UNSUPPORTED_FORMAT
    assert "application/octet-stream" in exc_info.value.reason
    assert "video/mp4" in exc_info.value.hint


def test_allowlist_accepts_listed_type():
    policy = ContentPolicy(accepted_media_types=("video/mp4",))
    content = normalize(make_request("clip.mp4", declared="video"), policy)
    assert content.media_type == "video/mp4"


@pytest.mark.parametrize(
    "size,bucket",
    [(10 * MB, SizeBucket.SMALL), (10 * MB + 1, SizeBucket.MEDIUM), (25 * MB + 1, SizeBucket.LARGE)],
)
def test_size_buckets(policy, size, bucket):
    assert normalize(make_request(size=size), policy).size_bucket == bucket


def test_medium_large_file_gets_compression_advice(policy):
    content = normalize(make_request(size=30 * MB), policy)

    assert len(content.warnings) == 1
    assert "compress" in content.warnings[0].lower()
    assert content.compression_recommended is True


def test_compression_flag_matches_advice_below_medium_threshold(policy):
    content = normalize(make_request(size=20 * MB), policy)

    assert content.warnings == []
    assert content.compression_recommended is False


def test_large_file_warnings_are_advisory(policy):
    content = normalize(make_request(size=60 * MB), policy)

    assert content.compression_recommended is True
    assert any("Large file (60 MB)" in warning for warning in content.warnings)


def test_resolve_media_type_ignores_parameters():
    assert resolve_media_type("a.txt", "text/plain; charset=utf-8") == "text/plain"
