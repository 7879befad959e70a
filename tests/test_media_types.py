"""Unit tests for media type detection and classification."""

import pytest

from edupin.pinning.media_types import (
    MediaClass,
    canonical_media_type,
    classify_media_type,
    detect_media_type,
    file_extension,
    is_generic_media_type,
)


class TestGenericMediaTypes:
    """Test detection of placeholder media types."""

    @pytest.mark.parametrize(
        "declared",
        [None, "", "video", "image", "video/*", "image/*", "*/*", "application/octet-stream", "binary/octet-stream", "VIDEO/"],
    )
    def test_placeholders_are_generic(self, declared):
        assert is_generic_media_type(declared) is True

    @pytest.mark.parametrize("declared", ["video/mp4", "image/png", "Application/PDF; charset=binary"])
    def test_specific_types_are_not_generic(self, declared):
        assert is_generic_media_type(declared) is False

    def test_canonical_media_type_strips_parameters(self):
        assert canonical_media_type("Text/Plain; charset=UTF-8") == "text/plain"
        assert canonical_media_type(None) == ""


class TestDetectMediaType:
    """Test extension lookup."""

    def test_known_extensions(self):
        assert detect_media_type("clip.mp4") == "video/mp4"
        assert detect_media_type("slides.PPTX") == (
            "application/vnd.openxmlformats-officedocument.presentationml.presentation"
        )
        assert detect_media_type("cover.jpeg") == "image/jpeg"

    def test_unknown_extension(self):
        assert detect_media_type("archive.xyz") is None

    def test_no_extension(self):
        assert detect_media_type("README") is None

    def test_file_extension_uses_last_path_segment(self):
        assert file_extension("course.v2/lesson") == ""
        assert file_extension("C:\\videos\\intro.MOV") == "mov"


class TestClassifyMediaType:
    """Test media class assignment."""

    def test_video_types(self):
        assert classify_media_type("video/mp4") == MediaClass.VIDEO
        assert classify_media_type("video/x-matroska") == MediaClass.VIDEO

    def test_document_types(self):
        assert classify_media_type("application/pdf") == MediaClass.DOCUMENT
        assert classify_media_type("application/msword") == MediaClass.DOCUMENT

    def test_text_types(self):
        assert classify_media_type("application/json") == MediaClass.TEXT
        assert classify_media_type("text/csv") == MediaClass.TEXT

    def test_audio_and_image(self):
        assert classify_media_type("audio/mpeg") == MediaClass.AUDIO
        assert classify_media_type("image/webp") == MediaClass.IMAGE

    def test_unknown_falls_back_to_other(self):
        assert classify_media_type("application/octet-stream") == MediaClass.OTHER
        assert classify_media_type("") == MediaClass.OTHER
        assert classify_media_type(None) == MediaClass.OTHER
