"""
Media type detection and classification.

Maps filename extensions to specific media types and classifies media
types into the broad classes used for usage breakdowns:
- video: course videos and other moving pictures
- image: photos, thumbnails, icons
- audio: recordings and music
- document: PDF and office formats
- text: plain text, CSV, JSON, XML
- other: anything else, including the generic binary type
"""

from enum import Enum
from typing import Dict, Optional

GENERIC_BINARY_TYPE = "application/octet-stream"

# Declared types that say nothing about the actual format
GENERIC_MEDIA_TYPES = frozenset(
    [
        GENERIC_BINARY_TYPE,
        "binary/octet-stream",
        "application/unknown",
    ]
)


class MediaClass(str, Enum):
    """Broad media classes for usage breakdowns."""

    VIDEO = "video"
    IMAGE = "image"
    AUDIO = "audio"
    DOCUMENT = "document"
    TEXT = "text"
    OTHER = "other"


# Extension to media type table
EXTENSION_MEDIA_TYPES: Dict[str, str] = {
    # Images
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "bmp": "image/bmp",
    "ico": "image/x-icon",
    # Documents
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    # Text
    "txt": "text/plain",
    "md": "text/markdown",
    "json": "application/json",
    "xml": "text/xml",
    "csv": "text/csv",
    # Audio
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "m4a": "audio/mp4",
    "flac": "audio/flac",
    # Video
    "mp4": "video/mp4",
    "avi": "video/x-msvideo",
    "mov": "video/quicktime",
    "webm": "video/webm",
    "mkv": "video/x-matroska",
    "flv": "video/x-flv",
    "wmv": "video/x-ms-wmv",
    "3gp": "video/3gpp",
    "m4v": "video/x-m4v",
    "ogv": "video/ogg",
    "f4v": "video/x-f4v",
    "asf": "video/x-ms-asf",
    "rm": "video/vnd.rn-realvideo",
    "rmvb": "video/vnd.rn-realvideo",
    "vob": "video/x-ms-vob",
}

# Exact media type to class mappings for types the prefix rules get wrong
MEDIA_CLASS_MAP: Dict[str, MediaClass] = {
    "application/pdf": MediaClass.DOCUMENT,
    "application/msword": MediaClass.DOCUMENT,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": MediaClass.DOCUMENT,
    "application/vnd.ms-excel": MediaClass.DOCUMENT,
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": MediaClass.DOCUMENT,
    "application/vnd.ms-powerpoint": MediaClass.DOCUMENT,
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": MediaClass.DOCUMENT,
    "application/json": MediaClass.TEXT,
    "application/xml": MediaClass.TEXT,
}

# Prefix-based classification for partial matches
MEDIA_PREFIX_MAP: Dict[str, MediaClass] = {
    "video/": MediaClass.VIDEO,
    "image/": MediaClass.IMAGE,
    "audio/": MediaClass.AUDIO,
    "text/": MediaClass.TEXT,
}


def canonical_media_type(media_type: Optional[str]) -> str:
    """Lowercase a media type and drop any parameters."""
    if not media_type:
        return ""
    return media_type.lower().split(";")[0].strip()


def is_generic_media_type(media_type: Optional[str]) -> bool:
    """
    Tell whether a declared media type is a placeholder rather than a format.

    Absent values, bare top-level names such as ``"video"`` or ``"image"``,
    wildcards like ``"video/*"`` and the known binary catch-alls all count
    as generic.

    Examples:
        >>> is_generic_media_type("video")
        True
        >>> is_generic_media_type("video/*")
        True
        >>> is_generic_media_type("video/mp4")
        False
    """
    canonical = canonical_media_type(media_type)
    if not canonical or "/" not in canonical:
        return True
    major, _, minor = canonical.partition("/")
    if not major or not minor or "*" in (major, minor):
        return True
    return canonical in GENERIC_MEDIA_TYPES


def file_extension(filename: str) -> str:
    """Return the lowercased extension of ``filename`` without the dot."""
    base = filename.replace("\\", "/").rsplit("/", 1)[-1]
    if "." not in base:
        return ""
    return base.rsplit(".", 1)[-1].lower()


def detect_media_type(filename: str) -> Optional[str]:
    """Look up the media type for ``filename`` by extension, or None."""
    return EXTENSION_MEDIA_TYPES.get(file_extension(filename))


def classify_media_type(media_type: Optional[str]) -> MediaClass:
    """
    Classify a media type into a media class.

    Examples:
        >>> classify_media_type("video/mp4")
        <MediaClass.VIDEO: 'video'>
        >>> classify_media_type("application/pdf")
        <MediaClass.DOCUMENT: 'document'>
        >>> classify_media_type("application/octet-stream")
        <MediaClass.OTHER: 'other'>
    """
    canonical = canonical_media_type(media_type)

    if canonical in MEDIA_CLASS_MAP:
        return MEDIA_CLASS_MAP[canonical]

    for prefix, media_class in MEDIA_PREFIX_MAP.items():
        if canonical.startswith(prefix):
            return media_class

    return MediaClass.OTHER
