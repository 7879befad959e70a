"""Content sources and upload request models."""

import io
import os
from abc import ABC, abstractmethod
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Dict, Iterator, List, Optional, Union


class Visibility(str, Enum):
    """Target network for pinned content."""

    PUBLIC = "public"
    PRIVATE = "private"


class SizeBucket(str, Enum):
    """Size classification relative to the configured thresholds."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    OVER_LIMIT = "over_limit"


def format_file_size(size_bytes: Optional[float]) -> str:
    """Render a byte count for humans, e.g. ``10.5 MB``."""
    if not size_bytes or size_bytes <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(size_bytes)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {units[index]}"


class ContentSource(ABC):
    """Raw content handed to the client, decided once at the API boundary."""

    @property
    @abstractmethod
    def size(self) -> int:
        """Content length in bytes."""

    @abstractmethod
    def open(self):
        """Context manager yielding a readable binary file object positioned at 0."""


class BytesSource(ContentSource):
    """In-memory content."""

    def __init__(self, data: bytes):
        self.data = bytes(data)

    @property
    def size(self) -> int:
        return len(self.data)

    def open(self):
        return nullcontext(io.BytesIO(self.data))


class StreamSource(ContentSource):
    """A caller-owned binary stream; rewound before use, never closed here."""

    def __init__(self, stream: BinaryIO, size: Optional[int] = None):
        self.stream = stream
        self._size = size

    @property
    def size(self) -> int:
        if self._size is None:
            position = self.stream.tell()
            self.stream.seek(0, 2)  # Seek to end
            self._size = self.stream.tell()
            self.stream.seek(position)
        return self._size

    def open(self):
        self.stream.seek(0)
        return nullcontext(self.stream)


class PathSource(ContentSource):
    """A file on the local filesystem."""

    def __init__(self, path: Union[str, os.PathLike]):
        self.path = Path(path)

    @property
    def size(self) -> int:
        return self.path.stat().st_size

    @contextmanager
    def open(self) -> Iterator[BinaryIO]:
        with open(self.path, "rb") as f:
            yield f


def as_content_source(content: Union[ContentSource, bytes, bytearray, BinaryIO, str, os.PathLike]) -> ContentSource:
    """Wrap raw caller input into the matching ContentSource variant."""
    if isinstance(content, ContentSource):
        return content
    if isinstance(content, (bytes, bytearray, memoryview)):
        return BytesSource(bytes(content))
    if isinstance(content, (str, os.PathLike)):
        return PathSource(content)
    if hasattr(content, "read") and hasattr(content, "seek"):
        return StreamSource(content)
    raise TypeError(f"Unsupported content type: {type(content).__name__}")


@dataclass
class UploadRequest:
    """Everything the caller supplies for one upload."""

    source: ContentSource
    filename: str
    declared_media_type: Optional[str] = None
    visibility: Visibility = Visibility.PUBLIC
    group_id: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return self.source.size


@dataclass
class NormalizedContent:
    """An upload request with a resolved, specific media type."""

    request: UploadRequest
    media_type: str
    size: int
    size_bucket: SizeBucket
    warnings: List[str] = field(default_factory=list)
    compression_recommended: bool = False

    @property
    def filename(self) -> str:
        return self.request.filename

    @property
    def visibility(self) -> Visibility:
        return self.request.visibility
