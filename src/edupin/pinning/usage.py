"""Usage snapshots against the tiered quota model."""

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List

from edupin.core.config import Settings
from edupin.pinning.content import Visibility, format_file_size
from edupin.pinning.media_types import MediaClass, classify_media_type
from edupin.pinning.provider import PinnedFile


@dataclass(frozen=True)
class QuotaLimits:
    max_objects: int
    max_bytes: int

    @classmethod
    def free(cls, settings: Settings) -> "QuotaLimits":
        return cls(settings.FREE_TIER_MAX_OBJECTS, settings.FREE_TIER_MAX_BYTES)

    @classmethod
    def paid(cls, settings: Settings) -> "QuotaLimits":
        return cls(settings.PAID_TIER_MAX_OBJECTS, settings.PAID_TIER_MAX_BYTES)


@dataclass
class CategoryUsage:
    count: int = 0
    bytes: int = 0


def _percent(used: int, limit: int) -> float:
    if limit <= 0:
        return 100.0 if used > 0 else 0.0
    return used / limit * 100


@dataclass
class UsageSnapshot:
    """Object count and byte usage at one moment, with breakdowns."""

    used_count: int
    count_limit: int
    used_bytes: int
    bytes_limit: int
    by_media_class: Dict[str, CategoryUsage] = field(default_factory=dict)
    by_visibility: Dict[str, CategoryUsage] = field(default_factory=dict)

    @property
    def count_pct(self) -> float:
        return _percent(self.used_count, self.count_limit)

    @property
    def bytes_pct(self) -> float:
        return _percent(self.used_bytes, self.bytes_limit)

    @property
    def remaining_count(self) -> int:
        return max(self.count_limit - self.used_count, 0)

    @property
    def remaining_bytes(self) -> int:
        return max(self.bytes_limit - self.used_bytes, 0)

    @classmethod
    def from_files(cls, files: Iterable[PinnedFile], limits: QuotaLimits) -> "UsageSnapshot":
        by_media_class = {media_class.value: CategoryUsage() for media_class in MediaClass}
        by_visibility = {visibility.value: CategoryUsage() for visibility in Visibility}
        used_count = 0
        used_bytes = 0

        for pinned in files:
            used_count += 1
            used_bytes += pinned.size
            for bucket in (
                by_media_class[classify_media_type(pinned.mime_type).value],
                by_visibility[pinned.visibility.value],
            ):
                bucket.count += 1
                bucket.bytes += pinned.size

        return cls(
            used_count=used_count,
            count_limit=limits.max_objects,
            used_bytes=used_bytes,
            bytes_limit=limits.max_bytes,
            by_media_class=by_media_class,
            by_visibility=by_visibility,
        )

    def project(self, additional_bytes: int, additional_objects: int = 1) -> "UsageSnapshot":
        """Usage after adding content, limits and breakdowns unchanged."""
        return replace(
            self,
            used_count=self.used_count + additional_objects,
            used_bytes=self.used_bytes + additional_bytes,
        )

    def summary(self) -> str:
        return (
            f"{format_file_size(self.used_bytes)} / {format_file_size(self.bytes_limit)}, "
            f"{self.used_count} / {self.count_limit} files"
        )


@dataclass
class UsageAdvice:
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


def usage_advice(
    snapshot: UsageSnapshot,
    warn_threshold_pct: float = 80.0,
    recommend_threshold_pct: float = 70.0,
) -> UsageAdvice:
    """Warnings and recommendations for the current usage level."""
    advice = UsageAdvice()

    if snapshot.bytes_pct > 90:
        advice.warnings.append("Storage is almost full! Delete content you no longer need.")
    elif snapshot.bytes_pct > warn_threshold_pct:
        advice.warnings.append(f"Storage is more than {warn_threshold_pct:g}% full.")

    if snapshot.count_pct > 90:
        advice.warnings.append("File count limit almost reached!")
    elif snapshot.count_pct > warn_threshold_pct:
        advice.warnings.append(f"File count is more than {warn_threshold_pct:g}% of the limit.")

    if snapshot.bytes_pct > recommend_threshold_pct:
        advice.recommendations.extend(
            [
                "Consider compressing videos to save space",
                "Upload videos in 720p instead of 1080p",
                "Delete unused content",
            ]
        )
    elif snapshot.count_pct > recommend_threshold_pct:
        advice.recommendations.append("Delete unused content")

    return advice
