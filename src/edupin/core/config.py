"""Configuration management for EduPin Engine."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    ENV: str = "local"
    SERVICE_NAME: str = "edupin-engine"
    SERVICE_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # Provider Configuration
    PINATA_JWT: str = ""
    PINATA_API_URL: str = "https://api.pinata.cloud/v3"
    PINATA_UPLOAD_URL: str = "https://uploads.pinata.cloud/v3"
    PUBLIC_GATEWAY_URL: str = "https://gateway.pinata.cloud"
    DEDICATED_GATEWAY: str = ""  # Pre-configured dedicated gateway host, skips discovery
    DEDICATED_GATEWAY_SUFFIX: str = ".mypinata.cloud"

    # Request Executor
    BASE_TIMEOUT_MS: int = 120_000
    TIMEOUT_SCALE_FACTOR_PER_BYTE: float = 0.002  # milliseconds per payload byte
    METADATA_TIMEOUT_MS: int = 15_000
    PROBE_TIMEOUT_MS: int = 5_000
    GATEWAY_PROBE_TIMEOUT_MS: int = 3_000
    CONTENT_FETCH_TIMEOUT_MS: int = 30_000
    MAX_RETRY_ATTEMPTS: int = 3
    RETRY_BASE_DELAY_MS: int = 1_000

    # Content Policy
    ACCEPTED_MEDIA_TYPES: str = ""  # Comma-separated, empty = accept all
    MAX_CONTENT_SIZE_BYTES: int = 100 * 1024 * 1024
    SMALL_CONTENT_THRESHOLD_BYTES: int = 10 * 1024 * 1024
    MEDIUM_CONTENT_THRESHOLD_BYTES: int = 25 * 1024 * 1024
    LARGE_CONTENT_THRESHOLD_BYTES: int = 50 * 1024 * 1024

    # Quota Model
    SOFT_QUOTA_WARN_THRESHOLD_PCT: float = 80.0
    SOFT_QUOTA_RECOMMEND_THRESHOLD_PCT: float = 70.0
    FREE_TIER_MAX_OBJECTS: int = 500
    FREE_TIER_MAX_BYTES: int = 1024 * 1024 * 1024  # 1GB
    PAID_TIER_MAX_OBJECTS: int = 500_000
    PAID_TIER_MAX_BYTES: int = 1024 * 1024 * 1024 * 1024  # 1TB
    LISTING_PAGE_SIZE: int = 500

    # Signed URLs
    DEFAULT_SIGNED_URL_TTL_SECONDS: int = 3600

    @property
    def accepted_media_types(self) -> list[str]:
        """Parse ACCEPTED_MEDIA_TYPES into a list (empty list accepts everything)."""
        if not self.ACCEPTED_MEDIA_TYPES:
            return []
        return [mt.strip().lower() for mt in self.ACCEPTED_MEDIA_TYPES.split(",") if mt.strip()]

    @property
    def base_timeout_seconds(self) -> float:
        return self.BASE_TIMEOUT_MS / 1000

    @property
    def timeout_scale_seconds_per_byte(self) -> float:
        return self.TIMEOUT_SCALE_FACTOR_PER_BYTE / 1000

    @property
    def metadata_timeout_seconds(self) -> float:
        return self.METADATA_TIMEOUT_MS / 1000

    @property
    def probe_timeout_seconds(self) -> float:
        return self.PROBE_TIMEOUT_MS / 1000

    @property
    def gateway_probe_timeout_seconds(self) -> float:
        return self.GATEWAY_PROBE_TIMEOUT_MS / 1000

    @property
    def content_fetch_timeout_seconds(self) -> float:
        return self.CONTENT_FETCH_TIMEOUT_MS / 1000

    @property
    def retry_base_delay_seconds(self) -> float:
        return self.RETRY_BASE_DELAY_MS / 1000


# Singleton settings instance
settings = Settings()
