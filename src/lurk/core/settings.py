"""Application settings and configuration.

This module defines all configuration options for the Lurk application.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RateLimitRule(BaseModel):
    """Limits applied to one rate-limited action.

    Attributes:
        window_seconds: Refill window; the bucket is topped up once it elapses.
        cap: Requests allowed inside one window.
        block_seconds: Cool-down applied once the cap is exceeded.
    """

    window_seconds: float = Field(gt=0)
    cap: int = Field(ge=1)
    block_seconds: float = Field(ge=0)


def _default_rate_limits() -> dict[str, RateLimitRule]:
    return {
        "create-thread": RateLimitRule(window_seconds=60, cap=5, block_seconds=60),
        "add-reply": RateLimitRule(window_seconds=60, cap=20, block_seconds=60),
        "add-reaction": RateLimitRule(window_seconds=60, cap=60, block_seconds=30),
        "submit-report": RateLimitRule(window_seconds=600, cap=5, block_seconds=600),
        "chat-message": RateLimitRule(window_seconds=60, cap=30, block_seconds=30),
    }


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    Complex values (lists, ``RATE_LIMITS``) are read as JSON.
    """

    # Application metadata
    app_name: str = Field(default="Lurk", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Content lifecycle
    thread_ttl_seconds: int = Field(default=3600, gt=0, alias="THREAD_TTL_SECONDS")
    purge_interval_seconds: float = Field(default=60.0, gt=0, alias="PURGE_INTERVAL_SECONDS")
    title_max_length: int = Field(default=200, alias="TITLE_MAX_LENGTH")
    body_max_length: int = Field(default=5000, alias="BODY_MAX_LENGTH")
    reply_max_length: int = Field(default=2000, alias="REPLY_MAX_LENGTH")
    reaction_emojis: list[str] = Field(
        default=["👍", "❤️", "😂", "😮", "🔥"],
        alias="REACTION_EMOJIS",
    )

    # Uploads
    upload_dir: str = Field(default="./uploads", alias="UPLOAD_DIR")
    upload_url_prefix: str = Field(default="/uploads", alias="UPLOAD_URL_PREFIX")
    max_upload_bytes: int = Field(default=5 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")
    allowed_image_types: list[str] = Field(
        default=["image/jpeg", "image/png", "image/webp", "image/gif"],
        alias="ALLOWED_IMAGE_TYPES",
    )

    # Reports
    reports_path: str = Field(default="./reports.jsonl", alias="REPORTS_PATH")
    report_details_max_length: int = Field(default=2000, alias="REPORT_DETAILS_MAX_LENGTH")

    # Abuse throttling
    rate_limits: dict[str, RateLimitRule] = Field(
        default_factory=_default_rate_limits,
        alias="RATE_LIMITS",
    )
    trust_forwarded_for: bool = Field(default=False, alias="TRUST_FORWARDED_FOR")

    # Real-time channel
    chat_bucket_capacity: int = Field(default=5, ge=1, alias="CHAT_BUCKET_CAPACITY")
    chat_refill_per_second: float = Field(default=1.0, gt=0, alias="CHAT_REFILL_PER_SECOND")
    chat_max_length: int = Field(default=500, alias="CHAT_MAX_LENGTH")
    ws_queue_size: int = Field(default=256, ge=1, alias="WS_QUEUE_SIZE")
    video_name_max_length: int = Field(default=40, alias="VIDEO_NAME_MAX_LENGTH")

    # Anonymous names
    name_prefix: str = Field(default="ghost", alias="NAME_PREFIX")
    name_reservation_seconds: int = Field(default=12 * 3600, alias="NAME_RESERVATION_SECONDS")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_methods: list[str] = Field(default=["GET", "POST"], alias="CORS_ALLOW_METHODS")
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        populate_by_name=True,
        extra="ignore",
    )

    @property
    def public_config(self) -> dict[str, object]:
        """Return the subset of configuration that is safe to expose to clients."""
        return {
            "app": {"name": self.app_name, "version": self.app_version},
            "threads": {
                "ttlSeconds": self.thread_ttl_seconds,
                "purgeIntervalSeconds": self.purge_interval_seconds,
                "titleMaxLength": self.title_max_length,
                "bodyMaxLength": self.body_max_length,
                "replyMaxLength": self.reply_max_length,
                "reactions": list(self.reaction_emojis),
            },
            "uploads": {
                "maxBytes": self.max_upload_bytes,
                "types": list(self.allowed_image_types),
            },
            "rateLimits": {
                action: rule.model_dump() for action, rule in self.rate_limits.items()
            },
            "chat": {
                "capacity": self.chat_bucket_capacity,
                "refillPerSecond": self.chat_refill_per_second,
                "maxLength": self.chat_max_length,
            },
        }


settings = Settings()
