"""
Environment-driven configuration for the caption service.

Reads environment variables (and an optional ``.env`` file) once at startup
and turns them into the frozen ``ProviderConfig`` the service runs on.
"""

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from postcap.captions.logging import log_warning
from postcap.captions.models import (
    DEFAULT_MAX_IMAGE_BYTES,
    ProviderConfig,
    RateLimitScope,
)

_LOGGER_NAME = "postcap.captions.settings"


class CaptionSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Provider selection
    provider: str = Field(
        default="openai",
        validation_alias=AliasChoices("CAPTION_PROVIDER", "provider"),
        description="'openai' (three captions) or 'huggingface' (one caption)",
    )

    # OpenAI
    openai_api_key: str | None = Field(
        default=None, validation_alias=AliasChoices("OPENAI_API_KEY", "openai_api_key")
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        validation_alias=AliasChoices("OPENAI_MODEL", "openai_model"),
    )
    openai_base_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_BASE_URL", "openai_base_url"),
    )

    # Hugging Face
    huggingface_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("HUGGINGFACE_API_KEY", "huggingface_api_key"),
    )
    huggingface_model: str = Field(
        default="Salesforce/blip-image-captioning-large",
        validation_alias=AliasChoices("HUGGINGFACE_MODEL", "huggingface_model"),
    )
    huggingface_base_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("HUGGINGFACE_BASE_URL", "huggingface_base_url"),
    )

    # ---- Provider protection ----
    max_requests_per_minute: int = Field(
        default=10,
        ge=0,
        validation_alias=AliasChoices(
            "OPENAI_MAX_REQUESTS_PER_MINUTE", "max_requests_per_minute"
        ),
    )
    max_requests_per_hour: int = Field(
        default=100,
        ge=0,
        validation_alias=AliasChoices(
            "OPENAI_MAX_REQUESTS_PER_HOUR", "max_requests_per_hour"
        ),
    )
    rate_limit_scope: RateLimitScope = Field(
        default="global",
        validation_alias=AliasChoices("CAPTION_RATE_LIMIT_SCOPE", "rate_limit_scope"),
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        validation_alias=AliasChoices("CAPTION_TIMEOUT_SECONDS", "timeout_seconds"),
    )
    max_image_bytes: int = Field(
        default=DEFAULT_MAX_IMAGE_BYTES,
        gt=0,
        validation_alias=AliasChoices("CAPTION_MAX_IMAGE_BYTES", "max_image_bytes"),
    )

    # ---- HTTP surface ----
    upload_dir: Path = Field(
        default=Path("uploads"),
        validation_alias=AliasChoices("UPLOAD_DIR", "upload_dir"),
        description="Authorized root for path-based image references",
    )
    endpoint_max_per_minute: int = Field(
        default=5,
        ge=0,
        validation_alias=AliasChoices(
            "CAPTION_ENDPOINT_MAX_PER_MINUTE", "endpoint_max_per_minute"
        ),
        description="Per-caller route throttle answering 429; 0 disables it",
    )
    host: str = Field(default="0.0.0.0", validation_alias=AliasChoices("HOST", "host"))
    port: int = Field(default=8000, validation_alias=AliasChoices("PORT", "port"))
    log_level: str = Field(
        default="INFO", validation_alias=AliasChoices("LOG_LEVEL", "log_level")
    )

    def to_provider_config(self) -> ProviderConfig:
        """Build the frozen provider config for the selected provider."""
        if self.provider == "huggingface":
            api_key = self.huggingface_api_key
            model = self.huggingface_model
            base_url = self.huggingface_base_url
            key_name = "HUGGINGFACE_API_KEY"
        else:
            api_key = self.openai_api_key
            model = self.openai_model
            base_url = self.openai_base_url
            key_name = "OPENAI_API_KEY"

        config = ProviderConfig(
            provider=self.provider,
            model=model if self.provider != "mock" else "",
            api_key=api_key,
            base_url=base_url,
            timeout=self.timeout_seconds,
            max_requests_per_minute=self.max_requests_per_minute,
            max_requests_per_hour=self.max_requests_per_hour,
            max_image_bytes=self.max_image_bytes,
            rate_limit_scope=self.rate_limit_scope,
        )
        if not config.is_configured:
            log_warning(
                f"{key_name} not set; caption generation will serve fallback captions",
                context={"provider": self.provider},
                logger_name=_LOGGER_NAME,
            )
        return config
