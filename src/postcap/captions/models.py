"""Core data models for caption generation."""

from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Protocol, TypeAlias, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from postcap.captions.exceptions import DegradationReason

CaptionSource = Literal["provider", "fallback"]
RateLimitScope = Literal["global", "caller"]

ImageRef: TypeAlias = Path | str | bytes
"""A filesystem path (``Path`` or ``str``) or an in-memory image buffer."""

DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-4o-mini",
    "huggingface": "Salesforce/blip-image-captioning-large",
    "mock": "mock-captioner",
}

DEFAULT_MAX_IMAGE_BYTES = 10 * 1024 * 1024


# ==================== Configuration ====================


class ProviderConfig(BaseModel):
    """Process-wide provider configuration, loaded once at startup.

    Frozen: construct a new instance (or ``model_copy(update=...)``) to change
    a field. A missing or empty ``api_key`` puts the service into
    always-fallback mode instead of failing startup.

    Example:
        ```python
        config = ProviderConfig(
            provider="openai",
            model="gpt-4o-mini",
            api_key="sk-...",
            max_requests_per_minute=10,
            max_requests_per_hour=100,
        )
        ```
    """

    model_config = ConfigDict(frozen=True)

    provider: str = Field(
        default="openai",
        description="Registered provider name: 'openai', 'huggingface' or 'mock'.",
    )
    model: str = Field(
        default="",
        description="Model identifier; empty selects the provider's default.",
    )
    api_key: str | None = Field(
        default=None, description="Provider credential. Absent means degraded mode."
    )
    base_url: str | None = Field(
        default=None, description="Override the provider's base API URL."
    )
    timeout: float = Field(
        default=30.0, gt=0, description="Seconds before a provider call is abandoned."
    )
    max_requests_per_minute: int = Field(default=10, ge=0)
    max_requests_per_hour: int = Field(default=100, ge=0)
    max_image_bytes: int = Field(default=DEFAULT_MAX_IMAGE_BYTES, gt=0)
    rate_limit_scope: RateLimitScope = Field(
        default="global",
        description="'global' throttles the whole process, 'caller' each caller.",
    )

    @field_validator("api_key")
    @classmethod
    def _blank_key_is_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    @property
    def resolved_model(self) -> str:
        """Model identifier with the provider default applied."""
        return self.model or DEFAULT_MODELS.get(self.provider, "")

    @property
    def is_configured(self) -> bool:
        """Whether the provider can be called at all."""
        return self.provider == "mock" or self.api_key is not None


# ==================== Requests & Results ====================


class CaptionRequest(BaseModel):
    """One inbound caption request. Never persisted."""

    caller_id: str = Field(description="Authenticated caller, used as rate-limit key")
    image: Path | bytes = Field(description="Upload path or in-memory image buffer")
    mime_type: str | None = Field(
        default=None, description="MIME type; required in practice for buffers"
    )


class CaptionResult(BaseModel):
    """Captions produced for one request.

    ``captions`` always holds 1 or 3 non-empty, trimmed strings, depending on
    the configured provider's cardinality.
    """

    captions: list[str] = Field(min_length=1, max_length=3)
    source: CaptionSource
    provider_error_class: str | None = Field(
        default=None,
        description="Taxonomy name of the provider failure that caused fallback",
    )
    degradation_reason: DegradationReason | None = None

    @field_validator("captions")
    @classmethod
    def _captions_not_blank(cls, value: list[str]) -> list[str]:
        trimmed = [caption.strip() for caption in value]
        if any(not caption for caption in trimmed):
            raise ValueError("captions must be non-empty after trimming")
        return trimmed

    @property
    def is_fallback(self) -> bool:
        return self.source == "fallback"


class RateLimitStatus(BaseModel):
    """Snapshot of a sliding-window limiter, for observability."""

    requests_in_last_minute: int = Field(ge=0)
    requests_in_last_hour: int = Field(ge=0)
    max_requests_per_minute: int = Field(ge=0)
    max_requests_per_hour: int = Field(ge=0)


@dataclass(frozen=True)
class EncodedImage:
    """An image ready for embedding in a JSON request to a provider."""

    payload: str
    """Base64-encoded image bytes."""
    mime_type: str
    size_bytes: int

    @property
    def data_url(self) -> str:
        """``data:<mime>;base64,<payload>`` form used by vision chat APIs."""
        return f"data:{self.mime_type};base64,{self.payload}"


# ==================== Provider Protocol ====================


@runtime_checkable
class CaptionProvider(Protocol):
    """Capability interface implemented by every caption provider.

    Implementations make exactly one network call per invocation (no
    internal retries) and raise ``ProviderError`` subclasses on failure.
    """

    provider_name: str
    caption_count: int
    """How many captions the service returns for this provider (1 or 3)."""

    def call(self, image: EncodedImage) -> str:
        """Return the provider's raw text for ``image``."""
        ...

    async def call_async(self, image: EncodedImage) -> str:
        """Async variant of ``call``."""
        ...
