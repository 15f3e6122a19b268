"""OpenAI vision-chat provider producing three captions per image."""

from __future__ import annotations

import traceback
from typing import TYPE_CHECKING, Any, Literal, overload

from postcap.captions.exceptions import (
    CaptionException,
    ProviderBadInputError,
    ProviderError,
    ProviderNoContentError,
    ProviderQuotaExceededError,
    ProviderUnauthenticatedError,
    ProviderUnreachableError,
    classify_status_code,
    handle_provider_errors,
)
from postcap.captions.logging import ProviderLogger, log_error
from postcap.captions.models import EncodedImage, ProviderConfig

if TYPE_CHECKING:
    from openai import AsyncOpenAI, OpenAI
    from openai.types.chat import ChatCompletion

try:
    from openai import (
        APIConnectionError,
        APIStatusError,
        APITimeoutError,
        AsyncOpenAI,
        AuthenticationError,
        BadRequestError,
        OpenAI,
        PermissionDeniedError,
        RateLimitError,
        UnprocessableEntityError,
    )

    has_openai = True
except ImportError:
    has_openai = False

_LOGGER_NAME = "postcap.captions.providers.openai"

CAPTION_PROMPT = (
    "Write exactly 3 different captions for this image, suitable for a social "
    "media post. Put each caption on its own line and keep each one under 150 "
    "characters. Give each a different tone: the first playful, the second "
    "inspirational, the third descriptive. Do not number the captions and do "
    "not add any other text."
)

MAX_TOKENS = 300
TEMPERATURE = 0.7


class OpenAIVisionCaptionProvider:
    """Conversational vision provider backed by OpenAI chat completions."""

    provider_name = "openai"
    caption_count = 3

    def __init__(self, config: ProviderConfig):
        if not has_openai:
            raise ImportError(
                "openai is required for the OpenAI provider. Install with: pip install openai"
            )
        self.config = config
        self._sync_client: OpenAI | None = None
        self._async_client: AsyncOpenAI | None = None

    @property
    def model(self) -> str:
        return self.config.resolved_model

    @overload
    def _get_client(self, client_type: Literal["async"]) -> "AsyncOpenAI": ...

    @overload
    def _get_client(self, client_type: Literal["sync"]) -> "OpenAI": ...

    def _get_client(self, client_type: str) -> "AsyncOpenAI | OpenAI":
        """
        Get or create the OpenAI client for this provider.

        Clients are created lazily and reused; ``max_retries=0`` keeps the
        provider at exactly one network attempt per call.
        """
        logger = ProviderLogger(self.provider_name, self.model, _LOGGER_NAME)
        if client_type == "async":
            if self._async_client is None:
                logger.debug(
                    "Creating new async OpenAI client",
                    {"base_url": self.config.base_url or "default"},
                )
                self._async_client = AsyncOpenAI(
                    api_key=self.config.api_key,
                    timeout=self.config.timeout,
                    base_url=self.config.base_url or None,
                    max_retries=0,
                )
            return self._async_client

        if self._sync_client is None:
            logger.debug(
                "Creating new sync OpenAI client",
                {"base_url": self.config.base_url or "default"},
            )
            self._sync_client = OpenAI(
                api_key=self.config.api_key,
                timeout=self.config.timeout,
                base_url=self.config.base_url or None,
                max_retries=0,
            )
        return self._sync_client

    def _convert_request(self, image: EncodedImage) -> dict[str, Any]:
        """Build the ``chat.completions.create`` keyword arguments."""
        return {
            "model": self.model,
            "max_tokens": MAX_TOKENS,
            "temperature": TEMPERATURE,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": CAPTION_PROMPT},
                        {"type": "image_url", "image_url": {"url": image.data_url}},
                    ],
                }
            ],
        }

    def _convert_response(self, completion: "ChatCompletion") -> str:
        """Extract the first choice's text, or raise ``ProviderNoContentError``."""
        request_id = getattr(completion, "id", None)
        content = None
        if completion.choices:
            content = completion.choices[0].message.content
        if not content or not content.strip():
            raise ProviderNoContentError(
                "OpenAI returned no caption content",
                provider=self.provider_name,
                model=self.model,
                request_id=request_id,
            )
        return content

    def _handle_error(self, ex: Exception) -> CaptionException:
        """Classify OpenAI SDK errors into the provider error taxonomy."""
        if isinstance(ex, CaptionException):
            return ex

        # Timeout must be checked before connection errors (it subclasses them)
        if has_openai and isinstance(ex, APITimeoutError):
            return ProviderUnreachableError(
                f"Request timed out: {ex}",
                provider=self.provider_name,
                model=self.model,
                raw_response={"error": str(ex)},
                timeout_seconds=self.config.timeout,
            )

        if has_openai and isinstance(ex, APIConnectionError):
            return ProviderUnreachableError(
                f"Connection error: {ex}",
                provider=self.provider_name,
                model=self.model,
                raw_response={"error": str(ex)},
            )

        if has_openai and isinstance(ex, APIStatusError):
            raw_response: dict[str, object] = {
                "status_code": ex.status_code,
                "message": ex.message,
                "type": getattr(ex, "type", None),
                "code": getattr(ex, "code", None),
            }
            if isinstance(ex, (AuthenticationError, PermissionDeniedError)):
                error_type: type[ProviderError] = ProviderUnauthenticatedError
            elif isinstance(ex, RateLimitError):
                error_type = ProviderQuotaExceededError
            elif isinstance(ex, (BadRequestError, UnprocessableEntityError)):
                error_type = ProviderBadInputError
            else:
                error_type = classify_status_code(ex.status_code)
            return error_type(
                ex.message,
                provider=self.provider_name,
                model=self.model,
                request_id=getattr(ex, "request_id", None),
                raw_response=raw_response,
            )

        log_error(
            f"OpenAI unknown error: {ex}",
            context={
                "provider": self.provider_name,
                "model": self.model,
                "error_type": type(ex).__name__,
            },
            logger_name=_LOGGER_NAME,
            exc_info=True,
        )
        return ProviderError(
            f"Error while generating captions: {ex}",
            provider=self.provider_name,
            model=self.model,
            raw_response={
                "error": str(ex),
                "error_type": type(ex).__name__,
                "traceback": traceback.format_exc(),
            },
        )

    @handle_provider_errors
    async def call_async(self, image: EncodedImage) -> str:
        """
        Ask the vision model for three captions (async).

        Args:
            image: Encoded image to caption

        Returns:
            Raw multi-line text of the first choice
        """
        logger = ProviderLogger(self.provider_name, self.model, _LOGGER_NAME)
        params = self._convert_request(image)
        logger.debug(
            "Starting API call",
            {"mime_type": image.mime_type, "size_bytes": image.size_bytes},
        )
        try:
            client = self._get_client("async")
            completion = await client.chat.completions.create(**params)
            logger = logger.with_request_id(completion.id)
            text = self._convert_response(completion)
        except Exception as ex:
            raise self._handle_error(ex)
        logger.info("Captions received", {"raw_text": text}, redact=True)
        return text

    @handle_provider_errors
    def call(self, image: EncodedImage) -> str:
        """
        Ask the vision model for three captions (sync).

        Args:
            image: Encoded image to caption

        Returns:
            Raw multi-line text of the first choice
        """
        logger = ProviderLogger(self.provider_name, self.model, _LOGGER_NAME)
        params = self._convert_request(image)
        logger.debug(
            "Starting API call",
            {"mime_type": image.mime_type, "size_bytes": image.size_bytes},
        )
        try:
            client = self._get_client("sync")
            completion = client.chat.completions.create(**params)
            logger = logger.with_request_id(completion.id)
            text = self._convert_response(completion)
        except Exception as ex:
            raise self._handle_error(ex)
        logger.info("Captions received", {"raw_text": text}, redact=True)
        return text
