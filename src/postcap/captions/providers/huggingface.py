"""Hugging Face Inference provider for single-purpose image captioning.

Calls a dedicated image-to-text model (BLIP by default) over the hosted
Inference REST API using httpx. Returns one caption per image.
"""

from typing import Any, Literal

import httpx

from postcap.captions.exceptions import (
    CaptionException,
    ProviderError,
    ProviderNoContentError,
    ProviderUnreachableError,
    classify_status_code,
    handle_provider_errors,
)
from postcap.captions.logging import ProviderLogger
from postcap.captions.models import EncodedImage, ProviderConfig

HUGGINGFACE_API_BASE = "https://router.huggingface.co/hf-inference"

_LOGGER_NAME = "postcap.captions.providers.huggingface"


class HuggingFaceCaptionProvider:
    """Dedicated captioning provider backed by the Hugging Face Inference API."""

    provider_name = "huggingface"
    caption_count = 1

    def __init__(self, config: ProviderConfig):
        self.config = config

    @property
    def model(self) -> str:
        return self.config.resolved_model

    @property
    def endpoint(self) -> str:
        return f"/models/{self.model}"

    def _get_client(
        self, client_type: Literal["sync", "async"]
    ) -> httpx.Client | httpx.AsyncClient:
        """Create an httpx client with auth headers and the configured timeout."""
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Accept": "application/json",
        }
        base_url = self.config.base_url or HUGGINGFACE_API_BASE

        if client_type == "async":
            return httpx.AsyncClient(
                base_url=base_url, headers=headers, timeout=self.config.timeout
            )
        return httpx.Client(
            base_url=base_url, headers=headers, timeout=self.config.timeout
        )

    def _convert_request(self, image: EncodedImage) -> dict[str, Any]:
        return {"inputs": image.payload}

    def _convert_response(self, body: Any) -> str:
        """Pull ``generated_text`` out of the list-or-dict response shape."""
        if isinstance(body, list):
            body = body[0] if body else {}
        text = body.get("generated_text") if isinstance(body, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise ProviderNoContentError(
                "Hugging Face returned no generated_text",
                provider=self.provider_name,
                model=self.model,
                raw_response={"body": body},
            )
        return text

    def _handle_error(self, ex: Exception) -> CaptionException:
        """Classify httpx errors into the provider error taxonomy."""
        if isinstance(ex, CaptionException):
            return ex

        if isinstance(ex, httpx.TimeoutException):
            return ProviderUnreachableError(
                f"Request timed out: {ex}",
                provider=self.provider_name,
                model=self.model,
                raw_response={"error": str(ex)},
                timeout_seconds=self.config.timeout,
            )

        if isinstance(ex, httpx.HTTPStatusError):
            status_code = ex.response.status_code
            error_type = classify_status_code(status_code)
            return error_type(
                f"HTTP {status_code}: {ex.response.text}",
                provider=self.provider_name,
                model=self.model,
                raw_response={
                    "status_code": status_code,
                    "response": ex.response.text,
                },
            )

        if isinstance(ex, httpx.TransportError):
            return ProviderUnreachableError(
                f"Connection error: {ex}",
                provider=self.provider_name,
                model=self.model,
                raw_response={"error": str(ex)},
            )

        # Non-JSON bodies and other surprises
        return ProviderError(
            f"Error during caption generation: {ex}",
            provider=self.provider_name,
            model=self.model,
            raw_response={"error": str(ex), "error_type": type(ex).__name__},
        )

    @handle_provider_errors
    async def call_async(self, image: EncodedImage) -> str:
        """Caption ``image`` with the dedicated model (async)."""
        logger = ProviderLogger(self.provider_name, self.model, _LOGGER_NAME)
        logger.info("Submitting request to Hugging Face", {"endpoint": self.endpoint})
        try:
            async with self._get_client("async") as client:
                response = await client.post(
                    self.endpoint, json=self._convert_request(image)
                )
                response.raise_for_status()
                text = self._convert_response(response.json())
        except Exception as ex:
            raise self._handle_error(ex)
        logger.debug("Caption received", {"caption": text})
        return text

    @handle_provider_errors
    def call(self, image: EncodedImage) -> str:
        """Caption ``image`` with the dedicated model (sync)."""
        logger = ProviderLogger(self.provider_name, self.model, _LOGGER_NAME)
        logger.info("Submitting request to Hugging Face", {"endpoint": self.endpoint})
        try:
            with self._get_client("sync") as client:
                response = client.post(
                    self.endpoint, json=self._convert_request(image)
                )
                response.raise_for_status()
                text = self._convert_response(response.json())
        except Exception as ex:
            raise self._handle_error(ex)
        logger.debug("Caption received", {"caption": text})
        return text
