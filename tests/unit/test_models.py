"""Tests for core data models."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from postcap.captions.exceptions import DegradationReason
from postcap.captions.models import (
    DEFAULT_MODELS,
    CaptionProvider,
    CaptionRequest,
    CaptionResult,
    EncodedImage,
    ProviderConfig,
)
from postcap.captions.providers import MockCaptionProvider


class TestProviderConfig:
    def test_defaults(self):
        config = ProviderConfig()

        assert config.provider == "openai"
        assert config.timeout == 30.0
        assert config.max_requests_per_minute == 10
        assert config.max_requests_per_hour == 100
        assert config.max_image_bytes == 10 * 1024 * 1024
        assert config.rate_limit_scope == "global"

    @pytest.mark.parametrize("key", [None, "", "   "])
    def test_missing_or_blank_key_is_unconfigured(self, key):
        config = ProviderConfig(api_key=key)

        assert config.api_key is None
        assert config.is_configured is False

    def test_key_makes_configured(self):
        assert ProviderConfig(api_key="sk-1").is_configured is True

    def test_mock_needs_no_key(self):
        assert ProviderConfig(provider="mock").is_configured is True

    def test_resolved_model_uses_provider_default(self):
        assert ProviderConfig(provider="huggingface").resolved_model == (
            DEFAULT_MODELS["huggingface"]
        )
        assert ProviderConfig(model="gpt-4o").resolved_model == "gpt-4o"

    def test_resolved_model_for_unknown_provider_is_empty(self):
        assert ProviderConfig(provider="custom").resolved_model == ""

    def test_frozen(self):
        config = ProviderConfig(api_key="sk-1")

        with pytest.raises(ValidationError):
            config.api_key = "sk-2"

    def test_model_copy_updates(self):
        config = ProviderConfig(api_key="sk-1")

        updated = config.model_copy(update={"max_requests_per_minute": 2})

        assert updated.max_requests_per_minute == 2
        assert config.max_requests_per_minute == 10

    @pytest.mark.parametrize(
        "field,value",
        [("timeout", 0), ("max_requests_per_minute", -1), ("max_image_bytes", 0)],
    )
    def test_rejects_out_of_range(self, field, value):
        with pytest.raises(ValidationError):
            ProviderConfig(**{field: value})

    def test_rejects_unknown_scope(self):
        with pytest.raises(ValidationError):
            ProviderConfig(rate_limit_scope="tenant")


class TestCaptionResult:
    def test_trims_captions(self):
        result = CaptionResult(captions=["  hi  "], source="provider")

        assert result.captions == ["hi"]
        assert result.is_fallback is False

    def test_rejects_blank_caption(self):
        with pytest.raises(ValidationError):
            CaptionResult(captions=["ok", "  "], source="provider")

    @pytest.mark.parametrize("captions", [[], ["a", "b", "c", "d"]])
    def test_rejects_wrong_cardinality(self, captions):
        with pytest.raises(ValidationError):
            CaptionResult(captions=captions, source="provider")

    def test_fallback_result(self):
        result = CaptionResult(
            captions=["a", "b", "c"],
            source="fallback",
            provider_error_class="QuotaExceeded",
            degradation_reason=DegradationReason.PROVIDER_ERROR,
        )

        assert result.is_fallback is True
        assert result.degradation_reason == "provider_error"

    def test_rejects_unknown_source(self):
        with pytest.raises(ValidationError):
            CaptionResult(captions=["a"], source="cache")


class TestCaptionRequest:
    def test_path_image(self):
        request = CaptionRequest(caller_id="u1", image=Path("/uploads/a.jpg"))

        assert request.image == Path("/uploads/a.jpg")
        assert request.mime_type is None

    def test_bytes_image(self):
        request = CaptionRequest(caller_id="u1", image=b"\x89PNG", mime_type="image/png")

        assert request.image == b"\x89PNG"


def test_encoded_image_data_url():
    image = EncodedImage(payload="QUJD", mime_type="image/png", size_bytes=3)

    assert image.data_url == "data:image/png;base64,QUJD"


def test_mock_provider_satisfies_protocol():
    assert isinstance(MockCaptionProvider(), CaptionProvider)
