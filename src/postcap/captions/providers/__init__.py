"""Caption provider implementations."""

from postcap.captions.providers.huggingface import HuggingFaceCaptionProvider
from postcap.captions.providers.mock import MockCaptionProvider
from postcap.captions.providers.openai import OpenAIVisionCaptionProvider

__all__ = [
    "HuggingFaceCaptionProvider",
    "MockCaptionProvider",
    "OpenAIVisionCaptionProvider",
]
