"""Postcap Captions - AI caption suggestions for social posts."""

import importlib.metadata

try:
    __version__ = importlib.metadata.version("postcap-captions")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.1.0"

from .exceptions import (
    CaptionException,
    DegradationReason,
    ImageNotFoundError,
    ImageReadError,
    ImageTooLargeError,
    InvalidReferenceError,
    ProviderBadInputError,
    ProviderError,
    ProviderNoContentError,
    ProviderQuotaExceededError,
    ProviderUnauthenticatedError,
    ProviderUnreachableError,
    UnsafePathError,
)
from .fallback import FallbackCaptionSource
from .models import (
    CaptionProvider,
    CaptionRequest,
    CaptionResult,
    EncodedImage,
    ProviderConfig,
    RateLimitStatus,
)
from .registry import get_provider, register_provider
from .service import CaptionService

__all__ = [
    # Service
    "CaptionService",
    "FallbackCaptionSource",
    "get_provider",
    "register_provider",
    # Models
    "CaptionProvider",
    "CaptionRequest",
    "CaptionResult",
    "EncodedImage",
    "ProviderConfig",
    "RateLimitStatus",
    # Exceptions
    "CaptionException",
    "DegradationReason",
    "InvalidReferenceError",
    "ImageNotFoundError",
    "UnsafePathError",
    "ImageTooLargeError",
    "ImageReadError",
    "ProviderError",
    "ProviderUnauthenticatedError",
    "ProviderQuotaExceededError",
    "ProviderBadInputError",
    "ProviderNoContentError",
    "ProviderUnreachableError",
]
