"""Caption service facade: throttling, validation, provider call, degradation.

Flow for one request::

    Idle -> LimiterChecked -> Validated -> Encoded -> ProviderCalled
         -> Normalized -> Done

``Degraded`` is reachable from the configuration check, the limiter, image
read failures and every provider failure, and ends in ``Done`` with fallback
captions. Only an invalid image reference (unsafe path, missing file,
oversize image) ends in an exception.
"""

import asyncio
import os
from pathlib import Path

from postcap.captions.encoder import ImageEncoder
from postcap.captions.exceptions import (
    DegradationReason,
    ProviderError,
    UnsafePathError,
    is_degradable_error,
)
from postcap.captions.fallback import FallbackCaptionSource
from postcap.captions.logging import log_debug, log_info, log_warning
from postcap.captions.models import (
    CaptionProvider,
    CaptionRequest,
    CaptionResult,
    EncodedImage,
    ImageRef,
    ProviderConfig,
    RateLimitStatus,
)
from postcap.captions.normalizer import normalize
from postcap.captions.path_guard import PathGuard
from postcap.captions.rate_limiter import (
    KeyedSlidingWindowLimiter,
    SlidingWindowLimiter,
)
from postcap.captions.registry import get_provider

_LOGGER_NAME = "postcap.captions.service"


class CaptionService:
    """Produces captions for uploaded images, never failing on provider trouble.

    Construct one instance at process start and hand it to the routing layer.
    Everything except the limiter is read-only after construction, so the
    instance is safe to share between concurrent requests.

    Args:
        config: Frozen provider configuration.
        upload_root: Authorized directory for path-based image references.
        provider: Provider to call. Built from ``config`` when omitted (and
            only if the config is usable).
        fallback: Source of pre-authored captions.
        limiter: Global limiter, or a keyed one when
            ``config.rate_limit_scope == "caller"``.
        encoder: Image encoder; defaults to one capped at
            ``config.max_image_bytes``.
    """

    def __init__(
        self,
        config: ProviderConfig,
        upload_root: str | os.PathLike[str] = "uploads",
        provider: CaptionProvider | None = None,
        fallback: FallbackCaptionSource | None = None,
        limiter: SlidingWindowLimiter | KeyedSlidingWindowLimiter | None = None,
        encoder: ImageEncoder | None = None,
    ):
        self.config = config
        self.path_guard = PathGuard(upload_root)
        self.fallback = fallback or FallbackCaptionSource()
        self.encoder = encoder or ImageEncoder(max_bytes=config.max_image_bytes)

        if limiter is None:
            limiter_type = (
                KeyedSlidingWindowLimiter
                if config.rate_limit_scope == "caller"
                else SlidingWindowLimiter
            )
            limiter = limiter_type(
                config.max_requests_per_minute, config.max_requests_per_hour
            )
        self.limiter = limiter

        if provider is None and config.is_configured:
            provider = get_provider(config)
        self.provider = provider

    # ==================== Introspection ====================

    def is_configured(self) -> bool:
        """Whether provider calls can be made at all."""
        return self.provider is not None and self.config.is_configured

    @property
    def caption_count(self) -> int:
        """Captions per result: the provider's cardinality, 3 when unconfigured."""
        return self.provider.caption_count if self.provider is not None else 3

    def rate_limit_status(self, caller_id: str | None = None) -> RateLimitStatus:
        if isinstance(self.limiter, KeyedSlidingWindowLimiter):
            return self.limiter.status(caller_id or "")
        return self.limiter.status()

    # ==================== Pipeline steps ====================

    def _degraded(
        self,
        reason: DegradationReason,
        error: Exception | None = None,
    ) -> CaptionResult:
        error_class = error.error_class if isinstance(error, ProviderError) else None
        if error is not None and error_class is None:
            error_class = type(error).__name__
        return CaptionResult(
            captions=self.fallback.next(self.caption_count),
            source="fallback",
            provider_error_class=error_class,
            degradation_reason=reason,
        )

    def _admit(self, caller_id: str) -> bool:
        if isinstance(self.limiter, KeyedSlidingWindowLimiter):
            admitted = self.limiter.admit(caller_id)
        else:
            admitted = self.limiter.admit()
        if not admitted:
            log_info(
                "Caption rate limit reached, serving fallback captions",
                context={"caller_id": caller_id},
                logger_name=_LOGGER_NAME,
            )
        return admitted

    def _validate_and_encode(
        self, image: ImageRef, mime_type: str | None
    ) -> EncodedImage:
        """Path-safety check (paths only) then encode.

        Raises:
            InvalidReferenceError: Unsafe path, missing file or oversize image
            ImageReadError: File exists but cannot be read
        """
        if not isinstance(image, (bytes, bytearray, memoryview)):
            if not self.path_guard.validate(image):
                raise UnsafePathError(str(image))
            image = Path(image)
        return self.encoder.encode(image, mime_type)

    def _on_encode_failure(
        self, caller_id: str, ex: Exception
    ) -> CaptionResult | None:
        """Degraded result for ``ex``, or None when it must propagate."""
        message = getattr(ex, "message", str(ex))
        if not is_degradable_error(ex):
            log_warning(
                "Rejected invalid image reference",
                context={"caller_id": caller_id, "error": message},
                logger_name=_LOGGER_NAME,
            )
            return None
        log_warning(
            "Could not read image, serving fallback captions",
            context={"caller_id": caller_id, "error": message},
            logger_name=_LOGGER_NAME,
        )
        return self._degraded(DegradationReason.READ_ERROR, ex)

    def _on_provider_failure(
        self, caller_id: str, provider: CaptionProvider, ex: Exception
    ) -> CaptionResult:
        if isinstance(ex, ProviderError):
            log_warning(
                "Caption provider failed, serving fallback captions",
                context={
                    "caller_id": caller_id,
                    "provider": provider.provider_name,
                    "error_class": ex.error_class,
                    "error": ex.message,
                },
                logger_name=_LOGGER_NAME,
            )
        else:
            log_warning(
                "Unexpected error during caption generation, serving fallback captions",
                context={
                    "caller_id": caller_id,
                    "provider": provider.provider_name,
                    "error_type": type(ex).__name__,
                    "error": str(ex),
                },
                logger_name=_LOGGER_NAME,
            )
        return self._degraded(DegradationReason.PROVIDER_ERROR, ex)

    def _gate(self, caller_id: str) -> CaptionProvider | CaptionResult:
        """Configuration check then limiter.

        Returns the provider to call, or an already-degraded result.
        """
        provider = self.provider
        if provider is None or not self.config.is_configured:
            log_debug(
                "Caption provider not configured, serving fallback captions",
                context={"caller_id": caller_id, "provider": self.config.provider},
                logger_name=_LOGGER_NAME,
            )
            return self._degraded(DegradationReason.UNCONFIGURED)

        if not self._admit(caller_id):
            return self._degraded(DegradationReason.RATE_LIMITED)
        return provider

    def _finish(
        self, caller_id: str, provider: CaptionProvider, raw: str
    ) -> CaptionResult:
        result = CaptionResult(
            captions=normalize(raw, provider.caption_count),
            source="provider",
        )
        log_info(
            "Generated captions",
            context={
                "caller_id": caller_id,
                "provider": provider.provider_name,
                "count": len(result.captions),
            },
            logger_name=_LOGGER_NAME,
        )
        return result

    # ==================== Public API ====================

    def generate(
        self,
        caller_id: str,
        image: ImageRef,
        mime_type: str | None = None,
    ) -> CaptionResult:
        """Generate captions for ``image`` on behalf of ``caller_id``.

        Args:
            caller_id: Authenticated caller; rate-limit key
            image: Upload path (``str``/``Path``) or raw image bytes
            mime_type: MIME type for buffers; overrides suffix inference for paths

        Returns:
            CaptionResult with 1 or 3 captions from the provider or fallback

        Raises:
            InvalidReferenceError: The image reference is unsafe, missing or too large
        """
        provider = self._gate(caller_id)
        if isinstance(provider, CaptionResult):
            return provider

        try:
            encoded = self._validate_and_encode(image, mime_type)
        except Exception as ex:
            degraded = self._on_encode_failure(caller_id, ex)
            if degraded is None:
                raise
            return degraded

        try:
            raw = provider.call(encoded)
            return self._finish(caller_id, provider, raw)
        except Exception as ex:
            if not is_degradable_error(ex):
                raise
            return self._on_provider_failure(caller_id, provider, ex)

    async def generate_async(
        self,
        caller_id: str,
        image: ImageRef,
        mime_type: str | None = None,
    ) -> CaptionResult:
        """Async variant of ``generate``; awaits the provider's ``call_async``.

        Reading a path-based image happens in a worker thread so the event
        loop is not blocked on disk I/O.
        """
        provider = self._gate(caller_id)
        if isinstance(provider, CaptionResult):
            return provider

        try:
            if isinstance(image, (bytes, bytearray, memoryview)):
                encoded = self._validate_and_encode(image, mime_type)
            else:
                encoded = await asyncio.to_thread(
                    self._validate_and_encode, image, mime_type
                )
        except Exception as ex:
            degraded = self._on_encode_failure(caller_id, ex)
            if degraded is None:
                raise
            return degraded

        try:
            raw = await provider.call_async(encoded)
            return self._finish(caller_id, provider, raw)
        except Exception as ex:
            if not is_degradable_error(ex):
                raise
            return self._on_provider_failure(caller_id, provider, ex)

    def handle(self, request: CaptionRequest) -> CaptionResult:
        return self.generate(request.caller_id, request.image, request.mime_type)

    async def handle_async(self, request: CaptionRequest) -> CaptionResult:
        return await self.generate_async(
            request.caller_id, request.image, request.mime_type
        )
