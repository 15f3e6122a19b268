import functools
import inspect
import traceback
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar, cast

from postcap.captions.logging import log_error

if TYPE_CHECKING:
    from postcap.captions.models import EncodedImage

AnyDict = dict[str, Any]

F = TypeVar("F", bound=Callable[..., Any])


class DegradationReason(str, Enum):
    """Why a caption result was served from the fallback source."""

    UNCONFIGURED = "unconfigured"
    RATE_LIMITED = "rate_limited"
    PROVIDER_ERROR = "provider_error"
    READ_ERROR = "read_error"


class CaptionException(Exception):
    """Base class for all exceptions raised by postcap-captions.

    Carries structured context (provider, model, request ID, raw provider
    response) so a failure can be logged with everything needed to debug it.

    Attributes:
        message: Human-readable error description.
        provider: Provider identifier (e.g. ``"openai"``, ``"huggingface"``).
        model: Model name at the time of the error.
        request_id: Provider-assigned request ID, if one was issued.
        raw_response: Unmodified provider response payload, if available.
    """

    message: str
    provider: str | None
    model: str | None
    request_id: str | None
    raw_response: AnyDict | None

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        model: str | None = None,
        request_id: str | None = None,
        raw_response: AnyDict | None = None,
    ):
        self.message = message
        self.provider = provider
        self.model = model
        self.request_id = request_id
        self.raw_response = raw_response
        super().__init__(message)


# ==================== Caller-side errors (propagate) ====================


class InvalidReferenceError(CaptionException):
    """Raised when the image reference itself is unusable.

    Signals a defect upstream of the caption service (stale path, traversal
    attempt, oversize upload). Never masked by fallback captions.
    """


class ImageNotFoundError(InvalidReferenceError):
    """Raised when a path-based image reference does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Image file not found: {path}")
        self.path = path


class UnsafePathError(InvalidReferenceError):
    """Raised when a path resolves outside the authorized upload root."""

    def __init__(self, path: str):
        super().__init__("Invalid file path")
        self.path = path


class ImageTooLargeError(InvalidReferenceError):
    """Raised when an image exceeds the configured size cap."""

    def __init__(self, size_bytes: int, max_bytes: int):
        super().__init__(
            f"Image is {size_bytes} bytes, larger than the {max_bytes} byte limit"
        )
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes


class ImageReadError(CaptionException):
    """Raised when an existing image cannot be read (permissions, I/O).

    Degrades to fallback captions rather than propagating.
    """


# ==================== Provider taxonomy (degrade) ====================


class ProviderError(CaptionException):
    """Raised when the inference provider call fails.

    Subclasses classify the failure; the base class itself is used for
    failures that match no known category.
    """

    error_class: str = "Unclassified"


class ProviderUnauthenticatedError(ProviderError):
    """Bad or missing provider credential (401/403)."""

    error_class = "Unauthenticated"


class ProviderQuotaExceededError(ProviderError):
    """Provider-side throttling (429), distinct from the local limiter."""

    error_class = "QuotaExceeded"


class ProviderBadInputError(ProviderError):
    """Provider rejected the payload (400/413/415/422)."""

    error_class = "BadInput"


class ProviderNoContentError(ProviderError):
    """Provider answered without usable text."""

    error_class = "NoContent"


class ProviderUnreachableError(ProviderError):
    """Network failure, timeout, or provider-side 5xx.

    Attributes:
        timeout_seconds: The timeout that was exceeded, when the cause was one.
    """

    error_class = "Unreachable"

    timeout_seconds: float | None

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        model: str | None = None,
        request_id: str | None = None,
        raw_response: AnyDict | None = None,
        timeout_seconds: float | None = None,
    ):
        super().__init__(message, provider, model, request_id, raw_response)
        self.timeout_seconds = timeout_seconds


def classify_status_code(status_code: int) -> type[ProviderError]:
    """Map a provider HTTP status code onto the provider error taxonomy."""
    if status_code in (401, 403):
        return ProviderUnauthenticatedError
    if status_code == 429:
        return ProviderQuotaExceededError
    if status_code in (400, 404, 413, 415, 422):
        return ProviderBadInputError
    if status_code >= 500:
        return ProviderUnreachableError
    return ProviderError


def is_degradable_error(error: Exception) -> bool:
    """Determine if an error should be absorbed into fallback captions.

    Degradable (serve fallback captions):
    - Any ProviderError subclass
    - ImageReadError
    - Any other unexpected exception

    Not degradable (propagate to the caller):
    - InvalidReferenceError and its subclasses (missing file, unsafe path,
      oversize image)

    Args:
        error: Exception to classify

    Returns:
        True if the error should degrade to fallback, False otherwise
    """
    return not isinstance(error, InvalidReferenceError)


def handle_provider_errors(func: F) -> F:
    """Decorator that wraps unhandled exceptions in ``ProviderError``.

    Apply to provider ``call`` and ``call_async`` methods. Works with both
    sync and async functions automatically.

    Behaviour:
    - ``CaptionException`` subclasses propagate unchanged.
    - Any other exception is wrapped in ``ProviderError`` with the traceback
      captured in ``raw_response`` and logged at ERROR level.
    """

    def _wrap(self: Any, ex: Exception) -> ProviderError:
        provider = getattr(self, "provider_name", None)
        model = getattr(getattr(self, "config", None), "model", None)
        log_error(
            f"Unknown error while generating caption: {ex}",
            context={"provider": provider, "model": model},
            logger_name="postcap.captions.exceptions",
            exc_info=True,
        )
        return ProviderError(
            f"Unknown error while generating caption: {ex}",
            provider=provider,
            model=model,
            raw_response={
                "error": str(ex),
                "error_type": type(ex).__name__,
                "traceback": traceback.format_exc(),
            },
        )

    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(self: Any, image: "EncodedImage") -> str:
            try:
                return await func(self, image)
            except CaptionException:
                raise
            except Exception as ex:
                raise _wrap(self, ex) from ex

        return cast(F, async_wrapper)

    @functools.wraps(func)
    def sync_wrapper(self: Any, image: "EncodedImage") -> str:
        try:
            return func(self, image)
        except CaptionException:
            raise
        except Exception as ex:
            raise _wrap(self, ex) from ex

    return cast(F, sync_wrapper)
