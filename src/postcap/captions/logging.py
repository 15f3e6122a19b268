"""Structured logging helpers for postcap-captions.

Messages are emitted through the standard library as
``"<message> | Context: {...}"``. Pass ``redact=True`` whenever the context
may hold credentials or image payloads.
"""

import logging
from typing import Any

_DEFAULT_LOGGER = "postcap.captions"

# A context key is masked when any of these appears in it (case-insensitive)
_SENSITIVE_KEYS = (
    "api_key",
    "apikey",
    "authorization",
    "password",
    "secret",
    "token",
    "credential",
    "auth",
)

_REDACTED = "***REDACTED***"

# Base64 payloads and data URLs are shortened to head...tail
_MAX_VALUE_CHARS = 100
_KEEP_CHARS = 50


def _redact_value(value: Any) -> Any:
    """Make a context value safe and short enough to log.

    Bytes become their length, pydantic models are dumped first, containers
    are walked recursively and long strings keep only their ends.
    """
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes: length={len(value)}>"
    if hasattr(value, "model_dump"):
        value = value.model_dump()
    if isinstance(value, dict):
        return {key: _redact_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_redact_value(item) for item in value]
    if isinstance(value, tuple):
        return tuple(_redact_value(item) for item in value)
    if isinstance(value, str) and len(value) > _MAX_VALUE_CHARS:
        return f"{value[:_KEEP_CHARS]}...{value[-_KEEP_CHARS:]}"
    return value


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in _SENSITIVE_KEYS)


def _redact_context(context: dict[str, Any] | None) -> dict[str, Any]:
    """Mask sensitive top-level keys and shorten every other value."""
    if not context:
        return {}
    return {
        key: _REDACTED if _is_sensitive(key) else _redact_value(value)
        for key, value in context.items()
    }


def _get_logger(logger_name: str) -> logging.Logger:
    return logging.getLogger(logger_name)


def _format(message: str, context: dict[str, Any] | None, redact: bool) -> str:
    if not context:
        return message
    if redact:
        context = _redact_context(context)
    return f"{message} | Context: {context}"


def log_debug(
    message: str,
    context: dict[str, Any] | None = None,
    logger_name: str = _DEFAULT_LOGGER,
    redact: bool = False,
) -> None:
    """Log at DEBUG with an optional context dict."""
    _get_logger(logger_name).debug(_format(message, context, redact))


def log_info(
    message: str,
    context: dict[str, Any] | None = None,
    logger_name: str = _DEFAULT_LOGGER,
    redact: bool = False,
) -> None:
    """Log at INFO with an optional context dict."""
    _get_logger(logger_name).info(_format(message, context, redact))


def log_warning(
    message: str,
    context: dict[str, Any] | None = None,
    logger_name: str = _DEFAULT_LOGGER,
    redact: bool = False,
) -> None:
    """Log at WARNING with an optional context dict."""
    _get_logger(logger_name).warning(_format(message, context, redact))


def log_error(
    message: str,
    context: dict[str, Any] | None = None,
    logger_name: str = _DEFAULT_LOGGER,
    redact: bool = False,
    exc_info: bool = False,
) -> None:
    """Log at ERROR with an optional context dict.

    Args:
        message: Human-readable summary
        context: Key/value details appended to the message
        logger_name: Dotted logger name, usually the module's ``_LOGGER_NAME``
        redact: Mask credentials and shorten payloads in ``context``
        exc_info: Attach the active exception's traceback
    """
    _get_logger(logger_name).error(
        _format(message, context, redact), exc_info=exc_info
    )


def configure_logging(level: str | int = "INFO") -> None:
    """Attach one stream handler to the ``postcap`` logger tree.

    Called by the application entry point only; importing the library never
    touches handlers.
    """
    root = logging.getLogger("postcap")
    root.setLevel(level)
    if root.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    root.addHandler(handler)


class ProviderLogger:
    """Logs with ``provider`` and ``model`` (and ``request_id``) always attached.

    Create one per provider call; once the provider answers, switch to
    ``with_request_id(...)`` so later lines can be matched to the provider's
    own records.
    """

    def __init__(
        self,
        provider: str,
        model: str,
        logger_name: str,
        request_id: str | None = None,
    ):
        self.provider = provider
        self.model = model
        self.logger_name = logger_name
        self.request_id = request_id

    def _build_context(self, extra: dict[str, Any] | None = None) -> dict[str, Any]:
        context: dict[str, Any] = {"provider": self.provider, "model": self.model}
        if self.request_id is not None:
            context["request_id"] = self.request_id
        context.update(extra or {})
        return context

    def with_request_id(self, request_id: str) -> "ProviderLogger":
        return ProviderLogger(
            self.provider, self.model, self.logger_name, request_id=request_id
        )

    def debug(
        self, message: str, extra: dict[str, Any] | None = None, redact: bool = False
    ) -> None:
        log_debug(
            message,
            context=self._build_context(extra),
            logger_name=self.logger_name,
            redact=redact,
        )

    def info(
        self, message: str, extra: dict[str, Any] | None = None, redact: bool = False
    ) -> None:
        log_info(
            message,
            context=self._build_context(extra),
            logger_name=self.logger_name,
            redact=redact,
        )

    def warning(
        self, message: str, extra: dict[str, Any] | None = None, redact: bool = False
    ) -> None:
        log_warning(
            message,
            context=self._build_context(extra),
            logger_name=self.logger_name,
            redact=redact,
        )

    def error(
        self,
        message: str,
        extra: dict[str, Any] | None = None,
        redact: bool = False,
        exc_info: bool = False,
    ) -> None:
        log_error(
            message,
            context=self._build_context(extra),
            logger_name=self.logger_name,
            redact=redact,
            exc_info=exc_info,
        )
