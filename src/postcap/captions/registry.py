"""Provider registry and provider resolution."""

from collections.abc import Callable

from postcap.captions.exceptions import CaptionException
from postcap.captions.logging import log_debug, log_error, log_info
from postcap.captions.models import CaptionProvider, ProviderConfig
from postcap.captions.providers import (
    HuggingFaceCaptionProvider,
    MockCaptionProvider,
    OpenAIVisionCaptionProvider,
)

_LOGGER_NAME = "postcap.captions.registry"

ProviderFactory = Callable[[ProviderConfig], CaptionProvider]

_PROVIDER_FACTORIES: dict[str, ProviderFactory] = {
    "openai": OpenAIVisionCaptionProvider,
    "huggingface": HuggingFaceCaptionProvider,
    "mock": MockCaptionProvider,
}


def get_provider(config: ProviderConfig) -> CaptionProvider:
    """Build the provider selected by ``config.provider``.

    Args:
        config: Provider configuration

    Returns:
        A new provider instance bound to ``config``

    Raises:
        CaptionException: If the provider is not registered
    """
    factory = _PROVIDER_FACTORIES.get(config.provider)
    if factory is None:
        log_error(
            "Unsupported provider",
            context={"provider": config.provider},
            logger_name=_LOGGER_NAME,
        )
        raise CaptionException(
            f"Unsupported provider: {config.provider}", provider=config.provider
        )

    log_debug(
        "Selected provider",
        context={"provider": config.provider, "model": config.resolved_model},
        logger_name=_LOGGER_NAME,
    )
    return factory(config)


def register_provider(provider: str, factory: ProviderFactory) -> None:
    """Register a custom provider factory.

    Examples:
        >>> class EchoProvider:
        ...     provider_name = "echo"
        ...     caption_count = 1
        ...     def __init__(self, config): self.config = config
        ...     def call(self, image): return "echo"
        ...     async def call_async(self, image): return "echo"
        >>> register_provider("echo", EchoProvider)
    """
    if provider in _PROVIDER_FACTORIES:
        log_info(
            f"Overwriting existing provider: {provider}",
            context={"provider": provider},
            logger_name=_LOGGER_NAME,
        )
    _PROVIDER_FACTORIES[provider] = factory
