"""Mock caption provider for local development and tests.

Needs no credentials and makes no network calls. Output is chosen from a
small library by hashing the image payload, so the same image always gets
the same captions.
"""

import asyncio
import hashlib

from postcap.captions.exceptions import handle_provider_errors
from postcap.captions.models import EncodedImage, ProviderConfig

MOCK_CAPTION_LIBRARY: tuple[str, ...] = (
    "Sunshine mode: activated ☀️\n"
    "Every day is a fresh start\n"
    "A bright outdoor scene full of colour",
    "Caught in the act of having fun\n"
    "Collect moments, not things\n"
    "A candid shot with soft natural light",
    "Weekend plans: exactly this\n"
    "The best views come after the hardest climbs\n"
    "A wide view with a clear horizon",
)


class MockCaptionProvider:
    """Deterministic offline provider (``provider="mock"``)."""

    provider_name = "mock"
    caption_count = 3

    def __init__(self, config: ProviderConfig | None = None, delay: float = 0.0):
        self.config = config or ProviderConfig(provider="mock")
        self.delay = delay

    def _pick(self, image: EncodedImage) -> str:
        digest = hashlib.sha256(image.payload.encode("ascii")).digest()
        return MOCK_CAPTION_LIBRARY[digest[0] % len(MOCK_CAPTION_LIBRARY)]

    @handle_provider_errors
    def call(self, image: EncodedImage) -> str:
        return self._pick(image)

    @handle_provider_errors
    async def call_async(self, image: EncodedImage) -> str:
        if self.delay:
            await asyncio.sleep(self.delay)
        return self._pick(image)
