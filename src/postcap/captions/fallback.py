"""Pre-authored captions served when the provider cannot be used."""

import itertools
import random
from collections.abc import Callable, Sequence

from postcap.captions.normalizer import CAPTION_COUNT

# Selector: given the number of sets, return the index of the one to use
Selector = Callable[[int], int]

FALLBACK_CAPTION_SETS: tuple[tuple[str, str, str], ...] = (
    (
        "Living my best life, one photo at a time 📸",
        "Every picture tells a story worth sharing",
        "A moment captured, a memory kept",
    ),
    (
        "Good vibes only ✨",
        "Chasing light and collecting moments",
        "A little slice of today, framed just right",
    ),
    (
        "Plot twist: this was the best part of my day",
        "Find beauty in the everyday",
        "Snapshot from where I'm standing right now",
    ),
    (
        "Not a filter, just a really good day 😎",
        "Make today worth remembering",
        "Details, colours and a bit of good timing",
    ),
    (
        "Currently in my happy place",
        "Small moments, big memories",
        "Here's what caught my eye today",
    ),
    (
        "Adding this one to the highlight reel 🎬",
        "Stay curious, keep exploring",
        "A quiet scene worth a second look",
    ),
)


def round_robin() -> Selector:
    """Selector that cycles through the sets in order, for reproducible runs."""
    counter = itertools.count()

    def select(size: int) -> int:
        return next(counter) % size

    return select


class FallbackCaptionSource:
    """Deterministic-content, provider-independent caption source.

    Selection is random by default. Pass ``selector`` (for example
    ``round_robin()`` or ``lambda n: 0``) to make the choice reproducible.
    """

    def __init__(
        self,
        caption_sets: Sequence[Sequence[str]] = FALLBACK_CAPTION_SETS,
        selector: Selector | None = None,
    ):
        if not caption_sets:
            raise ValueError("caption_sets must not be empty")
        for index, caption_set in enumerate(caption_sets):
            if isinstance(caption_set, str):
                raise ValueError(
                    f"caption set {index} must be a sequence of captions"
                )
            usable = [c for c in caption_set if isinstance(c, str) and c.strip()]
            if len(usable) < CAPTION_COUNT or len(usable) != len(caption_set):
                raise ValueError(
                    f"caption set {index} needs at least {CAPTION_COUNT} "
                    "non-empty captions"
                )
        self.caption_sets = tuple(tuple(c.strip() for c in s) for s in caption_sets)
        self._selector = selector or random.Random().randrange

    def next(self, count: int = CAPTION_COUNT) -> list[str]:
        """Return ``count`` captions from one selected set."""
        chosen = self.caption_sets[self._selector(len(self.caption_sets))]
        return list(chosen[:count])
