"""Normalisation of raw provider text into fixed-shape caption lists."""

from postcap.captions.exceptions import ProviderNoContentError

CAPTION_COUNT = 3
DEFAULT_FILLER = "Capturing the moment ✨"


def _clean_lines(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [line.strip() for line in raw.splitlines() if line.strip()]


def normalize_captions(
    raw: str | None,
    count: int = CAPTION_COUNT,
    filler: str = DEFAULT_FILLER,
) -> list[str]:
    """Turn multi-line model output into exactly ``count`` captions.

    Lines are trimmed and blank lines dropped; the first ``count`` survivors
    are kept in order, and the list is padded with ``filler`` when the model
    produced fewer.

    Example:
        >>> normalize_captions("Only one caption")
        ['Only one caption', 'Capturing the moment ✨', 'Capturing the moment ✨']
    """
    captions = _clean_lines(raw)[:count]
    captions.extend([filler] * (count - len(captions)))
    return captions


def normalize_single(raw: str | None) -> list[str]:
    """Turn single-caption model output into a one-element list.

    Raises:
        ProviderNoContentError: The text is empty after trimming.
    """
    lines = _clean_lines(raw)
    if not lines:
        raise ProviderNoContentError("Provider returned no caption text")
    return [lines[0]]


def normalize(raw: str | None, count: int) -> list[str]:
    """Dispatch on the provider's caption cardinality (1 or 3)."""
    if count == 1:
        return normalize_single(raw)
    return normalize_captions(raw, count=count)
