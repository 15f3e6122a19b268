"""Image loading and transport encoding."""

import base64
from pathlib import Path

from postcap.captions.exceptions import (
    ImageNotFoundError,
    ImageReadError,
    ImageTooLargeError,
)
from postcap.captions.logging import log_debug
from postcap.captions.models import DEFAULT_MAX_IMAGE_BYTES, EncodedImage, ImageRef

DEFAULT_MIME_TYPE = "image/jpeg"

SUFFIX_MIME_TYPES: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

_LOGGER_NAME = "postcap.captions.encoder"


def mime_type_for_path(path: str | Path) -> str:
    """Infer an image MIME type from the file suffix (case-insensitive)."""
    return SUFFIX_MIME_TYPES.get(Path(path).suffix.lower(), DEFAULT_MIME_TYPE)


class ImageEncoder:
    """Reads an image from a path or buffer and base64-encodes it."""

    def __init__(self, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES):
        self.max_bytes = max_bytes

    def _check_size(self, size: int) -> None:
        if size > self.max_bytes:
            raise ImageTooLargeError(size, self.max_bytes)

    def _read(self, path: Path) -> bytes:
        if not path.is_file():
            raise ImageNotFoundError(str(path))

        try:
            self._check_size(path.stat().st_size)
            return path.read_bytes()
        except FileNotFoundError as ex:
            # Removed between the existence check and the read
            raise ImageNotFoundError(str(path)) from ex
        except OSError as ex:
            raise ImageReadError(
                f"Could not read image file {path}: {ex}",
                raw_response={"error": str(ex), "error_type": type(ex).__name__},
            ) from ex

    def encode(self, image: ImageRef, mime_type: str | None = None) -> EncodedImage:
        """Encode ``image`` for a provider request.

        Args:
            image: Filesystem path or raw image bytes.
            mime_type: Explicit MIME type. For paths it overrides the suffix
                table; for buffers it defaults to ``image/jpeg``.

        Returns:
            EncodedImage with base64 payload and MIME type

        Raises:
            ImageNotFoundError: Path does not point to an existing file
            ImageTooLargeError: Image exceeds ``max_bytes``
            ImageReadError: File exists but could not be read
        """
        if isinstance(image, (bytes, bytearray, memoryview)):
            content = bytes(image)
            resolved_mime = mime_type or DEFAULT_MIME_TYPE
        else:
            path = Path(image)
            content = self._read(path)
            resolved_mime = mime_type or mime_type_for_path(path)

        self._check_size(len(content))

        log_debug(
            "Encoded image",
            context={"mime_type": resolved_mime, "size_bytes": len(content)},
            logger_name=_LOGGER_NAME,
        )
        return EncodedImage(
            payload=base64.b64encode(content).decode("ascii"),
            mime_type=resolved_mime,
            size_bytes=len(content),
        )
