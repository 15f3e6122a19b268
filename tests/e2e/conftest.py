"""Fixtures shared by the e2e tests."""

import struct
import zlib

import pytest


def _png_chunk(kind: bytes, data: bytes) -> bytes:
    body = kind + data
    return struct.pack(">I", len(data)) + body + struct.pack(">I", zlib.crc32(body))


def _solid_png(width: int, height: int, rgb: tuple[int, int, int]) -> bytes:
    """Build a valid single-colour RGB PNG."""
    row = b"\x00" + bytes(rgb) * width
    header = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + _png_chunk(b"IHDR", header)
        + _png_chunk(b"IDAT", zlib.compress(row * height))
        + _png_chunk(b"IEND", b"")
    )


@pytest.fixture(scope="session")
def sample_png(tmp_path_factory):
    """A 64x64 sky-blue PNG written under a temporary upload root."""
    root = tmp_path_factory.mktemp("uploads")
    path = root / "sky.png"
    path.write_bytes(_solid_png(64, 64, (135, 206, 235)))
    return path
