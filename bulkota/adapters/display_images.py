"""Fixed PNG payloads served at the reserved display-image paths."""

from __future__ import annotations

import struct
import zlib
from typing import Tuple

_PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def _chunk(tag: bytes, data: bytes) -> bytes:
    crc = zlib.crc32(tag + data) & 0xFFFFFFFF
    return struct.pack(">I", len(data)) + tag + data + struct.pack(">I", crc)


def solid_png(size: int, rgb: Tuple[int, int, int] = (0, 0, 0)) -> bytes:
    """Encode a square, single-colour 8-bit RGB PNG."""
    header = struct.pack(">IIBBBBB", size, size, 8, 2, 0, 0, 0)
    row = b"\x00" + bytes(rgb) * size  # filter byte 0 per scanline
    pixels = zlib.compress(row * size, 9)
    return _PNG_SIGNATURE + _chunk(b"IHDR", header) + _chunk(b"IDAT", pixels) + _chunk(b"IEND", b"")


DISPLAY_IMAGE_SMALL = solid_png(57)
DISPLAY_IMAGE_LARGE = solid_png(512)


__all__ = ["DISPLAY_IMAGE_LARGE", "DISPLAY_IMAGE_SMALL", "solid_png"]
