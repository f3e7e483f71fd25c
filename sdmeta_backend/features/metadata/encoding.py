"""
Encoding repair for byte-valued tags.

EXIF UserComment payloads written by A1111-style tools are UTF-16 in big-endian
order behind an 8-byte charset header (``UNICODE\\0``). Tag readers hand them
over as raw bytes or as a list of ints.
"""

from __future__ import annotations

from typing import Any, Optional

from ...shared import get_logger

logger = get_logger(__name__)

_UNICODE_HEADER = b"UNICODE\x00"
_ASCII_HEADER = b"ASCII\x00\x00\x00"
_BOM_BE = b"\xfe\xff"
_BOM_LE = b"\xff\xfe"


def coerce_bytes(value: Any) -> Optional[bytes]:
    """Turn bytes-like values or int sequences into bytes; None for anything else."""
    if isinstance(value, bytes):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, (list, tuple)):
        if not all(isinstance(v, int) and not isinstance(v, bool) for v in value):
            return None
        return bytes(v & 0xFF for v in value)
    return None


def _swap_pairs(data: bytes) -> bytes:
    # Odd trailing byte has no partner; drop it.
    even = len(data) - (len(data) % 2)
    swapped = bytearray(even)
    swapped[0::2] = data[1:even:2]
    swapped[1::2] = data[0:even:2]
    return bytes(swapped)


def decode_big_endian_utf16(value: Any) -> str:
    """
    Decode a big-endian UTF-16 payload.

    Strips the EXIF ``UNICODE\\0`` header and a leading byte-order mark, swaps
    every byte pair to little-endian and decodes. Never raises: odd-length input
    loses its trailing byte and undecodable units become U+FFFD.
    """
    data = coerce_bytes(value)
    if not data:
        return ""

    if data.startswith(_UNICODE_HEADER):
        data = data[len(_UNICODE_HEADER):]
    if data.startswith(_BOM_BE) or data.startswith(_BOM_LE):
        data = data[2:]

    if len(data) % 2:
        logger.debug("Odd-length UTF-16 payload (%d bytes), dropping trailing byte", len(data))

    return _swap_pairs(data).decode("utf-16-le", errors="replace")


def decode_user_comment(value: Any) -> Optional[str]:
    """Decode an EXIF UserComment tag into text, whatever shape the reader produced."""
    if value is None:
        return None
    if isinstance(value, str):
        return value

    data = coerce_bytes(value)
    if data is None:
        return None
    if data.startswith(_ASCII_HEADER):
        return data[len(_ASCII_HEADER):].decode("utf-8", errors="replace").rstrip("\x00")
    return decode_big_endian_utf16(data).rstrip("\x00")
