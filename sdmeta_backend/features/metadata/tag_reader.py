"""
Pillow adapters around the metadata core.

``read_raw_tags`` builds the raw tag map the dispatcher consumes;
``embed_metadata`` writes encoded metadata back into a PNG text chunk.
Neither raises: failures are logged and degrade to an empty map / the
unchanged input.
"""

from __future__ import annotations

import io
import json
from typing import Any, BinaryIO, Dict, Mapping, Union

from PIL import Image, PngImagePlugin

from ...shared import get_logger
from .service import encode

logger = get_logger(__name__)

EXIF_IFD_POINTER = 0x8769
TAG_USER_COMMENT = 0x9286

PathOrFile = Union[str, BinaryIO]


def _apply_text_chunks(out: Dict[str, Any], info: Mapping[str, Any]) -> None:
    for key, value in info.items():
        if isinstance(value, str) and value:
            out[str(key)] = value


def _safe_exif(img: Any) -> Any:
    try:
        return img.getexif()
    except Exception as exc:
        logger.debug("EXIF unreadable: %s", exc)
        return None


def _apply_exif_fields(out: Dict[str, Any], exif: Any) -> None:
    if not exif:
        return
    try:
        exif_ifd = exif.get_ifd(EXIF_IFD_POINTER)
    except Exception:
        exif_ifd = {}
    comment = exif_ifd.get(TAG_USER_COMMENT) if exif_ifd else None
    if comment is None:
        comment = exif.get(TAG_USER_COMMENT)
    if comment:
        # Decoded lazily by the parsers (UTF-16 repair).
        out["userComment"] = bytes(comment) if isinstance(comment, (bytes, bytearray)) else comment
    # ImageDescription and MakerNote (0x927C) carry no generation data; never exposed.


def read_raw_tags(source: PathOrFile) -> Dict[str, Any]:
    """
    Build a raw tag map from an image file path or binary file object.

    Returns an empty dict on failure.
    """
    out: Dict[str, Any] = {}
    try:
        with Image.open(source) as img:
            _apply_text_chunks(out, dict(getattr(img, "info", {}) or {}))
            _apply_exif_fields(out, _safe_exif(img))
    except Exception as exc:
        logger.warning("Could not read image tags: %s", exc)
        return {}
    return out


def _metadata_text(meta: Mapping[str, Any]) -> str:
    if meta.get("prompt"):
        return encode(meta)
    return json.dumps(dict(meta), ensure_ascii=False, default=str)


def embed_metadata(image_bytes: bytes, meta: Mapping[str, Any], fmt: str = "png") -> bytes:
    """
    Return ``image_bytes`` with ``meta`` stored in the PNG ``parameters`` chunk.

    Only PNG is supported; other formats are returned unchanged.
    """
    if str(fmt or "").lower() != "png":
        logger.warning("Embedding metadata into %s is not supported", fmt)
        return image_bytes

    try:
        text = _metadata_text(meta)
        with Image.open(io.BytesIO(image_bytes)) as img:
            if img.format != "PNG":
                logger.warning("Embedding skipped: input is %s, not PNG", img.format)
                return image_bytes
            pnginfo = PngImagePlugin.PngInfo()
            for key, value in (img.info or {}).items():
                if key != "parameters" and isinstance(value, str):
                    pnginfo.add_text(str(key), value)
            pnginfo.add_text("parameters", text)
            buf = io.BytesIO()
            img.save(buf, format="PNG", pnginfo=pnginfo)
    except Exception as exc:
        logger.error("Failed to embed metadata: %s", exc)
        return image_bytes
    return buf.getvalue()
