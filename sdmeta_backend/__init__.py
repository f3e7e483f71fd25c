"""
Image-generation metadata backend.

Public entry points are re-exported lazily so ``import sdmeta_backend`` stays
cheap (Pillow and pydantic load on first use).
"""

from __future__ import annotations

__all__ = ["extract", "extract_metadata", "encode", "parse_generator_text", "read_raw_tags", "embed_metadata"]


def __getattr__(name: str):
    if name in __all__:
        from .features import metadata

        return getattr(metadata, name)
    raise AttributeError(name)
