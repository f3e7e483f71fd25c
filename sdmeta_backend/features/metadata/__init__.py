"""Metadata extraction feature."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .service import encode, extract, extract_metadata, parse_generator_text
    from .tag_reader import embed_metadata, read_raw_tags

__all__ = ["extract", "extract_metadata", "encode", "parse_generator_text", "read_raw_tags", "embed_metadata"]


def __getattr__(name: str):
    if name in ("extract", "extract_metadata", "encode", "parse_generator_text"):
        from . import service

        return getattr(service, name)
    if name in ("read_raw_tags", "embed_metadata"):
        from . import tag_reader

        return getattr(tag_reader, name)
    raise AttributeError(name)
