"""Parser registry and format dispatch."""

from __future__ import annotations

from collections import ChainMap
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

from ...shared import DialectId, get_logger
from ..geninfo import a1111, comfy
from .descriptor import DetectResult, ParserDescriptor

logger = get_logger(__name__)

# Priority order matters: detection predicates are not mutually exclusive.
PARSERS: Tuple[ParserDescriptor, ...] = (
    ParserDescriptor(DialectId.AUTOMATIC, a1111.detect, a1111.parse, a1111.encode),
    ParserDescriptor(DialectId.COMFY, comfy.detect, comfy.parse, comfy.encode),
)

_BY_DIALECT: Mapping[DialectId, ParserDescriptor] = MappingProxyType({p.dialect: p for p in PARSERS})


def get_parser(dialect: DialectId | str) -> ParserDescriptor:
    """
    Look up a registered descriptor.

    Raises:
        ValueError: unknown dialect.
    """
    return _BY_DIALECT[DialectId(dialect)]


def _safe_detect(descriptor: ParserDescriptor, view: Mapping[str, Any]) -> DetectResult:
    try:
        verdict = descriptor.detect(view)
    except Exception as exc:
        logger.debug("Detection failed for %s: %s", descriptor.dialect.value, exc)
        return DetectResult.no_match()
    if not isinstance(verdict, DetectResult):
        return DetectResult.no_match()
    return verdict


def find_parser(raw: Mapping[str, Any]) -> Optional[Tuple[ParserDescriptor, Mapping[str, Any]]]:
    """
    First descriptor whose predicate matches, with the input view its parser should read.

    Every predicate sees the same read-only snapshot; only the winner's overlay
    is layered on top (``ChainMap(overlay, raw)``).
    """
    if not isinstance(raw, Mapping):
        return None
    snapshot = MappingProxyType(dict(raw))
    for descriptor in PARSERS:
        verdict = _safe_detect(descriptor, snapshot)
        if verdict.matched:
            logger.debug("Metadata dialect detected: %s", descriptor.dialect.value)
            return descriptor, ChainMap(dict(verdict.overlay), snapshot)
    return None
