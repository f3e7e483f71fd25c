"""Parser descriptor types shared by the dialect modules and the registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping

from ...shared import DialectId

_EMPTY: Mapping[str, Any] = MappingProxyType({})


@dataclass(frozen=True)
class DetectResult:
    """
    Verdict of a detection predicate.

    ``overlay`` holds normalized input (e.g. decoded generation text, promoted
    workflow JSON). It is applied on top of the raw tags only for the winning
    descriptor; predicates never write to the tag map itself.
    """

    matched: bool
    overlay: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)

    @staticmethod
    def no_match() -> "DetectResult":
        return DetectResult(matched=False)

    @staticmethod
    def match(overlay: Mapping[str, Any] | None = None) -> "DetectResult":
        return DetectResult(matched=True, overlay=MappingProxyType(dict(overlay or {})))


@dataclass(frozen=True)
class ParserDescriptor:
    """Capability triple for one metadata dialect."""

    dialect: DialectId
    detect: Callable[[Mapping[str, Any]], DetectResult]
    parse: Callable[[Mapping[str, Any]], Dict[str, Any]]
    encode: Callable[[Mapping[str, Any]], str]
