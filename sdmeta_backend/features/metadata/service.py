"""
Metadata pipeline entry points: dispatch -> parse -> normalize.

``extract_metadata`` reports failures as ``Result`` codes; ``extract`` collapses
them into an empty record so callers never handle exceptions.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Mapping

from ...shared import DialectId, ErrorCode, Result, get_logger, log_structured, sanitize_error_message
from ..geninfo import a1111
from .extractor_registry import find_parser, get_parser
from .normalizer import normalize_metadata

logger = get_logger(__name__)


def extract_metadata(raw_tags: Mapping[str, Any]) -> Result[Dict[str, Any]]:
    """
    Run the full pipeline over a raw tag map.

    Returns:
        Ok(record) on success. Err with NO_MATCH, PARSE_ERROR, SCHEMA_VIOLATION
        or INVALID_INPUT otherwise.
    """
    if not isinstance(raw_tags, Mapping):
        return Result.Err(ErrorCode.INVALID_INPUT, f"Expected a tag mapping, got {type(raw_tags).__name__}")

    found = find_parser(raw_tags)
    if found is None:
        return Result.Err(ErrorCode.NO_MATCH, "No metadata dialect matched")
    descriptor, view = found
    dialect = descriptor.dialect.value

    try:
        partial = descriptor.parse(view)
    except Exception as exc:
        log_structured(logger, logging.WARNING, "Metadata parse failed", dialect=dialect, error=str(exc)[:200])
        return Result.Err(ErrorCode.PARSE_ERROR, sanitize_error_message(exc, f"Failed to parse {dialect} metadata"), dialect=dialect)

    if not partial:
        return Result.Err(ErrorCode.NO_MATCH, f"{dialect} parser found no metadata fields", dialect=dialect)

    record = normalize_metadata(partial)
    if not record:
        log_structured(logger, logging.WARNING, "Metadata failed validation", dialect=dialect, keys=sorted(map(str, partial)) if isinstance(partial, Mapping) else [])
        return Result.Err(ErrorCode.SCHEMA_VIOLATION, f"{dialect} metadata failed validation", dialect=dialect)
    return Result.Ok(record, dialect=dialect)


def extract(raw_tags: Mapping[str, Any]) -> Dict[str, Any]:
    """Canonical record for ``raw_tags``; ``{}`` on no match or any failure. Never raises."""
    try:
        result = extract_metadata(raw_tags)
    except Exception:
        logger.exception("Unexpected metadata extraction failure")
        return {}
    if not result.ok:
        logger.debug("No metadata extracted [%s]: %s", result.code, result.error)
    return copy.deepcopy(result.unwrap_or({}))


def encode(meta: Mapping[str, Any], dialect: DialectId | str = DialectId.AUTOMATIC) -> str:
    """
    Render canonical metadata in one dialect's text form.

    Raises:
        ValueError: unknown dialect.
    """
    return get_parser(dialect).encode(meta)


def parse_generator_text(text: str) -> Dict[str, Any]:
    """Parse already-decoded A1111 generation text (e.g. a user-edited prompt), without normalization."""
    return a1111.parse_generator_text(text)
