"""
Shared JSON helpers for metadata parsing.

Generator-side serializers emit JSON that the standard decoder rejects: trailing
commas, raw control characters inside strings, bare NaN/Infinity. These helpers
repair what can be repaired and refuse oversized payloads.
"""
import json
import re
from typing import Any, Dict, Optional

from ... import config
from ...shared import get_logger

logger = get_logger(__name__)

_KNOWN_JSON_PREFIXES = ("workflow:", "prompt:", "makeprompt:")
_WS = " \t\r\n"


def strip_known_json_prefix(raw: str) -> Optional[str]:
    """Return the text after an embedded-container prefix, or None when there is none."""
    lower_raw = raw.lstrip().lower()
    for prefix in _KNOWN_JSON_PREFIXES:
        if lower_raw.startswith(prefix):
            return raw.lstrip()[len(prefix):].strip()
    return None


def _next_significant(text: str, start: int) -> str:
    i = start
    while i < len(text) and text[i] in _WS:
        i += 1
    return text[i] if i < len(text) else ""


def clean_bad_json(text: str) -> str:
    """Remove trailing commas that precede ``}`` or ``]`` outside of string literals."""
    out: list[str] = []
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "," and _next_significant(text, i + 1) in ("}", "]"):
            continue
        out.append(ch)
    return "".join(out)


def _null_constant(_name: str) -> None:
    # NaN/Infinity -> null, so repeated parses compare equal.
    return None


def loads_lenient(text: str) -> Any:
    """
    Decode generator JSON after repair.

    Raises:
        ValueError: payload too large, or not JSON even after repair
            (``json.JSONDecodeError`` is a ValueError).
    """
    if len(text) > config.MAX_METADATA_JSON_SIZE:
        raise ValueError(f"JSON payload exceeds {config.MAX_METADATA_JSON_SIZE} bytes")
    return json.loads(clean_bad_json(text), strict=False, parse_constant=_null_constant)


def load_json_object(value: Any) -> Optional[Dict[str, Any]]:
    """
    Accept a dict or JSON text and return a dict.

    Text that decodes to a JSON string is decoded once more (double-encoded
    payloads). Returns None for empty input or non-object JSON; malformed JSON
    raises ValueError.
    """
    if isinstance(value, dict):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    parsed = loads_lenient(value.strip())
    if isinstance(parsed, str):
        logger.debug("Decoding double-encoded JSON payload")
        parsed = loads_lenient(parsed)
    return parsed if isinstance(parsed, dict) else None


def looks_like_prompt_node_id(value: Any) -> bool:
    """Accept plain integers or colon-delimited numeric ids (e.g. '91:68')."""
    if isinstance(value, int):
        return True
    if not isinstance(value, str):
        return False
    parts = value.split(":")
    if not parts:
        return False
    return all(part.isdigit() for part in parts)


def looks_like_comfyui_workflow(value: Any) -> bool:
    """Heuristic check for a LiteGraph workflow export (``nodes`` + ``links``)."""
    if not isinstance(value, dict):
        return False
    nodes = value.get("nodes")
    if not isinstance(nodes, list) or not nodes:
        return False
    links = value.get("links")
    return links is None or isinstance(links, list)


def looks_like_comfyui_prompt_graph(value: Any) -> bool:
    """Heuristic check for a ComfyUI prompt graph (runtime prompt dict)."""
    if not isinstance(value, dict) or not value:
        return False
    if isinstance(value.get("nodes"), list):
        return False
    keys = list(value.keys())[:8]
    valid = sum(1 for key in keys if looks_like_prompt_node_id(key) and _prompt_graph_node_looks_valid(value.get(key)))
    return valid >= max(1, len(keys) // 2)


def _prompt_graph_node_looks_valid(node: Any) -> bool:
    if not isinstance(node, dict):
        return False
    ct = node.get("class_type") or node.get("type")
    ins = node.get("inputs")
    return isinstance(ct, str) and isinstance(ins, dict)


_JSON_START_RE = re.compile(r"^\s*[\[{]")


def looks_like_json(text: Any) -> bool:
    return isinstance(text, str) and bool(_JSON_START_RE.match(text))
