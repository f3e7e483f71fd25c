"""
Tokenizer for the A1111 "details line" (``Steps: 20, Sampler: Euler a, ...``).

The line is a comma-separated list of ``key: value`` pairs. Three states:

    state      char  condition                action                               next
    ---------  ----  -----------------------  -----------------------------------  ---------
    NORMAL     "     -                        start quoted value                   IN_QUOTE
    NORMAL     :     value is partial date    keep ':' in value                    IN_DATE
    NORMAL     :     otherwise                value becomes key, reset value       NORMAL
    NORMAL     ,     -                        emit (key, value) if key, reset      NORMAL
    IN_QUOTE   "     -                        emit (key, tokenize(value)), no key  NORMAL
    IN_QUOTE   any   -                        append                               IN_QUOTE
    IN_DATE    ,     -                        emit (key, value) if key, reset      NORMAL
    IN_DATE    "     -                        start quoted value                   IN_QUOTE
    IN_DATE    any   -                        append (colons included)             IN_DATE
    *          any   -                        append                               (same)

At end of input the pending pair is emitted when a key is set. Quoted values are
tokenized recursively, so ``Lora hashes: "a: 1, b: 2"`` yields a nested dict.
"""

from __future__ import annotations

import re
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping

# A1111 parameter names -> canonical keys
SD_KEY_MAP: Mapping[str, str] = MappingProxyType(
    {
        "Seed": "seed",
        "CFG scale": "cfgScale",
        "Sampler": "sampler",
        "Steps": "steps",
        "Clip skip": "clipSkip",
    }
)
SD_ENCODE_MAP: Mapping[str, str] = MappingProxyType({v: k for k, v in SD_KEY_MAP.items()})

# "YYYY-MM-DDTHH" - the part of an ISO timestamp that precedes its first colon
_PARTIAL_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}$")


class TokenizerState(Enum):
    NORMAL = "normal"
    IN_QUOTE = "in_quote"
    IN_DATE = "in_date"


def get_sd_key(key: str) -> str:
    key = key.strip()
    return SD_KEY_MAP.get(key, key)


def is_partial_date(value: str) -> bool:
    return bool(_PARTIAL_DATE_RE.match(value.strip()))


def parse_details_line(line: str | None) -> Dict[str, Any]:
    """Tokenize a details line into an ordered dict; nested quoted lists become dicts."""
    result: Dict[str, Any] = {}
    if not line:
        return result

    state = TokenizerState.NORMAL
    key = ""
    value: list[str] = []

    def _emit() -> None:
        if key:
            result[key] = "".join(value).strip()

    for ch in line:
        if state is TokenizerState.IN_QUOTE:
            if ch == '"':
                if key:
                    result[key] = parse_details_line("".join(value).strip())
                key = ""
                value = []
                state = TokenizerState.NORMAL
            else:
                value.append(ch)
            continue

        if ch == '"':
            # The opening quote discards whatever preceded it (normally a space).
            value = []
            state = TokenizerState.IN_QUOTE
        elif ch == ",":
            _emit()
            key = ""
            value = []
            state = TokenizerState.NORMAL
        elif ch == ":" and state is TokenizerState.NORMAL:
            current = "".join(value)
            if is_partial_date(current):
                value.append(ch)
                state = TokenizerState.IN_DATE
            else:
                key = get_sd_key(current)
                value = []
        else:
            value.append(ch)

    # An unterminated quote keeps its raw text.
    _emit()
    return result
