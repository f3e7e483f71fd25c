"""
A1111 / Forge generation-text dialect.

    <prompt lines>
    Negative prompt: <negative prompt lines>
    Steps: 20, Sampler: Euler a, CFG scale: 7, Seed: 1, Size: 512x512, ...

Parsing is tolerant of the extension sections various tools append to the
details line; encoding is intentionally lossy (resources, hash tables and JSON
blocks are never written back).
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from ...shared import get_logger
from ...utils import format_number
from ..metadata.descriptor import DetectResult
from ..metadata.encoding import decode_user_comment
from ..metadata.parsing_utils import loads_lenient
from .details_tokenizer import SD_ENCODE_MAP, get_sd_key, parse_details_line
from .resources import assemble_resources

logger = get_logger(__name__)

STEPS_MARKER = "Steps: "
NEGATIVE_MARKER = "Negative prompt:"

_HASHES_RE = re.compile(r", Hashes:\s*({[^}]+})")
_CIVITAI_RESOURCES_RE = re.compile(r", Civitai resources:\s*(\[\{.*?\}\])")
_CIVITAI_METADATA_RE = re.compile(r", Civitai metadata:\s*(\{.*?\})")
_NEW_KEY_RE = re.compile(r"[\w\s]+: ")

_BAD_EXTENSION_KEYS = ("Resources: ", "Hashed prompt: ", "Hashed Negative prompt: ")
_TEMPLATE_KEYS = ("Template: ", "Negative Template: ")

# Keys represented elsewhere in the canonical record; never loose key/value pairs.
EXCLUDED_KEYS: frozenset[str] = frozenset(
    {
        "hashes",
        "civitaiResources",
        "scheduler",
        "vaes",
        "additionalResources",
        "comfy",
        "upscalers",
        "models",
        "controlNets",
        "denoise",
        "other",
        "external",
        "extra",
        "resources",
    }
)

# Tag-map fields that can carry generation text, in lookup order.
_TEXT_FIELDS: Mapping[str, bool] = MappingProxyType(
    {
        "generationDetails": False,
        "parameters": False,
        "userComment": True,  # needs encoding repair
    }
)


def generation_text_from_tags(raw: Mapping[str, Any]) -> Optional[str]:
    """First non-empty generation text in the tag map, decoding UserComment bytes on demand."""
    for key, needs_decode in _TEXT_FIELDS.items():
        value = raw.get(key)
        if value is None:
            continue
        text = decode_user_comment(value) if needs_decode else value
        if isinstance(text, str) and text.strip():
            return text
    return None


def _drop_templates(lines: List[str]) -> None:
    for marker in _TEMPLATE_KEYS:
        idx = next((i for i, line in enumerate(lines) if line.startswith(marker)), -1)
        if idx == -1:
            continue
        del lines[idx]
        # Template bodies run until the next "Key: " line.
        while idx < len(lines) and not _NEW_KEY_RE.search(lines[idx]):
            del lines[idx]


def _pop_details_line(lines: List[str]) -> Optional[str]:
    for idx, line in enumerate(lines):
        if line.startswith(STEPS_MARKER):
            del lines[idx]
            return re.sub(r",\s*$", "", line)
    return None


def _strip_bad_extensions(details: str) -> str:
    for key in _BAD_EXTENSION_KEYS:
        if key in details:
            details = details.split(key)[0]
    return details


def _extract_json_suffix(details: str, pattern: re.Pattern[str]) -> tuple[str, Any]:
    match = pattern.search(details)
    if not match:
        return details, None
    value = loads_lenient(match.group(1))
    return pattern.sub("", details, count=1), value


def parse_generator_text(text: str) -> Dict[str, Any]:
    """
    Parse A1111 generation text into a partial metadata dict.

    Raises:
        ValueError: a JSON suffix (Hashes / Civitai resources / Civitai metadata)
            is not valid JSON.
    """
    metadata: Dict[str, Any] = {}
    if not text:
        return metadata

    lines = [line for line in text.split("\n") if line.strip()]
    _drop_templates(lines)

    details = _pop_details_line(lines)
    if details is not None:
        details = _strip_bad_extensions(details)

        details, hashes = _extract_json_suffix(details, _HASHES_RE)
        if hashes is not None:
            metadata["hashes"] = hashes

        details, civitai_resources = _extract_json_suffix(details, _CIVITAI_RESOURCES_RE)
        if civitai_resources is not None:
            metadata["civitaiResources"] = civitai_resources

        details, civitai_metadata = _extract_json_suffix(details, _CIVITAI_METADATA_RE)
        if isinstance(civitai_metadata, dict) and civitai_metadata:
            metadata["extra"] = civitai_metadata

    for key, value in parse_details_line(details).items():
        key = get_sd_key(key)
        if key in EXCLUDED_KEYS:
            continue
        metadata[key] = value

    prompt, *negative = [part.strip() for part in "\n".join(lines).split(NEGATIVE_MARKER)]
    metadata["prompt"] = prompt
    metadata["negativePrompt"] = " ".join(negative).strip()

    metadata["resources"] = assemble_resources(metadata, prompt)
    return metadata


def _render_value(value: Any) -> str:
    if isinstance(value, dict):
        inner = ", ".join(f"{k}: {_render_value(v)}" for k, v in value.items())
        return f'"{inner}"'
    return format_number(value)


def encode_generator_text(meta: Mapping[str, Any]) -> str:
    """
    Render canonical metadata as A1111 generation text.

    Lossy by contract: resources, hashes and JSON metadata blocks are dropped.
    """
    lines = [str(meta.get("prompt") or "")]
    negative = meta.get("negativePrompt")
    if negative:
        lines.append(f"{NEGATIVE_MARKER} {negative}")

    details: List[str] = []
    steps = meta.get("steps")
    if steps:
        details.append(f"{STEPS_MARKER}{format_number(steps)}")
    for key, value in meta.items():
        if key in ("prompt", "negativePrompt", "steps") or key in EXCLUDED_KEYS:
            continue
        if value is None:
            continue
        details.append(f"{SD_ENCODE_MAP.get(key, key)}: {_render_value(value)}")
    if details:
        lines.append(", ".join(details))

    return "\n".join(lines)


# Descriptor hooks ------------------------------------------------------------


def detect(raw: Mapping[str, Any]) -> DetectResult:
    text = generation_text_from_tags(raw)
    if text is None or STEPS_MARKER not in text:
        return DetectResult.no_match()
    return DetectResult.match({"generationDetails": text})


def parse(raw: Mapping[str, Any]) -> Dict[str, Any]:
    text = generation_text_from_tags(raw)
    if text is None:
        return {}
    metadata = parse_generator_text(text)
    logger.debug("Parsed A1111 generation text (%d keys, %d resources)", len(metadata), len(metadata.get("resources") or []))
    return metadata


def encode(meta: Mapping[str, Any]) -> str:
    return encode_generator_text(meta)
