"""
Configuration for sd-genmeta.

Values are read from the environment once, at import time.
"""
import logging
import os

from .utils import env_bool

logger = logging.getLogger(__name__)


def _env_raw(*names: str, default: str | None = None) -> str | None:
    for name in names:
        if not name:
            continue
        val = os.getenv(name)
        if val is not None and str(val).strip() != "":
            return str(val).strip()
    return default


def _env_int(default: int, *names: str, min_value: int | None = None, max_value: int | None = None) -> int:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid integer for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("Value too small for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, min_value)
        value = min_value
    if max_value is not None and value > max_value:
        logger.warning("Value too large for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, max_value)
        value = max_value
    return value


# Largest JSON payload (workflow graph, hash table, ...) the parsers will decode.
MAX_METADATA_JSON_SIZE = _env_int(10 * 1024 * 1024, "SDMETA_MAX_JSON_SIZE", min_value=1024)

# Workflow graph bounds
MAX_GRAPH_NODES = _env_int(5000, "SDMETA_MAX_GRAPH_NODES", min_value=1, max_value=100_000)
MAX_GRAPH_DEPTH = _env_int(100, "SDMETA_MAX_GRAPH_DEPTH", min_value=1, max_value=10_000)

# Verbose diagnostics (debug-level logging in the CLI, raw error payloads).
DEBUG = env_bool("SDMETA_DEBUG", False)
