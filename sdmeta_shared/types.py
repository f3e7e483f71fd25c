"""
Shared types, enums, and constants.
"""
from enum import Enum
from typing import Final


# Error codes
class ErrorCode(str, Enum):
    """Standardized error codes (string enum)."""

    # Client / validation
    INVALID_INPUT = "INVALID_INPUT"

    # Dispatch
    NO_MATCH = "NO_MATCH"

    # Parsing / normalization
    PARSE_ERROR = "PARSE_ERROR"
    SCHEMA_VIOLATION = "SCHEMA_VIOLATION"


class DialectId(str, Enum):
    """Registered metadata dialects, in dispatch priority order."""

    AUTOMATIC = "automatic"  # A1111 / Forge "Steps: ..." generation text
    COMFY = "comfy"          # ComfyUI prompt graph / workflow JSON


# File extensions stripped from model file names
MODEL_EXTENSIONS: Final[tuple[str, ...]] = (
    ".safetensors",
    ".ckpt",
    ".pt",
    ".pth",
    ".bin",
    ".gguf",
)
