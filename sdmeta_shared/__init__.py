"""Shared utilities for sd-genmeta."""
from .errors import sanitize_error_message
from .log import get_logger, log_structured, log_success
from .result import Result
from .types import MODEL_EXTENSIONS, DialectId, ErrorCode

__all__ = [
    "Result",
    "get_logger",
    "log_success",
    "log_structured",
    "ErrorCode",
    "DialectId",
    "MODEL_EXTENSIONS",
    "sanitize_error_message",
]
