"""Backend-facing alias for shared utilities.

Feature modules import from here (``from ...shared import Result``) so the
engine has a single seam onto `sdmeta_shared`.
"""

from __future__ import annotations

import sdmeta_shared as _root_shared

Result = _root_shared.Result
ErrorCode = _root_shared.ErrorCode
DialectId = _root_shared.DialectId
MODEL_EXTENSIONS = _root_shared.MODEL_EXTENSIONS
get_logger = _root_shared.get_logger
log_success = _root_shared.log_success
log_structured = _root_shared.log_structured
sanitize_error_message = _root_shared.sanitize_error_message

__all__ = [
    "Result",
    "ErrorCode",
    "DialectId",
    "MODEL_EXTENSIONS",
    "get_logger",
    "log_success",
    "log_structured",
    "sanitize_error_message",
]
