"""Error taxonomy shared by the pipeline, the DAG executor and the tool surface."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Structured error codes surfaced to callers."""
    PROMPT_NOT_FOUND = "PROMPT_NOT_FOUND"
    INVALID_INPUT = "INVALID_INPUT"
    ACCESS_DENIED = "ACCESS_DENIED"
    EXECUTION_FAILED = "EXECUTION_FAILED"
    BLOCKCHAIN_ERROR = "BLOCKCHAIN_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    SIGNATURE_VERIFICATION_FAILED = "SIGNATURE_VERIFICATION_FAILED"


class PromptHubError(Exception):
    """An error carrying a structured code, message and optional details."""

    def __init__(self, code: ErrorCode, message: str, details: Any = None):
        super().__init__(message)
        self.code = ErrorCode(code)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": json_safe(self.details),
        }

    def __repr__(self) -> str:
        return f"PromptHubError({self.code.value}, {self.message!r})"


def error_from_exception(exc: BaseException) -> PromptHubError:
    """Map any exception into the taxonomy. Unknown errors become EXECUTION_FAILED."""
    if isinstance(exc, PromptHubError):
        return exc
    return PromptHubError(ErrorCode.EXECUTION_FAILED, str(exc) or type(exc).__name__, {"type": type(exc).__name__})


def json_safe(value: Any) -> Any:
    """Coerce a value into something json.dumps accepts."""
    if value is None:
        return None
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return json.loads(json.dumps(value, default=str))
