from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_PURGE_TARGET = "INVALID_PURGE_TARGET"
    UNAUTHORIZED = "UNAUTHORIZED"


class EdgePurgeError(Exception):
    """Raised for caller and input errors, never for CDN API failures.

    CDN failures degrade to ``None`` results inside the gateway. This
    exception is reserved for conditions the caller must fix (bad purge
    target, unsupported HTTP method, malformed webhook payload) and is
    serialised by the webhook layer into a structured error envelope.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }
