"""Error kinds reported by NTS key establishment and the exception that carries them."""

from __future__ import annotations

from enum import IntEnum


class ErrorType(IntEnum):
    """Error codes: values below 0x10000 come from the server, the rest from the client."""

    SERVER_UNKNOWN_CRIT_RECORD = 0
    SERVER_BAD_REQUEST = 1
    SERVER_INTERNAL_ERROR = 2

    UNEXPECTED_WARNING = 0x10000
    BAD_RESPONSE = 0x10001
    INTERNAL_CLIENT_ERROR = 0x10002
    NO_PROTOCOL = 0x10003
    NO_AEAD = 0x10004
    INSUFFICIENT_DATA = 0x10005
    UNKNOWN_CRIT_RECORD = 0x10006

    SUCCESS = -1


def error_string(error: int) -> str:
    """Return the name of an error code; raise ValueError for codes that are not known."""
    try:
        kind = ErrorType(error)
    except ValueError:
        raise ValueError(f"unknown NTS error code: {error}") from None
    if kind is ErrorType.SUCCESS:
        return "Success?"
    return kind.name


class NTSError(Exception):
    """Raised when an NTS exchange fails; ``error`` holds the error code."""

    def __init__(self, error: int) -> None:
        try:
            self.error: int = ErrorType(error)
        except ValueError:
            self.error = error
        if isinstance(self.error, ErrorType):
            message = error_string(self.error)
        else:
            message = f"server error {error}"
        super().__init__(message)