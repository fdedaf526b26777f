"""Exceptions and process-level error codes.

Format problems inside an exclusion file are never raised; they are
collected on :class:`ellang.results.ParseResult`.  The exceptions in
this module cover programming errors against the data model and the
few faults that escape the library.  Callers that must hand a plain
integer to a non-Python caller (a shell, a foreign-function shim) use
:func:`error_code_for` to translate.
"""

from __future__ import annotations

from enum import IntEnum


class ErrorCode(IntEnum):
    """Fixed status codes for callers outside Python."""

    SUCCESS = 0
    NULL_POINTER = -1
    FILE_NOT_FOUND = -2
    PARSE_FAILED = -3
    WRITE_FAILED = -4
    INVALID_FORMAT = -5
    MEMORY_ALLOCATION = -6


class ExclusionError(Exception):
    """Base class for errors raised by the ellang package."""

    code = ErrorCode.INVALID_FORMAT

    def __init__(self, message: str, code: ErrorCode | None = None) -> None:
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(f"[{self.code.name}] {message}")


class InvalidScopeError(ExclusionError, ValueError):
    """Raised when a scope would be created without a name."""

    code = ErrorCode.INVALID_FORMAT


def error_code_for(exc: BaseException) -> ErrorCode:
    """Map an exception that reached the boundary to an :class:`ErrorCode`."""
    if isinstance(exc, ExclusionError):
        return exc.code
    if isinstance(exc, MemoryError):
        return ErrorCode.MEMORY_ALLOCATION
    if isinstance(exc, FileNotFoundError):
        return ErrorCode.FILE_NOT_FOUND
    if isinstance(exc, (TypeError, AttributeError)):
        return ErrorCode.NULL_POINTER
    if isinstance(exc, UnicodeDecodeError):
        return ErrorCode.INVALID_FORMAT
    if isinstance(exc, OSError):
        return ErrorCode.WRITE_FAILED
    return ErrorCode.PARSE_FAILED
