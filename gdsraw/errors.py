from __future__ import annotations

from enum import Enum


class ErrorCode(Enum):
    NO_ERROR = 0
    FILE_OPEN_ERROR = 1
    IO_ERROR = 2
    TRUNCATED_RECORD = 3
    RECORD_TOO_LONG = 4
    INVALID_FILE = 5
    MISSING_REFERENCE = 6

    def __bool__(self) -> bool:
        return self is not ErrorCode.NO_ERROR


class GdsError(Exception):
    """Base for failures raised while decoding a GDSII record stream."""

    code = ErrorCode.INVALID_FILE


class RecordIOError(GdsError):
    code = ErrorCode.IO_ERROR


class TruncatedRecord(GdsError):
    code = ErrorCode.TRUNCATED_RECORD


class RecordTooLong(GdsError):
    code = ErrorCode.RECORD_TOO_LONG


class InvalidRecord(GdsError):
    code = ErrorCode.INVALID_FILE


def keep_first(current: ErrorCode, new: ErrorCode) -> ErrorCode:
    """Return the error code to retain when a pass reports more than one."""

    return current if current else new
