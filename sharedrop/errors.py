"""Tagged error taxonomy for the shared-storage service.

Every caller mistake is a ``StorageError`` subclass carrying a stable
``ErrorCode``. Anything else raised out of the store (``OSError`` for a
full disk, a permission problem) is an unexpected failure and is left to
propagate.
"""

from enum import Enum


class ErrorCode(str, Enum):
    INVALID_TEXT = "INVALID_TEXT"
    INVALID_ID = "INVALID_ID"
    NOT_FOUND = "NOT_FOUND"
    INVALID_FILENAME = "INVALID_FILENAME"
    NO_FILES = "NO_FILES"
    UNEXPECTED = "UNEXPECTED"


_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.INVALID_TEXT: 400,
    ErrorCode.INVALID_ID: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INVALID_FILENAME: 400,
    ErrorCode.NO_FILES: 400,
    ErrorCode.UNEXPECTED: 500,
}


def status_for(code: ErrorCode) -> int:
    return _STATUS_BY_CODE[code]


class StorageError(Exception):
    code: ErrorCode = ErrorCode.UNEXPECTED
    default_message = "Storage failure"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def status_code(self) -> int:
        return status_for(self.code)


class InvalidText(StorageError):
    code = ErrorCode.INVALID_TEXT
    default_message = "Message text is required"


class InvalidId(StorageError):
    code = ErrorCode.INVALID_ID
    default_message = "Invalid message id"


class NotFound(StorageError):
    code = ErrorCode.NOT_FOUND
    default_message = "Message not found"


class InvalidFilename(StorageError):
    code = ErrorCode.INVALID_FILENAME
    default_message = "Invalid filename"


class NoFiles(StorageError):
    code = ErrorCode.NO_FILES
    default_message = "No files uploaded"
