from typing import Iterator, Optional


class QuarryError(Exception):
    """Base exception for all errors raised by Quarry"""

    code: str = "quarry"

    def __init__(self, message: str = "", code: Optional[str] = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class FilterError(QuarryError):
    """Raised when a filter cannot be compiled into SQL"""

    code = "invalid_filter"


class RecordNotFound(QuarryError):
    """Raised when the record to operate on does not exist"""

    code = "record_not_found"


class WriteConflict(QuarryError):
    """Raised when a transaction fails on a write conflict or a deadlock"""

    code = "write_conflict"


class UnsupportedOperation(QuarryError):
    """Raised when the underlying client cannot perform an operation"""

    code = "unsupported"


def error_codes(exc: Optional[BaseException]) -> Iterator[str]:
    """Yield the error codes found on an exception and its cause chain"""
    seen = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        code = getattr(exc, "code", None)
        if isinstance(code, str):
            yield code
        exc = exc.__cause__
