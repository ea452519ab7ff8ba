"""Public error taxonomy of the crop lookup endpoint."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    INVALID_ARGUMENT = "invalid-argument"
    UNAVAILABLE = "unavailable"
    INTERNAL = "internal"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]

    @property
    def callable_status(self) -> str:
        # Callable-function protocol spells kinds in upper snake case.
        return self.value.replace("-", "_").upper()


_HTTP_STATUS = {
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.UNAVAILABLE: 503,
    ErrorKind.INTERNAL: 500,
}


class CropServiceError(Exception):
    """Structured failure surfaced to callers.

    ``message`` is safe to show in the client; ``detail`` carries upstream
    context for logs only.
    """

    def __init__(
        self, kind: ErrorKind, message: str, *, detail: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.detail = detail

    def __repr__(self) -> str:
        return f"CropServiceError(kind={self.kind.value!r}, message={self.message!r})"


def invalid_argument(message: str, *, detail: Optional[str] = None) -> CropServiceError:
    return CropServiceError(ErrorKind.INVALID_ARGUMENT, message, detail=detail)


def unavailable(message: str, *, detail: Optional[str] = None) -> CropServiceError:
    return CropServiceError(ErrorKind.UNAVAILABLE, message, detail=detail)


def internal(message: str, *, detail: Optional[str] = None) -> CropServiceError:
    return CropServiceError(ErrorKind.INTERNAL, message, detail=detail)
