"""Service error taxonomy and result values.

Services report expected failures by returning a `Result` whose `error`
is set instead of raising; controllers check `ok` and translate the
error kind into an HTTP status.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNAVAILABLE = "unavailable"


HTTP_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UNAVAILABLE: 503,
}


@dataclass
class ServiceError:
    kind: ErrorKind
    message: str
    errors: Optional[List[dict]] = None

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.kind]


@dataclass
class Result(Generic[T]):
    """Either a value or a `ServiceError`, never both."""
    value: Optional[T] = None
    error: Optional[ServiceError] = field(default=None)

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, errors: Optional[List[dict]] = None) -> "Result":
        return cls(error=ServiceError(kind=kind, message=message, errors=errors))
