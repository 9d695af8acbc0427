"""
Result values for business operations.

Business-rule failures (bad input, conflicts, missing rows, wrong actor,
forged tickets) are returned as Err, never raised. Only infrastructure
failures and fatal misconfiguration propagate as exceptions.
"""

import enum
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    INTEGRITY = "integrity"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    message: str = ""

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str
    code: Optional[Any] = None

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]


def validation(message: str) -> Err:
    return Err(ErrorKind.VALIDATION, message)


def conflict(message: str) -> Err:
    return Err(ErrorKind.CONFLICT, message)


def not_found(message: str) -> Err:
    return Err(ErrorKind.NOT_FOUND, message)


def forbidden(message: str) -> Err:
    return Err(ErrorKind.FORBIDDEN, message)
