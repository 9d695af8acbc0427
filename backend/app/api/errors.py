"""
Maps service results to HTTP responses.

Services report business-rule failures as Err values; routes unwrap them
here so every endpoint uses the same status codes.
"""

from typing import TypeVar

from fastapi import HTTPException, status

from app.services.result import ErrorKind, Result

T = TypeVar("T")

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.INTEGRITY: status.HTTP_401_UNAUTHORIZED,
}


def unwrap(result: Result[T]) -> T:
    """Return the Ok value or raise the HTTPException matching the Err kind."""
    if result.ok:
        return result.value
    headers = None
    if result.code is not None:
        headers = {"X-Rejection-Code": str(getattr(result.code, "value", result.code))}
    raise HTTPException(
        status_code=STATUS_BY_KIND[result.kind],
        detail=result.message,
        headers=headers,
    )
