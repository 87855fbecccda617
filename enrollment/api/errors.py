"""Service error -> HTTP response mapping, shared by every router."""

from __future__ import annotations

from fastapi import HTTPException, status

from enrollment.services.errors import EnrollmentError, ErrorKind

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INSUFFICIENT_FUNDS: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorKind.MAX_ATTEMPTS_REACHED: status.HTTP_409_CONFLICT,
    ErrorKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.DEPLOYMENT: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def to_http_exception(e: EnrollmentError) -> HTTPException:
    return HTTPException(
        status_code=STATUS_BY_KIND.get(e.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"code": e.code, "message": e.message},
    )
