"""Error taxonomy shared by every service.

Each error carries an ErrorKind (the category the API maps to an HTTP
status) and a stable ``code`` clients can branch on.  Messages are safe to
show to the caller: they never confirm that a resource exists when the
caller is not allowed to see it.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    MAX_ATTEMPTS_REACHED = "MAX_ATTEMPTS_REACHED"
    VALIDATION = "VALIDATION"
    DEPLOYMENT = "DEPLOYMENT"
    INTERNAL = "INTERNAL"


class EnrollmentError(Exception):
    kind: ErrorKind = ErrorKind.INTERNAL
    code: str = "INTERNAL"
    default_message = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ForbiddenError(EnrollmentError):
    kind = ErrorKind.FORBIDDEN
    code = "FORBIDDEN"
    default_message = "Insufficient permissions"


class CourseAccessRequiredError(ForbiddenError):
    code = "COURSE_ACCESS_REQUIRED"
    default_message = "Course access required"


class NotFoundError(EnrollmentError):
    kind = ErrorKind.NOT_FOUND
    code = "NOT_FOUND"
    default_message = "Not found"


class ConflictError(EnrollmentError):
    kind = ErrorKind.CONFLICT
    code = "CONFLICT"
    default_message = "Conflicting request"


class AlreadyUsedError(ConflictError):
    code = "ALREADY_USED"
    default_message = "Code has already been used"


class InsufficientFundsError(EnrollmentError):
    kind = ErrorKind.INSUFFICIENT_FUNDS
    code = "INSUFFICIENT_FUNDS"
    default_message = "Insufficient balance"


class MaxAttemptsReachedError(EnrollmentError):
    kind = ErrorKind.MAX_ATTEMPTS_REACHED
    code = "MAX_ATTEMPTS_REACHED"
    default_message = "Maximum attempts reached for this quiz"


class ValidationError(EnrollmentError, ValueError):
    kind = ErrorKind.VALIDATION
    code = "VALIDATION"
    default_message = "Invalid request"


class StoreError(EnrollmentError):
    kind = ErrorKind.INTERNAL
    code = "INTERNAL"
    default_message = "Internal error"


class SchemaMismatchError(StoreError):
    """The database schema is behind the code (a migration was not applied)."""

    kind = ErrorKind.DEPLOYMENT
    code = "SCHEMA_MISMATCH"
    default_message = "Service misconfigured: database schema is out of date"
