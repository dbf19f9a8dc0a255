"""
core/errors.py -- Error taxonomy for the todolist service.

Every error a caller can see is an AppError subclass carrying its HTTP status.
api/main.py registers one exception handler for AppError that renders
{"error": message}; route and store code raise these and never build error
responses by hand.

Cache faults are deliberately absent: they are absorbed by cache/aside.py
and never reach a caller. Store faults at runtime surface as plain
SQLAlchemy exceptions and fall through to the generic 500 handler, which logs
the detail and returns a fixed message.

Layer rule: core/ is the kernel. No imports from api/, auth/, cache/, tasks/.
"""


class AppError(Exception):
    """Base class for errors that translate to a client-facing HTTP status."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Missing or invalid input. Message is surfaced verbatim."""

    status_code = 400


class NotFound(AppError):
    """The referenced entity does not exist."""

    status_code = 404


class Conflict(AppError):
    """A unique field is already taken.

    Reported as 400 rather than 409 to match the published API contract.
    """

    status_code = 400


class Unauthorized(AppError):
    """Missing, invalid, or expired token, or bad credentials.

    Callers always pass a generic message: the cause (expired vs. tampered,
    unknown email vs. wrong password) is never revealed.
    """

    status_code = 401
