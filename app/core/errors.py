"""
Typed failures raised by the budget engine and its store.

The HTTP layer maps them to status codes in ``app.main``:

    ValidationError   → 400
    NotFoundError     → 404
    ConflictError     → 409
    PersistenceError  → 500
"""


class AppError(Exception):
    """Base class for domain errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class ValidationError(AppError):
    """Malformed or out-of-range input (bad threshold, wrong category type)."""

    status_code = 400


class NotFoundError(AppError):
    """A referenced user-owned entity does not exist."""

    status_code = 404


class ConflictError(AppError):
    """Uniqueness violation: duplicate budget slot, duplicate alert threshold."""

    status_code = 409


class PersistenceError(AppError):
    """Underlying storage failure. The original exception is chained."""

    status_code = 500
