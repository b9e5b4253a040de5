"""
Domain errors raised by the service layer.

Routes let these propagate; `create_app` maps each one to a response page.
"""
from __future__ import annotations


class FmsError(Exception):
    status_code = 500


class NotFoundError(FmsError):
    """Entity is absent, hidden from the caller, or in the wrong state."""

    status_code = 404


class ForbiddenError(FmsError):
    status_code = 403


class ValidationError(FmsError):
    status_code = 400

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class StorageError(RuntimeError):
    """Persistence failure for a single request. Nothing was applied."""

    status_code = 503
