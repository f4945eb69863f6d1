"""Error taxonomy shared by services and translated to HTTP by the app."""

from __future__ import annotations


class IndiError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "", *, code: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        if code:
            self.code = code

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class ValidationError(IndiError):
    status_code = 400
    code = "validation_error"


class AuthenticationError(IndiError):
    status_code = 401
    code = "unauthorized"


class NotFoundError(IndiError):
    status_code = 404
    code = "not_found"


class ConflictError(IndiError):
    status_code = 409
    code = "conflict"


class SlugConflictError(ConflictError):
    """Raised by the repository when the custom_slug unique constraint fires."""

    code = "slug_taken"


class UpstreamStoreError(IndiError):
    status_code = 503
    code = "store_unavailable"
