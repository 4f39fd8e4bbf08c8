"""Error taxonomy shared by the domain modules and the HTTP layer.

Each class carries the HTTP status it maps to; the app's exception handlers
turn any of them into ``{"success": false, "message": ...}``.
"""


class LMSError(Exception):
    status_code = 500

    def __init__(self, message: str = "Server error"):
        super().__init__(message)
        self.message = message


class ValidationFailed(LMSError):
    status_code = 400


class NotAuthenticated(LMSError):
    status_code = 401


class Forbidden(LMSError):
    status_code = 403


class Unavailable(LMSError):
    """The target exists but is closed to the caller right now (unpublished, outside its window)."""

    status_code = 403


class NotFound(LMSError):
    status_code = 404


class Conflict(LMSError):
    status_code = 409
