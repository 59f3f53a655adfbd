"""Error taxonomy shared by services and routers.

Every error renders as ``{"error": <message>}`` with the status code carried
by the exception class; see the handlers registered in ``main.py``.
"""


class AppError(Exception):
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(AppError):
    status_code = 400
    default_message = "Invalid request"


class Unauthenticated(AppError):
    status_code = 401
    default_message = "Authentication required"


class Forbidden(AppError):
    status_code = 403
    default_message = "Not authorized"


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


__all__ = ["AppError", "ValidationFailed", "Unauthenticated", "Forbidden", "NotFound"]
