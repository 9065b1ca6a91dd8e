"""Domain exceptions raised by the service layer.

Each exception carries the HTTP status it maps to; the handlers registered in
``inkpost.main`` turn them into ``{"error": message}`` bodies.
"""


class InkpostError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(InkpostError):
    """Malformed or out-of-range input."""
    status_code = 400
    default_message = "Invalid request"


class InvalidOperation(ValidationError):
    """Well-formed input describing an operation that is never allowed."""
    default_message = "Invalid operation"


class Unauthorized(InkpostError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(InkpostError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(InkpostError):
    status_code = 404
    default_message = "Not found"


class Conflict(InkpostError):
    status_code = 409
    default_message = "Already exists"
