"""
Error taxonomy shared by services and HTTP handlers.

Services raise these; the FastAPI app converts them into a uniform JSON
envelope of the form ``{"error": <message>, "code": <CODE>}``.
"""

from __future__ import annotations


class GroveError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str = "Something went wrong"):
        super().__init__(message)
        self.message = message

    def as_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class UnauthorizedError(GroveError):
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ForbiddenError(GroveError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


AuthorizationError = ForbiddenError


class NotFoundError(GroveError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class ValidationError(GroveError):
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Invalid request"):
        super().__init__(message)


class ConflictError(GroveError):
    status_code = 409
    code = "CONFLICT"

    def __init__(self, message: str = "Conflict"):
        super().__init__(message)


class ExpiredError(GroveError):
    status_code = 410
    code = "EXPIRED"

    def __init__(self, message: str = "This link is no longer valid"):
        super().__init__(message)
