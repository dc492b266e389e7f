# backend/app/utils/errors.py

"""
Service-level errors.

Services raise these; main.py turns them into JSON responses
with the matching HTTP status.
"""


class ServiceError(Exception):
    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class ValidationFailed(ServiceError):
    status_code = 400
    default_code = "VALIDATION_ERROR"


class Unauthorized(ServiceError):
    status_code = 403
    default_code = "UNAUTHORIZED"


class NotFound(ServiceError):
    status_code = 404
    default_code = "NOT_FOUND"


class Conflict(ServiceError):
    status_code = 409
    default_code = "CONFLICT"


class RateLimited(ServiceError):
    status_code = 429
    default_code = "RATE_LIMITED"


class ServiceUnavailable(ServiceError):
    status_code = 503
    default_code = "SERVICE_UNAVAILABLE"
