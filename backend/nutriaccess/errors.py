"""Error taxonomy shared by the authorities, the resolver and the HTTP layer.

Every class carries the HTTP status it renders to and a stable machine-readable
``error`` key. Messages are safe to show to the caller.
"""
from typing import Optional


class ClinicError(Exception):
    status_code = 500
    error = "internal_error"
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ClinicError):
    status_code = 400
    error = "validation_error"
    default_message = "Invalid input"


class AuthenticationFailure(ClinicError):
    status_code = 401
    error = "unauthorized"
    default_message = "Unauthorized"


class InvalidOrExpiredCode(AuthenticationFailure):
    """Unknown, expired, revoked or inactive code. Deliberately indistinguishable."""
    default_message = "Invalid or expired access code"


class AuthorizationFailure(ClinicError):
    status_code = 403
    error = "forbidden"
    default_message = "Not allowed to access this resource"


class NotFoundError(ClinicError):
    status_code = 404
    error = "not_found"
    default_message = "Not found"


class ConflictError(ClinicError):
    status_code = 409
    error = "conflict"
    default_message = "Conflict"


class ExpiredCredential(ClinicError):
    status_code = 410
    error = "expired_credential"
    default_message = "Access code expired"


class TooManyAttempts(ClinicError):
    status_code = 429
    error = "too_many_attempts"
    default_message = "Too many failed attempts, try again later"

    def __init__(self, retry_after: int, message: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(message)


class InternalError(ClinicError):
    pass
