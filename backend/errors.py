"""
errors.py — Domain error kinds raised by services and mapped to HTTP
responses by the application error handlers (see app._register_error_handlers).
"""


class DomainError(Exception):
    status_code = 500
    default_message = "Internal server error."

    def __init__(self, message=None, details=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details


class NotFound(DomainError):
    status_code = 404
    default_message = "Resource not found."

    @classmethod
    def for_resource(cls, resource: str):
        return cls(f"{resource} not found.")


class InvalidArgument(DomainError):
    status_code = 400
    default_message = "Invalid argument."


class PermissionDenied(DomainError):
    status_code = 403
    default_message = "Access denied."


class AuthenticationRequired(PermissionDenied):
    status_code = 401
    default_message = "Authentication required."


class PersistenceFailure(DomainError):
    status_code = 500
    default_message = "Internal server error."
