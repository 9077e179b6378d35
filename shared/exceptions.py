# shared/exceptions.py
"""
Base exception for service-layer failures.

Services raise ServiceError subclasses; API views translate them into
``{"error": {"code", "message", "details"}}`` responses using ``status_code``.
"""


class ServiceError(Exception):
    """Base exception for service-layer errors."""
    code = 'SERVICE_ERROR'
    status_code = 400
    retryable = False

    def __init__(self, message='', code=None, details=None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}

    def as_dict(self):
        return {
            'code': self.code,
            'message': self.message,
            'details': self.details,
        }


class ServiceUnavailableError(ServiceError):
    """A dependency (database, external API) failed. Safe to retry."""
    code = 'SERVICE_UNAVAILABLE'
    status_code = 503
    retryable = True
