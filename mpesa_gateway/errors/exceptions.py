class AppError(Exception):
    status_code = 500
    error = "Application error"

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        if status_code:
            self.status_code = status_code
        self.message = message
        self.details = details


class ValidationError(AppError):
    status_code = 400
    error = "Validation error"


class FormatError(ValidationError):
    error = "Invalid format"


class RangeError(ValidationError):
    error = "Value out of range"


class Unauthorized(AppError):
    status_code = 401
    error = "Unauthorized"


class Forbidden(AppError):
    status_code = 403
    error = "Forbidden"


class NotFound(AppError):
    status_code = 404
    error = "Not found"


class RateLimitExceeded(AppError):
    status_code = 429
    error = "Rate limit exceeded"

    def __init__(self, retry_after, limit=None, window_seconds=None):
        super().__init__("Too many requests, please try again later")
        self.retry_after = retry_after
        self.limit = limit
        self.window_seconds = window_seconds


class AuthError(AppError):
    status_code = 500
    error = "Authentication with M-Pesa failed"


class ProviderError(AppError):
    status_code = 500
    error = "M-Pesa request failed"

    def __init__(self, message, http_status=None, details=None):
        super().__init__(message, status_code=http_status, details=details)
        self.http_status = http_status


class TransportError(AppError):
    status_code = 503
    error = "Service temporarily unavailable"

    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


class MalformedCallbackError(AppError):
    status_code = 400
    error = "Malformed callback"
