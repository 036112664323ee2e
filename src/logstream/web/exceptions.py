"""Custom exceptions for the web API."""


class LogStreamAPIException(Exception):
    """Base exception for the logstream API."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class AuthenticationError(LogStreamAPIException):
    """Raised when no valid operator credential was presented."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, 401)


class AuthorizationError(LogStreamAPIException):
    """Raised when the caller is authenticated but not an operator."""

    def __init__(self, message: str = "Operator access required"):
        super().__init__(message, 403)


class ServiceUnavailableError(LogStreamAPIException):
    """Raised when the capture service is not attached to the application."""

    def __init__(self, message: str = "Log capture service not available"):
        super().__init__(message, 503)
