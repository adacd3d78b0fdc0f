from typing import Optional, Dict, Any


class CostboardException(Exception):
    """Base exception for all costboard errors."""

    # Short human-readable label rendered as the "error" field of responses.
    error: str = "Internal Server Error"

    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        if error is not None:
            self.error = error

    def __str__(self) -> str:
        return f"[{self.code}] {self.message} (status={self.status_code})"


class InvalidInputError(CostboardException):
    """Raised when client-supplied parameters fail validation."""

    error = "Invalid input"

    def __init__(
        self,
        message: str,
        error: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            code="invalid_input",
            status_code=400,
            details=details,
            error=error,
        )


class AuthenticationFailure(CostboardException):
    """Raised when upstream rejects the configured credentials."""

    error = "Authentication failed"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message, code="authentication_failure", status_code=401, details=details
        )


class AuthorizationFailure(CostboardException):
    """Raised when credentials lack permission for the billing API."""

    error = "Access denied"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message, code="authorization_failure", status_code=403, details=details
        )


class UpstreamFailure(CostboardException):
    """Generic failure talking to the upstream billing API."""

    error = "Failed to retrieve billing data"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message, code="upstream_failure", status_code=500, details=details
        )


class AdapterError(CostboardException):
    """
    Raised by cloud adapters. Carries the provider error code (for AWS the
    ClientError code, e.g. AccessDeniedException) in `code`.
    """

    def __init__(
        self,
        message: str,
        code: str = "adapter_error",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code=code, status_code=502, details=details)
