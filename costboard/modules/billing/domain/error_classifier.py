"""
Maps upstream billing API failures onto the error kinds surfaced to clients.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from botocore.exceptions import ClientError

from costboard.shared.core.exceptions import (
    AdapterError,
    AuthenticationFailure,
    AuthorizationFailure,
    CostboardException,
    InvalidInputError,
    UpstreamFailure,
)

UNRECOGNIZED_CLIENT = "UnrecognizedClientException"
ACCESS_DENIED = "AccessDeniedException"

AUTHENTICATION_MESSAGE = (
    "Invalid AWS credentials. Please check your AWS_ACCESS_KEY_ID and "
    "AWS_SECRET_ACCESS_KEY in the .env file."
)
AUTHORIZATION_MESSAGE = (
    "Insufficient permissions. Your AWS credentials don't have access to "
    "Cost Explorer API."
)


class ErrorKind(str, Enum):
    INVALID_INPUT = "InvalidInput"
    AUTHENTICATION_FAILURE = "AuthenticationFailure"
    AUTHORIZATION_FAILURE = "AuthorizationFailure"
    UPSTREAM_FAILURE = "UpstreamFailure"


@dataclass(frozen=True)
class ErrorClassification:
    kind: ErrorKind
    http_status: int
    error: str
    user_message: str
    upstream_code: Optional[str] = None

    def to_exception(self) -> CostboardException:
        details = {"upstream_code": self.upstream_code} if self.upstream_code else None
        if self.kind is ErrorKind.INVALID_INPUT:
            return InvalidInputError(self.user_message, error=self.error, details=details)
        if self.kind is ErrorKind.AUTHENTICATION_FAILURE:
            return AuthenticationFailure(self.user_message, details=details)
        if self.kind is ErrorKind.AUTHORIZATION_FAILURE:
            return AuthorizationFailure(self.user_message, details=details)
        return UpstreamFailure(self.user_message, details=details)


def upstream_error_code(error: BaseException) -> Optional[str]:
    """Extract the AWS error code from adapter or botocore exceptions."""
    if isinstance(error, AdapterError):
        return error.code
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code")
    code = getattr(error, "code", None)
    return code if isinstance(code, str) else None


def _upstream_message(error: BaseException) -> str:
    if isinstance(error, CostboardException):
        return error.message
    if isinstance(error, ClientError):
        message = error.response.get("Error", {}).get("Message")
        if message:
            return str(message)
    return str(error) or error.__class__.__name__


def classify(upstream_error: BaseException) -> ErrorClassification:
    """Classify a failure raised while talking to the billing API."""
    if isinstance(upstream_error, InvalidInputError):
        return ErrorClassification(
            kind=ErrorKind.INVALID_INPUT,
            http_status=400,
            error=upstream_error.error,
            user_message=upstream_error.message,
        )
    if isinstance(upstream_error, AuthenticationFailure):
        return ErrorClassification(
            ErrorKind.AUTHENTICATION_FAILURE, 401, upstream_error.error, upstream_error.message
        )
    if isinstance(upstream_error, AuthorizationFailure):
        return ErrorClassification(
            ErrorKind.AUTHORIZATION_FAILURE, 403, upstream_error.error, upstream_error.message
        )

    code = upstream_error_code(upstream_error)
    if code == UNRECOGNIZED_CLIENT:
        return ErrorClassification(
            kind=ErrorKind.AUTHENTICATION_FAILURE,
            http_status=401,
            error=AuthenticationFailure.error,
            user_message=AUTHENTICATION_MESSAGE,
            upstream_code=code,
        )
    if code == ACCESS_DENIED:
        return ErrorClassification(
            kind=ErrorKind.AUTHORIZATION_FAILURE,
            http_status=403,
            error=AuthorizationFailure.error,
            user_message=AUTHORIZATION_MESSAGE,
            upstream_code=code,
        )
    return ErrorClassification(
        kind=ErrorKind.UPSTREAM_FAILURE,
        http_status=500,
        error=UpstreamFailure.error,
        user_message=_upstream_message(upstream_error),
        upstream_code=code,
    )
