"""
Unified Error Governance

Centrally handles exception classification, structured logging and error
metrics so every failure leaves the API as `{error, message, code}`.
"""

from typing import Any, Dict, Optional
from uuid import uuid4

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse

from costboard.shared.core.exceptions import CostboardException
from costboard.shared.core.ops_metrics import API_ERRORS_TOTAL

logger = structlog.get_logger()


def error_payload(
    error: str, message: str, code: Optional[str] = None, **extra: Any
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"error": error, "message": message}
    if code:
        payload["code"] = code
    payload.update({k: v for k, v in extra.items() if v is not None})
    return payload


def handle_exception(
    request: Request, exc: Exception, error_id: Optional[str] = None
) -> JSONResponse:
    """
    Classifies and records exceptions, returning a standardized JSON response.
    """
    error_id = error_id or str(uuid4())

    if isinstance(exc, CostboardException):
        costboard_exc = exc
    elif isinstance(exc, ValueError):
        # Business logic validation errors should be 400
        costboard_exc = CostboardException(
            message=str(exc),
            code="value_error",
            status_code=400,
            error="Invalid request parameters",
        )
        logger.warning(
            "business_validation_error",
            error=str(exc),
            error_id=error_id,
            path=request.url.path,
        )
    else:
        # Always sanitize unhandled exceptions to avoid leaking secrets via message bodies.
        costboard_exc = CostboardException(
            message="An unexpected internal error occurred",
            code="internal_error",
            status_code=500,
        )
        logger.exception(
            "unhandled_raw_exception",
            error=str(exc),
            error_id=error_id,
            path=request.url.path,
        )

    API_ERRORS_TOTAL.labels(
        path=request.url.path,
        method=request.method,
        status_code=costboard_exc.status_code,
    ).inc()

    log = logger.warning if costboard_exc.status_code < 500 else logger.error
    log(
        "api_error",
        error_id=error_id,
        code=costboard_exc.code,
        message=costboard_exc.message,
        status_code=costboard_exc.status_code,
        path=request.url.path,
        details=costboard_exc.details,
    )

    return JSONResponse(
        status_code=costboard_exc.status_code,
        content=error_payload(
            costboard_exc.error,
            costboard_exc.message,
            costboard_exc.code,
            id=error_id,
        ),
    )
