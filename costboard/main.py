import json
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional, Sequence

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from costboard.shared.core.app_routes import (
    register_api_routers,
    register_frontend_routes,
    register_lifecycle_routes,
)
from costboard.shared.core.config import Settings, get_settings
from costboard.shared.core.error_governance import error_payload, handle_exception
from costboard.shared.core.exceptions import CostboardException
from costboard.shared.core.logging import setup_logging
from costboard.shared.core.middleware import RequestIDMiddleware, SecurityHeadersMiddleware
from costboard.shared.core.ops_metrics import API_ERRORS_TOTAL

setup_logging()
logger = structlog.get_logger()

__all__ = ["app", "create_app", "lifespan"]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings
    logger.info(
        "app_starting",
        app_name=settings.APP_NAME,
        environment=settings.ENVIRONMENT,
        aws_region=settings.AWS_REGION,
        static_credentials=bool(settings.AWS_ACCESS_KEY_ID),
        frontend_served=app.state.frontend_served,
    )
    yield
    logger.info("app_shutting_down")


async def costboard_exception_handler(
    request: Request, exc: CostboardException
) -> JSONResponse:
    """Handle custom application exceptions."""
    return handle_exception(request, exc)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Handle FastAPI HTTP exceptions with standardized format."""
    detail_text = str(exc.detail) if isinstance(exc.detail, str) else "Request failed"
    API_ERRORS_TOTAL.labels(
        path=request.url.path, method=request.method, status_code=exc.status_code
    ).inc()
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(detail_text, detail_text, "http_error"),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors."""

    def _json_safe(value: Any) -> Any:
        if isinstance(value, Exception):
            return str(value)
        try:
            json.dumps(value)
            return value
        except (TypeError, ValueError):
            return str(value)

    def _sanitize_errors(errors: Sequence[Any]) -> List[Dict[str, Any]]:
        sanitized = []
        for err in errors:
            clean = dict(err)
            if "ctx" in clean and isinstance(clean["ctx"], dict):
                clean["ctx"] = {k: _json_safe(v) for k, v in clean["ctx"].items()}
            if "input" in clean:
                clean["input"] = _json_safe(clean["input"])
            sanitized.append(clean)
        return sanitized

    API_ERRORS_TOTAL.labels(
        path=request.url.path, method=request.method, status_code=422
    ).inc()
    return JSONResponse(
        status_code=422,
        content=error_payload(
            "Unprocessable Entity",
            "The request parameters are invalid.",
            "validation_error",
            details=_sanitize_errors(exc.errors()),
        ),
    )


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return handle_exception(request, exc)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return handle_exception(request, exc)


def create_app(settings: Optional[Settings] = None, *, instrument: bool = True) -> FastAPI:
    settings = settings or get_settings()

    application = FastAPI(
        title=settings.APP_NAME,
        version=settings.VERSION,
        lifespan=lifespan,
    )
    application.state.settings = settings

    application.add_exception_handler(CostboardException, costboard_exception_handler)  # type: ignore[arg-type]
    application.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    application.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    application.add_exception_handler(ValueError, value_error_handler)  # type: ignore[arg-type]
    application.add_exception_handler(Exception, generic_exception_handler)

    register_lifecycle_routes(
        application,
        app_name=settings.APP_NAME,
        version=settings.VERSION,
        environment=settings.ENVIRONMENT,
    )
    register_api_routers(application)

    if instrument:
        Instrumentator().instrument(application).expose(application, include_in_schema=False)

    # The SPA catch-all route must come after every API/metrics route.
    application.state.frontend_served = False
    if settings.is_production:
        application.state.frontend_served = register_frontend_routes(
            application, settings.FRONTEND_BUILD_DIR
        )
        if not application.state.frontend_served:
            logger.warning(
                "frontend_build_missing", build_dir=settings.FRONTEND_BUILD_DIR
            )

    # Middleware is processed in REVERSE order of addition; CORS goes last
    # so it handles preflight requests first.
    application.add_middleware(GZipMiddleware, minimum_size=1000)
    application.add_middleware(SecurityHeadersMiddleware)
    application.add_middleware(RequestIDMiddleware)

    cors_origins = settings.CORS_ORIGINS or ["*"]
    application.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        # Credentials with a wildcard origin are rejected by browsers.
        allow_credentials="*" not in cors_origins,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

    return application


app = create_app()


def run() -> None:
    """Console entry point: serve the API with uvicorn on Settings.PORT."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "costboard.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=settings.DEBUG,
        log_config=None,
    )
