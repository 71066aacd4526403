"""Global error handler — consistent JSON error responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from aventures.enrollment.errors import (
    DuplicateEnrollmentError,
    EnrollmentError,
    EnrollmentNotFoundError,
    TripClosedError,
    TripFullError,
    TripNotFoundError,
)

logger = structlog.get_logger()

ENROLLMENT_ERROR_STATUS: dict[type[EnrollmentError], int] = {
    TripNotFoundError: 404,
    EnrollmentNotFoundError: 404,
    TripFullError: 409,
    TripClosedError: 409,
    DuplicateEnrollmentError: 409,
}


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": jsonable_errors(exc)},
        )

    @app.exception_handler(EnrollmentError)
    async def enrollment_exception_handler(request: Request, exc: EnrollmentError) -> JSONResponse:
        """Map enrollment domain errors that escaped a route to 404/409."""
        status_code = ENROLLMENT_ERROR_STATUS.get(type(exc), 400)
        logger.info("enrollment_error", path=request.url.path, error=str(exc), status_code=status_code)
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc)},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions — always return JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without the raw ``ctx`` values, which may not serialize."""
    return [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]
