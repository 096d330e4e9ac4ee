"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payroll_recon.api.routes import health_router, jobs_router, payroll_router, payroll_runs_router
from payroll_recon.config import get_settings
from payroll_recon.database import dispose_db, init_db
from payroll_recon.errors import (
    BatchCommitFailureError,
    InvalidArgumentError,
    NotFoundError,
    PartialFailureError,
    PayrollError,
    PayrollNotReadyError,
    PermissionDeniedError,
)

logger = logging.getLogger(__name__)

# Most specific first; PayrollError itself falls through to 500
ERROR_STATUS: list[tuple[type[PayrollError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidArgumentError, status.HTTP_400_BAD_REQUEST),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (PayrollNotReadyError, status.HTTP_409_CONFLICT),
    (PartialFailureError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (BatchCommitFailureError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def error_status(exc: PayrollError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_detail(exc: PayrollError) -> str:
    if isinstance(exc, PayrollNotReadyError):
        names = exc.missing_employee_names or [str(i) for i in exc.missing_employee_ids]
        return f"Cannot complete job. Missing pay rates for: {', '.join(names)}"
    return str(exc)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    init_db()
    yield
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title="Payroll Reconciliation API",
        description="Payroll run reconciliation and job completion",
        version=settings.app_version,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(PayrollError)
    async def payroll_exception_handler(request: Request, exc: PayrollError) -> JSONResponse:
        """Map domain errors to JSON error responses."""
        status_code = error_status(exc)
        content = {"detail": error_detail(exc), "code": exc.code}
        if isinstance(exc, PayrollNotReadyError):
            content["missing_employee_ids"] = [str(i) for i in exc.missing_employee_ids]
        if isinstance(exc, PartialFailureError):
            content["failed_step"] = exc.failed_step
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(payroll_runs_router, prefix="/api/v1")
    app.include_router(payroll_router, prefix="/api/v1")
    app.include_router(jobs_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
