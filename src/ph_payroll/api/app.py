"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ph_payroll.api.routes import (
    calendars_router,
    health_router,
    payroll_runs_router,
    penalties_router,
    thirteenth_month_router,
)
from ph_payroll.config import configure_logging, get_settings
from ph_payroll.database import dispose_db, init_db
from ph_payroll.errors import (
    DuplicateCalendarEventError,
    InvalidAdjustmentError,
    InvalidCalendarEventError,
    InvalidPenaltyError,
    InvalidRateConfigError,
    InvalidTransitionError,
    LockedRecordConflictError,
    NotFoundError,
    PayrollError,
    StatutoryLookupMissError,
)

logger = logging.getLogger(__name__)

# Most specific first; the first match decides the status code
ERROR_STATUS: list[tuple[type[PayrollError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (LockedRecordConflictError, status.HTTP_409_CONFLICT),
    (DuplicateCalendarEventError, status.HTTP_409_CONFLICT),
    (InvalidRateConfigError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidAdjustmentError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidCalendarEventError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidPenaltyError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (StatutoryLookupMissError, status.HTTP_422_UNPROCESSABLE_ENTITY),
]


def status_for(exc: PayrollError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    configure_logging(get_settings())
    init_db()
    yield
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="PH Payroll Engine API",
        description="Philippine payroll: attendance to payslip",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(PayrollError)
    async def payroll_error_handler(request: Request, exc: PayrollError) -> JSONResponse:
        """Map domain errors to JSON bodies carrying the error code."""
        code = status_for(exc)
        if code >= 500:
            logger.error("Unmapped payroll error on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=code, content={"detail": str(exc), "code": exc.code})

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s", request.url.path)
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
    app.include_router(calendars_router, prefix="/api/v1")
    app.include_router(penalties_router, prefix="/api/v1")
    app.include_router(thirteenth_month_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
