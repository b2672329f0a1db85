"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from expense_workflow.api.routes import (
    accounts_router,
    approvals_router,
    customers_router,
    expenses_router,
    health_router,
    register_router,
    reports_router,
    settlement_router,
)
from expense_workflow.config import Settings, get_settings
from expense_workflow.database import dispose_db, init_db
from expense_workflow.errors import (
    EmptyReportError,
    InvalidStateError,
    InvoiceRequiredError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
    WorkflowError,
)
from expense_workflow.events import EventEmitter, UnauthorizedAttemptMonitor
from expense_workflow.integrations import InMemoryReceiptStorage, ReceiptStorage

logger = logging.getLogger(__name__)

# First match wins; NotOwnerError is both Unauthorized and InvalidState
ERROR_STATUS: list[tuple[type[WorkflowError], int]] = [
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (UnauthorizedError, status.HTTP_403_FORBIDDEN),
    (InvalidStateError, status.HTTP_409_CONFLICT),
    (EmptyReportError, status.HTTP_409_CONFLICT),
    (InvoiceRequiredError, status.HTTP_409_CONFLICT),
]


def status_for(exc: WorkflowError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    init_db()
    yield
    await dispose_db()


def create_app(
    settings: Settings | None = None,
    storage: ReceiptStorage | None = None,
    emitter: EventEmitter | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    app = FastAPI(
        title="Expense Workflow API",
        description="Expense report approval workflow",
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    # Shared collaborators
    emitter = emitter or EventEmitter()
    app.state.settings = settings
    app.state.emitter = emitter
    app.state.monitor = UnauthorizedAttemptMonitor(
        settings.unauthorized_alert_threshold
    ).attach(emitter)
    app.state.storage = storage or InMemoryReceiptStorage(
        public_url=settings.storage_public_url,
        ttl_seconds=settings.upload_url_ttl_seconds,
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
    @app.exception_handler(WorkflowError)
    async def workflow_exception_handler(
        request: Request, exc: WorkflowError
    ) -> JSONResponse:
        """Map domain errors to status codes."""
        return JSONResponse(
            status_code=status_for(exc),
            content={
                "detail": exc.message,
                "code": exc.code,
                "context": exc.context or None,
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
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
    for router in (
        accounts_router,
        customers_router,
        reports_router,
        expenses_router,
        approvals_router,
        settlement_router,
        register_router,
    ):
        app.include_router(router, prefix="/api/v1")

    return app
