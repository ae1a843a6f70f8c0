"""FastAPI application factory"""

import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from credit_engine.api.middleware import RequestIDMiddleware, MetricsMiddleware
from credit_engine.api.dependencies import get_request_id
from credit_engine.api.v1 import approvals, credit_sales, customers, payments, settings as settings_routes
from credit_engine.domain.exceptions import (
    BandConfigurationGapError,
    ConcurrentModificationError,
    CreditBlockedError,
    CreditLimitExceededError,
    CreditSalesDisabledError,
    CustomerAlreadyExistsError,
    DuplicateOriginReferenceError,
    DomainException,
    IllegalTransitionError,
    InsufficientApprovalAuthorityError,
    InvalidAmountError,
    LimitBelowOutstandingError,
    NotFoundError,
    OverpaymentUnappliedError,
    RoleSeparationViolationError,
    SelfApprovalForbiddenError,
)
from credit_engine.infrastructure.observability.logging import setup_logging
from credit_engine.config import settings

# Setup structured logging
setup_logging(settings.log_level)

# First match wins; subclasses before their bases
ERROR_STATUS_CODES = [
    (NotFoundError, 404),
    (SelfApprovalForbiddenError, 403),
    (InsufficientApprovalAuthorityError, 403),
    (RoleSeparationViolationError, 403),
    (IllegalTransitionError, 409),
    (ConcurrentModificationError, 409),
    (CustomerAlreadyExistsError, 409),
    (DuplicateOriginReferenceError, 409),
    (CreditBlockedError, 422),
    (CreditLimitExceededError, 422),
    (CreditSalesDisabledError, 422),
    (LimitBelowOutstandingError, 422),
    (OverpaymentUnappliedError, 422),
    (BandConfigurationGapError, 422),
    (InvalidAmountError, 422),
]


def status_code_for(exc: DomainException) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 400


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    status_code = status_code_for(exc)
    logging.warning(
        f"Request rejected: {exc}",
        extra={
            "request_id": get_request_id(request),
            "error": type(exc).__name__,
            "status_code": status_code,
        },
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Credit Engine",
        description="Customer credit ledger, payment allocation, scoring and approval workflow",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(credit_sales.router, prefix="/v1", tags=["credit-sales"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])
    app.include_router(approvals.router, prefix="/v1", tags=["approvals"])
    app.include_router(customers.router, prefix="/v1", tags=["customers"])
    app.include_router(settings_routes.router, prefix="/v1", tags=["settings"])

    return app


app = create_app()
