"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from app.core.config import settings
from app.core.exceptions import (
    AuthorizationError,
    DomainError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from app.core.rate_limit import limiter
from app.core.structured_logging import build_log_context, configure_logging
from app.db.session import engine

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

def init_sentry() -> bool:
    """Start Sentry when a DSN is configured outside dev. Returns whether it started."""
    if not settings.SENTRY_DSN or settings.ENV == "dev":
        return False

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests for performance monitoring
        send_default_pii=False,  # Connection and mood data are PHI
    )
    logger.info("Sentry initialized for error tracking")
    return True


init_sentry()


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="SafeSpace Care API",
    description="Therapeutic connections, permissions and appointment scheduling",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)


# ============================================================================
# Domain Errors
# ============================================================================

_ERROR_STATUS = {
    ValidationError: 400,
    AuthorizationError: 403,
    NotFoundError: 404,
    StateConflictError: 409,
}


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Translate service failures into JSON error responses."""
    status_code = next(
        (code for error_type, code in _ERROR_STATUS.items() if isinstance(exc, error_type)),
        400,
    )
    logger.info(
        "Request rejected: %s",
        type(exc).__name__,
        extra=build_log_context(route=request.url.path, method=request.method),
    )
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


# ============================================================================
# Routers
# ============================================================================

from app.routers import (  # noqa: E402
    appointments,
    auth,
    availability,
    connection_requests,
    connections,
    notifications,
    permissions,
)

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(connections.router, prefix="/connections", tags=["connections"])
app.include_router(
    connection_requests.router, prefix="/connection-requests", tags=["connection-requests"]
)
app.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
app.include_router(availability.router, prefix="/availability", tags=["availability"])
app.include_router(permissions.router, prefix="/permissions", tags=["permissions"])
app.include_router(notifications.router, prefix="/me", tags=["notifications"])


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.
    
    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
