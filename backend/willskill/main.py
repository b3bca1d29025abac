"""
Main Application Entry Point
============================

Responsibilities:
- Initialize FastAPI application
- Build the session store and audit logger owned by the application
- Configure middleware stack
- Register API routers
- Set up exception handlers
- Provide health check endpoints

Tables are created from model metadata at startup for development;
schema migrations are managed outside this service.
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from willskill.core.config import settings
from willskill.core.exceptions import WillSkillException
from willskill.core.logging import configure_logging, get_logger
from willskill.db.session import SessionLocal, check_database_connection, init_db
from willskill.middleware.request_context import RequestContextMiddleware, SecurityHeadersMiddleware
from willskill.routes import admin_routes, auth_routes, impersonation_routes, role_routes
from willskill.services.audit_service import AuditLogger
from willskill.store.sql import SqlSessionStore

configure_logging()

# Initialize logger
logger = get_logger(__name__)


# =====================================
# Application Lifespan Handler
# =====================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
    - Create tables and check the database connection
    - Attach the session store and audit logger to app.state

    Shutdown:
    - Wait for pending audit writes
    """
    logger.info(
        "Application starting",
        extra={
            "app_name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
        }
    )

    init_db()
    if not check_database_connection():
        logger.error("Database connection failed on startup")
    else:
        logger.info("Database connection established")

    store = SqlSessionStore(SessionLocal)
    app.state.session_store = store
    app.state.audit_logger = AuditLogger(store)

    try:
        yield
    except asyncio.CancelledError:
        logger.debug("Application shutdown requested (CancelledError caught)")
        raise
    finally:
        await app.state.audit_logger.drain()
        logger.info("Application shutdown complete")


# =====================================
# FastAPI App Initialization
# =====================================

app = FastAPI(
    title=settings.APP_NAME,
    description="""
    WillSkill assessment admin API: roles, role switching and super admin
    impersonation for the leadership-assessment dashboard.

    ## Authentication

    Use `/auth/login` to obtain access and refresh tokens and send the
    access token as `Authorization: Bearer <token>`.

    ## Authorization

    Roles, most senior first: `super_admin`, `admin`, `chair`, `co_chair`,
    `em`, `user`. The active role only changes what the dashboard shows;
    every endpoint checks the roles actually held.
    """,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
)


# =====================================
# Middleware
# =====================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    max_age=3600,
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestContextMiddleware)


# =====================================
# Exception Handlers
# =====================================

@app.exception_handler(WillSkillException)
async def willskill_exception_handler(request: Request, exc: WillSkillException):
    """Convert application exceptions to {"message", "details"} responses."""
    logger.warning(
        "Application exception",
        extra={
            "exception_type": type(exc).__name__,
            "message": exc.message,
            "status_code": exc.status_code,
            "path": request.url.path,
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "message": exc.message,
            "details": exc.details,
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })

    logger.warning(
        "Request validation error",
        extra={
            "path": request.url.path,
            "errors": errors,
        }
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "message": "Validation error",
            "details": {"errors": errors},
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        extra={
            "exception_type": type(exc).__name__,
            "message": str(exc),
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=True,
    )

    # Don't expose internal errors in production
    if settings.is_production:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "message": "An unexpected error occurred",
                "details": {},
            },
        )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "message": str(exc),
            "details": {"type": type(exc).__name__},
        },
    )


# =====================================
# Register Routers
# =====================================

app.include_router(auth_routes.router)
app.include_router(role_routes.router)
app.include_router(impersonation_routes.router)
app.include_router(admin_routes.router)


# =====================================
# Health Check Endpoints
# =====================================

@app.get("/", tags=["Health"], summary="Basic Health Check")
def health_check():
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }


@app.get("/health", tags=["Health"], summary="Detailed Health Check")
def detailed_health_check():
    """Service status including database connectivity."""
    db_healthy = check_database_connection()

    return {
        "status": "healthy" if db_healthy else "degraded",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "checks": {
            "database": "healthy" if db_healthy else "unhealthy",
        },
    }
