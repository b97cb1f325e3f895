"""
FieldOps Core API

Back-office API for a field-service company (window cleaning, roof and
facade washing): user provisioning, customers, teams, orders and sales tasks.
"""

import time
import traceback
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

# Environment must be loaded before settings are read
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

from config import get_settings, get_cors_config, validate_environment
from logging_config import setup_logging, get_logger, set_request_context, clear_request_context
from sentry_integration import init_sentry, capture_exception
from database import init_db, close_db
from services.errors import NotFoundError, DuplicateError, PermissionDeniedError
from provisioning.router import edge_router, router as provisioning_router
from routers import (
    health_router, customers_router, teams_router, orders_router, tasks_router, users_router
)

settings = get_settings()

# JSON lines in production, readable text elsewhere
setup_logging(
    level=settings.LOG_LEVEL,
    json_format=settings.is_production,
    service_name="fieldops-core"
)
logger = get_logger(__name__)

if settings.SENTRY_DSN:
    init_sentry(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        release=settings.API_VERSION,
        traces_sample_rate=0.1 if settings.is_production else 0.0,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.API_TITLE} {settings.API_VERSION} ({settings.ENVIRONMENT})")

    env_status = validate_environment()
    for error in env_status["errors"]:
        logger.error(f"Configuration error: {error}")
    for warning in env_status["warnings"]:
        logger.warning(f"Configuration warning: {warning}")
    if not env_status["valid"] and settings.is_production:
        raise RuntimeError("Cannot start in production with invalid configuration")

    try:
        await init_db()
        logger.info("Database connection established")
    except Exception as e:
        # Local runs without a database still serve health and docs
        logger.error(f"Failed to initialize database: {e}")
        if settings.is_production:
            raise

    yield

    logger.info("Shutting down")
    await close_db()


app = FastAPI(
    title=settings.API_TITLE,
    description="""
    ### User Provisioning
    - POST /functions/v1/create-user - Identity + profile in one call
    - POST /api/users/provision - Admin provisioning into the caller's organisation

    ### Customers, Teams, Orders, Sales Tasks, Users
    - /api/customers, /api/teams, /api/orders, /api/tasks, /api/users
    """,
    version=settings.API_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug_enabled else None,
    redoc_url="/api/redoc" if settings.debug_enabled else None,
)

api_router = APIRouter(prefix="/api")
api_router.include_router(health_router)
# Before users_router so /users/provision is not read as /users/{user_id}
api_router.include_router(provisioning_router)
api_router.include_router(users_router)
api_router.include_router(customers_router)
api_router.include_router(teams_router)
api_router.include_router(orders_router)
api_router.include_router(tasks_router)

app.include_router(api_router)
app.include_router(edge_router)

app.add_middleware(CORSMiddleware, **get_cors_config())


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Tag log lines with a request id; log failed requests (every request in debug)."""
    started = time.perf_counter()
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
    set_request_context(request_id=request_id)

    try:
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(elapsed_ms)
        if settings.debug_enabled or response.status_code >= 400:
            logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms}ms)")
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} failed: {e}")
        raise
    finally:
        clear_request_context()


# ==================== EXCEPTION HANDLERS ====================

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(DuplicateError)
async def duplicate_handler(request: Request, exc: DuplicateError):
    return JSONResponse(status_code=409, content={"detail": exc.message, "field": exc.field})


@app.exception_handler(PermissionDeniedError)
async def permission_denied_handler(request: Request, exc: PermissionDeniedError):
    return JSONResponse(status_code=403, content={"detail": exc.message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=exc)
    capture_exception(exc, path=request.url.path)

    if settings.is_production:
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
    return JSONResponse(
        status_code=500,
        content={
            "detail": str(exc),
            "type": type(exc).__name__,
            "traceback": traceback.format_exception(exc) if settings.debug_enabled else None,
        }
    )
