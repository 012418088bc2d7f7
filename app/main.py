import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.router import api_v1_router
from app.core.config import settings, validate_settings_for_production
from app.core.exceptions import AppError
from app.core.logging import setup_logging
from app.core.middleware import RequestLoggingMiddleware
from app.core.sentry import init_sentry
from app.db.postgres import engine
from app.gateway.registry import list_configured_providers

# Configure logging before anything else
setup_logging()
init_sentry()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    validate_settings_for_production()
    providers = list_configured_providers()
    logger.info("Starting Brand Monitor (providers: %s)", ", ".join(p.id for p in providers) or "none")

    yield

    # Shutdown
    await engine.dispose()
    logger.info("Brand Monitor shut down")


app = FastAPI(
    title="Brand Monitor",
    description="AI answer-engine brand visibility: prompt runs, citations and share of voice",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.app_debug else None,
    redoc_url="/api/redoc" if settings.app_debug else None,
)


@app.exception_handler(AppError)
async def _app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Log unhandled exceptions with traceback
@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"detail": f"{type(exc).__name__}: {exc}"})


# Request logging middleware
app.add_middleware(RequestLoggingMiddleware)

# CORS — parse allowed_origins from settings (comma-separated)
_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Demo mode — no caller identity required, every request acts as the demo user
if settings.demo_mode and settings.demo_user_id:
    from app.core.dependencies import get_current_user_id, get_demo_user_id

    app.dependency_overrides[get_current_user_id] = get_demo_user_id
    logger.info("DEMO MODE enabled — caller identity bypassed for %s", settings.demo_user_id)

# API routes
app.include_router(api_v1_router)


@app.get("/api/v1/health")
async def health():
    return {
        "status": "ok",
        "providers": [p.id for p in list_configured_providers()],
    }
