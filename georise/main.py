import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from georise import __version__
from georise.api.v1.router import api_v1_router
from georise.core.config import settings, validate_settings_for_production
from georise.core.exceptions import AppError
from georise.core.logging import setup_logging
from georise.core.metrics import PrometheusMiddleware, metrics_response
from georise.core.middleware import RequestLoggingMiddleware
from georise.core.rate_limit import limiter
from georise.core.sentry import init_sentry
from georise.db.postgres import async_session_factory, engine

# Configure logging before anything else
setup_logging()
init_sentry("api")

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    validate_settings_for_production()
    if not settings.perplexity_api_key:
        logger.warning("PERPLEXITY_API_KEY is not set; analysis runs will fail")
    if not settings.lovable_api_key:
        logger.warning("LOVABLE_API_KEY is not set; competitor analysis and coach are disabled")
    logger.info("Starting GEORISE API v%s (env=%s)", __version__, settings.app_env)

    yield

    # Shutdown
    await engine.dispose()
    logger.info("GEORISE API shut down")


app = FastAPI(
    title="GEORISE",
    description="Brand visibility analysis for AI search engines",
    version=__version__,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.app_debug else None,
    redoc_url="/api/redoc" if settings.app_debug else None,
)


# Error bodies carry both "detail" and "error" (the web client reads "error")
@app.exception_handler(AppError)
async def _app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg', 'invalid')}" if field else first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={"detail": [{k: e[k] for k in ("loc", "msg", "type") if k in e} for e in errors], "error": message},
    )


# Log unhandled exceptions with traceback
@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
    message = f"{type(exc).__name__}: {exc}" if settings.app_debug else "Internal server error"
    return JSONResponse(status_code=500, content={"detail": message, "error": message})


# Rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Middleware (last added runs first)
app.add_middleware(PrometheusMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# CORS: parse allowed_origins from settings (comma-separated)
_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=_origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(api_v1_router)


@app.get("/api/v1/health")
async def health():
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
        db_ok = True
    except Exception as e:
        logger.warning("Health check: database unavailable: %s", e)
        db_ok = False
    return {
        "status": "ok" if db_ok else "degraded",
        "version": __version__,
        "postgres": db_ok,
        "perplexity_configured": bool(settings.perplexity_api_key),
        "ai_gateway_configured": bool(settings.lovable_api_key),
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_response()
