import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from area_insights.config import settings
from area_insights.database import init_db
from area_insights.exceptions import AreaInsightsError
from area_insights.api.insights import router as insights_router
from area_insights.api.preferences import router as preferences_router
from area_insights.api.areas import router as areas_router
from area_insights.api.monitoring import router as monitoring_router
from area_insights.services.background import background_dispatcher
from area_insights.services.redis_client import redis_client
from area_insights.utils.logging import RequestLoggingMiddleware, setup_logging
from area_insights.utils.metrics import MetricsMiddleware
from area_insights.utils.middleware import RateLimitMiddleware, SecurityHeadersMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level, settings.log_format)
    await redis_client.connect()
    try:
        await init_db()
    except Exception as e:
        # Preference lookups fall back to defaults until the database is reachable
        logger.error(f"Database initialisation failed: {e}")
    logger.info(f"{settings.app_name} {settings.app_version} started ({settings.environment})")

    yield

    await background_dispatcher.drain(timeout=5)
    await redis_client.disconnect()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Personalized points of interest around a clicked map location",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.backend_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(RateLimitMiddleware)


def error_response(status_code: int, error: str, message: str, code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error,
            "message": message,
            "code": code,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


@app.exception_handler(AreaInsightsError)
async def area_insights_error_handler(request: Request, exc: AreaInsightsError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return error_response(exc.status_code, type(exc).__name__, exc.message, exc.code)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return error_response(400, "Invalid request data", details, "VALIDATION_ERROR")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    message = str(exc) if settings.debug and settings.environment != "production" else "Something went wrong"
    return error_response(500, "Internal server error", message, "INTERNAL_SERVER_ERROR")


# Include routers
app.include_router(insights_router, prefix="/api/v1", tags=["insights"])
app.include_router(preferences_router, prefix="/api/v1/preferences", tags=["preferences"])
app.include_router(areas_router, prefix="/api/v1/areas", tags=["areas"])
app.include_router(monitoring_router, prefix="/api/v1/monitoring", tags=["monitoring"])


@app.get("/")
async def root():
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "environment": settings.environment,
        "version": settings.app_version
    }
