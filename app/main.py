import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api.v1.router import api_v1_router
from app.core.config import settings, validate_settings_for_production
from app.core.logging import RequestLoggingMiddleware, setup_logging
from app.core.metrics import PrometheusMiddleware, metrics_response
from app.core.rate_limit import limiter
from app.core.sentry import init_sentry
from app.delivery.aggregator import DeliveryQuoteAggregator
from app.delivery.carriers import build_carriers
from app.delivery.types import InvalidDeliveryRequest
from app.gateway.service import build_ai_service
from app.gateway.types import AiNotConfigured, AiRateLimitExceeded, AiUpstreamError

# Configure logging before anything else
setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    if settings.app_env == "production":
        validate_settings_for_production()
    init_sentry()
    logger.info("Starting BelBird backend...")

    app.state.ai_service = build_ai_service(settings)
    limits = app.state.ai_service.rate_limiter.limits
    logger.info(
        "AI provider: %s (configured=%s, quota %d/min, %d/day)",
        settings.ai_provider,
        app.state.ai_service.is_configured,
        limits["per_minute"],
        limits["per_day"],
    )

    carriers = build_carriers(settings)
    app.state.delivery_aggregator = DeliveryQuoteAggregator(carriers, timeout=settings.delivery_timeout_seconds)
    logger.info(
        "Delivery carriers configured: %s",
        ", ".join(p.value for p, c in carriers.items() if c.is_configured) or "none (fallback tariffs only)",
    )

    yield

    # Shutdown
    logger.info("BelBird backend shut down")


app = FastAPI(
    title="BelBird Backend",
    description="AI content and delivery cost services for the BelBird store",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.app_debug else None,
    redoc_url="/api/redoc" if settings.app_debug else None,
)


# --- Domain errors ---


@app.exception_handler(AiRateLimitExceeded)
async def _ai_rate_limit_handler(request: Request, exc: AiRateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": str(exc), "scope": exc.scope.value, "retry_after": exc.retry_after_seconds},
        headers={"Retry-After": str(exc.retry_after_seconds)},
    )


@app.exception_handler(InvalidDeliveryRequest)
async def _invalid_delivery_handler(request: Request, exc: InvalidDeliveryRequest):
    return JSONResponse(status_code=400, content={"detail": str(exc), "field": exc.field})


@app.exception_handler(AiNotConfigured)
async def _ai_not_configured_handler(request: Request, exc: AiNotConfigured):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(AiUpstreamError)
async def _ai_upstream_handler(request: Request, exc: AiUpstreamError):
    return JSONResponse(
        status_code=502,
        content={"detail": str(exc), "provider": exc.vendor.value, "error_code": exc.error_code or None},
    )


# Log unhandled exceptions with traceback
@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Request metrics and access log
app.add_middleware(PrometheusMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# CORS: parse allowed_origins from settings (comma-separated)
_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(api_v1_router)


@app.get("/api/v1/health")
async def health(request: Request):
    ai_service = getattr(request.app.state, "ai_service", None)
    return {
        "status": "ok",
        "ai_configured": bool(ai_service and ai_service.is_configured),
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_response()
