# src/smart_select/main.py
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from smart_select.api.dependencies import get_http_client
from smart_select.api.v1.router import api_router
from smart_select.core.config import Settings, get_settings
from smart_select.core.metrics import REQUEST_COUNT

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        REQUEST_COUNT.labels(
            method=request.method,
            path=request.url.path,
            status_code=str(response.status_code),
        ).inc()
        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup: fehlender API-Key lässt jeden Upstream-Aufruf scheitern
    if not get_settings().api_key_configured:
        logger.warning("REDCIRCLE_API_KEY is not set; all stock lookups will fail")
    yield
    # Shutdown: Gracefully schließen
    client = get_http_client()
    await client.aclose()
    get_http_client.cache_clear()


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_requests}/{settings.rate_limit_window_seconds} seconds"],
)

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    description="Smart product selection with automatic backup substitution",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Rate Limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]
app.add_middleware(SlowAPIMiddleware)

# Metrics Middleware
app.add_middleware(MetricsMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(api_router)


@app.get("/", tags=["Health"])
async def root() -> dict[str, object]:
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "endpoints": {
            "health": "GET /healthz",
            "smartSelect": "POST /api/v1/stock/smart-select",
            "stockWarm": "POST /api/v1/stock/warm",
            "products": "GET /api/v1/products?ids=...",
            "productById": "GET /api/v1/products/{product_id}",
            "cacheStats": "GET /api/v1/cache/stats",
        },
        "documentation": {"interactive": "/docs", "openapi": "/openapi.json"},
    }


@app.get("/healthz", tags=["Health"])
async def health_check(current: Settings = Depends(get_settings)) -> dict[str, object]:
    return {
        "status": "ok",
        "version": current.app_version,
        "api_key_configured": current.api_key_configured,
    }


@app.get("/readyz", tags=["Health"])
async def readiness_check() -> dict[str, str]:
    return {"status": "ready"}


@app.get("/metrics", tags=["Monitoring"])
async def metrics_endpoint() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
