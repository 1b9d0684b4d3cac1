import logging
import time

from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

from .config import settings
from .database import engine
from .errors import AppError, app_error_handler, http_exception_handler
from .models import Base
from .middleware_request_id import RequestIDMiddleware
from .middleware_rate_limit import SlidingWindowLimiter
from .utils.env import env_bool
from .routers import auth as auth_router
from .routers import vehicles as vehicles_router
from .routers import clients as clients_router
from .routers import rentals as rentals_router
from .routers import requests as requests_router
from .routers import public as public_router
from .routers import cashbox as cashbox_router
from .routers import fines as fines_router
from .routers import calendar as calendar_router
from .routers import admin as admin_router


logger = logging.getLogger("rentdesk")

REQ = Counter("http_requests_total", "HTTP requests", ["method", "path", "status"])
REQ_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)


def create_app() -> FastAPI:
    app = FastAPI(title="Rentdesk API", version="0.1.0")

    allowed_origins = settings.ALLOWED_ORIGINS or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)
    allowed_hosts = settings.ALLOWED_HOSTS or ["*"]
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=allowed_hosts)
    app.add_middleware(
        SlidingWindowLimiter,
        limit_per_minute=settings.RATE_LIMIT_PER_MINUTE,
        auth_boost=settings.RATE_LIMIT_AUTH_BOOST,
        exclude_paths=["/health", "/metrics", "/openapi.json", "/docs"],
    )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)

    if settings.AUTO_CREATE_SCHEMA:
        Base.metadata.create_all(bind=engine)

    @app.get("/health")
    def health():
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
        return {"status": "ok", "env": settings.ENV}

    @app.middleware("http")
    async def _metrics_mw(request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start
        route = getattr(request.scope.get("route"), "path", None) or request.url.path
        REQ.labels(request.method, route, str(response.status_code)).inc()
        REQ_DURATION.labels(request.method, route).observe(duration)
        return response

    @app.get("/metrics")
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(auth_router.router)
    app.include_router(vehicles_router.router)
    app.include_router(clients_router.router)
    app.include_router(rentals_router.router)
    app.include_router(requests_router.router)
    app.include_router(public_router.router)
    app.include_router(cashbox_router.router)
    app.include_router(fines_router.router)
    app.include_router(calendar_router.router)
    app.include_router(admin_router.router)
    logger.info("rentdesk app created (env=%s, ledger=%s)", settings.ENV, settings.LEDGER_MODE)
    return app


app = create_app()


def main() -> None:
    import uvicorn
    reload = env_bool("APP_RELOAD", default=False)
    uvicorn.run("rentdesk.main:app", host=settings.APP_HOST, port=settings.APP_PORT, reload=reload)


if __name__ == "__main__":
    main()
