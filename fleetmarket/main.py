import logging
import os
import time

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy import text

from fleetmarket_shared import RedisRateLimiter, SlidingWindowLimiter

from .config import settings
from .database import engine
from .models import Base
from .middleware_request_id import RequestIDMiddleware
from .routers import admin_analytics as admin_analytics_router
from .routers import admin_autoclips as admin_autoclips_router
from .routers import admin_dealerships as admin_dealerships_router
from .routers import admin_listings as admin_listings_router
from .routers import admin_users as admin_users_router
from .routers import auth as auth_router
from .routers import dealer as dealer_router
from .routers import media as media_router
from .routers import public as public_router


logging.basicConfig(level=settings.LOG_LEVEL.upper(), format="%(asctime)s %(levelname)s %(name)s %(message)s")

REQ = Counter("http_requests_total", "HTTP requests", ["method", "path", "status"])
REQ_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)


def create_app() -> FastAPI:
    app = FastAPI(title="Fleet Market API", version="0.1.0", docs_url="/docs")

    allowed_origins = settings.ALLOWED_ORIGINS or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    if settings.RATE_LIMIT_BACKEND == "redis":
        app.add_middleware(
            RedisRateLimiter,
            redis_url=settings.REDIS_URL,
            limit_per_minute=settings.RATE_LIMIT_PER_MINUTE,
            auth_boost=settings.RATE_LIMIT_AUTH_BOOST,
            prefix=settings.RATE_LIMIT_REDIS_PREFIX,
        )
    else:
        app.add_middleware(
            SlidingWindowLimiter,
            limit_per_minute=settings.RATE_LIMIT_PER_MINUTE,
            auth_boost=settings.RATE_LIMIT_AUTH_BOOST,
        )

    if settings.AUTO_CREATE_SCHEMA:
        Base.metadata.create_all(bind=engine)

    @app.get("/health")
    def health():
        with engine.connect() as conn:
            conn.execute(text("select 1"))
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
    app.include_router(media_router.router)
    app.include_router(admin_listings_router.router)
    app.include_router(admin_dealerships_router.router)
    app.include_router(admin_users_router.router)
    app.include_router(admin_autoclips_router.router)
    app.include_router(admin_analytics_router.router)
    app.include_router(dealer_router.router)
    app.include_router(public_router.router)

    if settings.MEDIA_BASE_URL.startswith("/"):
        os.makedirs(settings.MEDIA_ROOT, exist_ok=True)
        app.mount(settings.MEDIA_BASE_URL, StaticFiles(directory=settings.MEDIA_ROOT), name="media")
    return app


app = create_app()
