"""FastAPI application entry point for the mods marketplace API."""

import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from marketplace.config import Settings, settings as default_settings
from marketplace.errors import register_error_handlers
from marketplace.routes.health import router as health_router
from marketplace.routes.mods import router as mods_router
from marketplace.services.cache import ModsCache
from marketplace.services.cache_jobs import CacheJobRunner
from marketplace.services.github import GitHubClient

# Structured logging: JSON for production, human-readable for local
if default_settings.is_production:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}',
        stream=sys.stdout,
    )
else:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {"name": "mods", "description": "Mod management and asset operations"},
    {"name": "health", "description": "API health and status"},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    missing = app.state.settings.validate()
    if missing:
        logger.warning("Missing env vars (GitHub requests may fail): %s", ", ".join(missing))

    app.state.mod_ids = await app.state.content_store.list_mod_ids()
    logger.info("Loaded %d mod ids", len(app.state.mod_ids))
    try:
        yield
    finally:
        await app.state.jobs.drain()
        app.state.jobs.close()
        await app.state.content_store.aclose()


def create_app(
    settings: Settings | None = None,
    cache: ModsCache | None = None,
    content_store=None,
) -> FastAPI:
    """Build the app with one cache, one content-store client and one job runner."""
    settings = settings or default_settings

    app = FastAPI(
        title="Roblox Mods Marketplace API",
        version="1.0.0",
        description="A RESTful API for serving Roblox mods with caching and asset management.",
        openapi_tags=OPENAPI_TAGS,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.cache = cache or ModsCache(ttl_ms=settings.cache_duration_ms)
    app.state.content_store = content_store or GitHubClient.from_settings(settings)
    app.state.jobs = CacheJobRunner(
        app.state.cache,
        app.state.content_store,
        retention_seconds=settings.task_retention_seconds,
    )
    app.state.mod_ids = []

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Security headers
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # Centralized error handlers
    register_error_handlers(app)

    api = APIRouter(prefix=settings.api_prefix)
    api.include_router(mods_router)
    api.include_router(health_router)
    app.include_router(api)

    return app


app = create_app()


def main() -> None:
    logger.info("Marketplace API starting on %s:%d", default_settings.host, default_settings.port)
    uvicorn.run(app, host=default_settings.host, port=default_settings.port)


if __name__ == "__main__":
    main()
