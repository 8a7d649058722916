"""Rackwise FastAPI application.

Mounts the /internal/* gateway (unauthenticated, service-to-service)
over the compatibility engine.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rackwise.api.internal import router as internal_router
from rackwise.api.internal import set_cache, set_lookup, set_policy
from rackwise.cache.redis_cache import InMemoryCache, ResultCache
from rackwise.engine.lookup import InMemorySpecLookup
from rackwise.engine.policy import SpecPolicy

logger = logging.getLogger(__name__)

CATALOG_PATH = os.getenv("RACKWISE_CATALOG_PATH")


# ──────────────────────────────────────────────
# Lifespan: startup / shutdown
# ──────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the catalog and connect the cache on startup."""
    if CATALOG_PATH:
        lookup = InMemorySpecLookup.load_json_file(CATALOG_PATH)
    else:
        lookup = InMemorySpecLookup()
        logger.warning("RACKWISE_CATALOG_PATH not set - starting with an empty catalog")
    set_lookup(lookup)

    policy = SpecPolicy.from_env()
    set_policy(policy)
    logger.info(
        "Strict specification types: %s",
        ", ".join(sorted(t.value for t in policy.strict_types)) or "none",
    )

    cache = ResultCache()
    if not await cache.connect():
        logger.warning("Falling back to in-process result cache")
        cache = InMemoryCache()
    set_cache(cache)

    yield

    await cache.disconnect()
    logger.info("Shutting down Rackwise")


# ──────────────────────────────────────────────
# App
# ──────────────────────────────────────────────


def create_app() -> FastAPI:
    """Create and configure the FastAPI app."""
    app = FastAPI(
        title="Rackwise",
        description=(
            "Server-build compatibility and slot/resource accounting engine.\n\n"
            "## Gateways\n\n"
            "- **Internal** (`/internal/*`): service-to-service, no auth required\n"
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    allowed_origins = os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://localhost:5173",
    ).split(",")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in allowed_origins],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(internal_router)

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "engine": "Rackwise",
            "version": "0.1.0",
            "gateways": {"internal": "/internal"},
        }

    return app


# ──────────────────────────────────────────────
# Entrypoint
# ──────────────────────────────────────────────

app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "rackwise.api.app:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
