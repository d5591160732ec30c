"""
Player Cipher API - FastAPI application entry point.

Resolves playable stream URLs from watch pages by analyzing the player
script once per player version and replaying its signature cipher and
n-parameter transform.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import get_settings
from .resolver import close_resolver, get_resolver
from .routes.api import router

logging.basicConfig(
    level=logging.DEBUG if get_settings().debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    settings = get_settings()
    logger.info("Player Cipher API starting up...")
    cached = get_resolver().engine.cache.versions()
    logger.info(
        f"Cache backend: {settings.cache_backend} ({settings.cache_dir}), "
        f"{len(cached)} player(s) already analyzed"
    )

    yield

    await close_resolver()
    logger.info("Player Cipher API shutting down...")


app = FastAPI(
    title="Player Cipher API",
    description=(
        "Resolves signature-protected and throttled stream URLs using the "
        "cipher operations and n-parameter function of the current player."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router, prefix="/api")


@app.get("/", tags=["root"])
async def root():
    return {
        "name": "Player Cipher API",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "resolve": "/api/resolve",
            "resolve_page": "/api/resolve/page",
            "players": "/api/players",
            "health": "/api/health",
        },
    }


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "playercipher.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
