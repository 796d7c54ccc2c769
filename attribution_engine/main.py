"""
FastAPI application entry point for the attribution engine.

Configures logging, CORS and the database pool lifecycle, and registers the
attribution and creative intelligence routers.

Run locally:
    uvicorn attribution_engine.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from attribution_engine import __version__
from attribution_engine.api.attribution import router as attribution_router
from attribution_engine.api.creative_intelligence import router as creative_intelligence_router
from attribution_engine.core.database import close_db, init_db

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Open the database pool on startup and close it on shutdown.

    A failed pool initialization is logged but does not abort startup; the
    pool is created lazily on the first request instead.
    """
    logger.info("Attribution engine API starting")
    try:
        await init_db()
        logger.info("Database connection pool initialized")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")

    yield

    logger.info("Attribution engine API shutting down")
    try:
        await close_db()
    except Exception as e:
        logger.error(f"Error closing database pool: {e}")


app = FastAPI(
    title="Attribution Engine API",
    version=__version__,
    description=(
        "Resolves donation tracking codes to channels, campaigns and ads, and "
        "turns attributed revenue into statistically validated creative "
        "performance rankings, fatigue alerts and budget recommendations."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers carry their own prefixes
app.include_router(attribution_router)
app.include_router(creative_intelligence_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancer probes.
    """
    return {"status": "healthy"}


@app.get("/")
async def root():
    return {
        "name": "Attribution Engine API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "attribution_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
