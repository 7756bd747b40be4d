"""
FastAPI application entry point for the Insight Engine API.

Configures logging, builds the engine at startup so a malformed catalog
stops the process before it serves traffic, manages the optional database
pool, and registers the analysis router.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from insight_engine import __version__
from insight_engine.api.analysis import router as analysis_router
from insight_engine.core.config import get_settings
from insight_engine.core.database import close_db, init_db
from insight_engine.services.pipeline import get_engine

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for application startup and shutdown.

    On startup:
        - Build and validate the engine (ConfigurationError is fatal)
        - Initialize the database pool when DATABASE_URL is set

    On shutdown:
        - Close the database pool
    """
    logger.info("Insight Engine API starting")
    get_engine()

    settings = get_settings()
    if settings.database_url:
        try:
            await init_db()
            logger.info("Database connection pool initialized")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            # Analysis endpoints do not need the database
    else:
        logger.info("DATABASE_URL not set; persistence disabled")

    yield

    logger.info("Insight Engine API shutting down")
    try:
        await close_db()
    except Exception as e:
        logger.error(f"Error closing database pool: {e}")


# Create FastAPI application
app = FastAPI(
    title="Insight Engine API",
    version=__version__,
    description=(
        "Turns ecosystem activity records into a situation classification, "
        "ranked insights, counterfactual simulations and a meta analysis."
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

app.include_router(analysis_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancer probes.

    Returns:
        Dict with status 'healthy'
    """
    return {"status": "healthy"}


@app.get("/")
async def root():
    return {
        "name": "Insight Engine API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "insight_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
