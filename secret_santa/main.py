"""
Application entry point with database pool lifecycle.

The recurring delivery loop runs only in the worker process
(secret-santa-worker notification_delivery); the API holds a processor for
the on-demand admin pass.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from secret_santa.api.router import admin_router, router
from secret_santa.config import settings
from secret_santa.db.pool import db_pool
from secret_santa.features.notifications.jobs.delivery_job import build_delivery_processor
from secret_santa.infrastructure.observability.logging import get_logger, log_request, setup_logging

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL, environment=settings.environment)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the pool and build the admin delivery processor; close the pool on shutdown."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    await db_pool.initialize()
    app.state.delivery_processor = build_delivery_processor()

    yield

    logger.info("Application shutting down")
    await db_pool.close()

    logger.info("All services closed successfully")


app = FastAPI(
    title="Secret Santa",
    description="Gift exchange draw engine and notification delivery",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(router)
app.include_router(admin_router)


@app.get("/health")
async def health() -> dict:
    processor = getattr(app.state, "delivery_processor", None)
    return {
        "database": db_pool.health_check(),
        "notification_processing": processor.is_processing if processor else None,
    }


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round((time.time() - start_time) * 1000, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
