"""
Application entrypoint: FastAPI app with negotiation runtime lifecycle management.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from barberflow.config import settings
from barberflow.features.negotiation.api import notifications as notification_routes
from barberflow.features.negotiation.api import router as appointment_routes
from barberflow.features.negotiation.runtime import build_runtime
from barberflow.infrastructure.observability.logging import get_logger, setup_logging
from barberflow.middleware.request_context import RequestContextMiddleware
from barberflow.routes import health

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown with proper resource management."""

    logger.info(
        "Application starting",
        environment=settings.environment,
        debug=settings.debug,
        storage=settings.STORAGE_BACKEND,
    )

    startup_tasks = []
    runtime = None

    try:
        # Storage first, the scheduler recovers timers from it
        logger.info("Initializing negotiation runtime")
        runtime = await build_runtime(settings)
        startup_tasks.append("storage")

        logger.info("Starting expiry scheduler")
        await runtime.scheduler.start()
        startup_tasks.append("expiry_scheduler")

        app.state.negotiation = runtime
        logger.info("All services initialized successfully", services=startup_tasks)

    except Exception as e:
        logger.error("Failed to initialize services", error=str(e), completed_tasks=startup_tasks)

        if runtime is not None:
            try:
                await runtime.close()
            except Exception as cleanup_error:
                logger.error("Error cleaning up negotiation runtime", error=str(cleanup_error))

        raise

    yield

    # Shutdown sequence (reverse order)
    logger.info("Application shutting down")

    app.state.negotiation = None
    try:
        await runtime.close()
        logger.info("All services closed successfully")
    except Exception as e:
        logger.error("Error closing negotiation runtime", error=str(e))


app = FastAPI(
    title="Barberflow",
    description="Appointment negotiation between customers, free barbers and stores",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(health.router)
app.include_router(appointment_routes.router)
app.include_router(notification_routes.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


# Outermost, so the request id is bound while requests are logged
app.add_middleware(RequestContextMiddleware)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
