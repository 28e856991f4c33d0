"""
FastAPI Application — entry point.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sweeper.config import settings
from sweeper.database import init_db, close_db
from sweeper.routes import router, cleanup
from sweeper.routes.history import history_router
from sweeper.services.firebase import init_stores
from sweeper.services.runner import SweepLock, periodic_sweep

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hook. Configuration errors abort startup."""
    logger.info("🚀 Starting RTDB Sweeper v%s", VERSION)

    # Raises ConfigurationError → the server refuses to start
    stores = init_stores(settings.instances())
    app.state.stores = stores
    app.state.sweep_lock = SweepLock()
    logger.info("✅ Firebase ready: %s", ", ".join(s.label for s in stores))

    await init_db()
    logger.info("✅ Sweep history database ready")

    scheduler_task = None
    if settings.sweep_interval_minutes > 0:
        scheduler_task = asyncio.create_task(
            periodic_sweep(
                stores, settings, app.state.sweep_lock,
                interval=settings.sweep_interval_minutes * 60,
            )
        )
        logger.info("⏰ Scheduled sweep every %d min", settings.sweep_interval_minutes)

    logger.info("Listening for cleanup triggers on %s", settings.effective_trigger_path)

    yield

    # Shutdown
    if scheduler_task:
        scheduler_task.cancel()
        try:
            await scheduler_task
        except asyncio.CancelledError:
            pass
    await close_db()
    logger.info("👋 Shutdown complete")


app = FastAPI(
    title="RTDB Sweeper",
    description="Scheduled retention sweeper for Firebase Realtime Database roots.",
    version=VERSION,
    lifespan=lifespan,
)

app.include_router(router)
app.include_router(history_router)
app.add_api_route(
    settings.effective_trigger_path, cleanup, methods=["GET", "POST"], tags=["cleanup"]
)


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
