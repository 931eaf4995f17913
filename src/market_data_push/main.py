"""Main module for the market data push service."""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from market_data_push.config import Settings
from market_data_push.container import Container, init_container
from market_data_push.db import init_db
from market_data_push.logging_config import configure_logging
from market_data_push.routers import (jobs_router, market_router,
                                      subscriptions_router)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Create tables and start the scheduler; on shutdown stop it and close clients."""
    container: Container = fastapi_app.state.container
    init_db(container.engine())

    scheduler = container.scheduler()
    for job in container.push_jobs().default_jobs():
        scheduler.schedule_job(job)
    scheduler.start()

    yield

    await scheduler.stop()

    # Close source HTTP clients and the channel
    for name, client in container.source_clients().items():
        try:
            await client.close()
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Error closing source %s: %s", name, exc)
    channel = container.channel()
    close = getattr(channel, "close", None)
    if close is not None:
        try:
            await close()
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Error closing channel: %s", exc)


def create_app(container: Container | None = None) -> FastAPI:
    """Build the FastAPI app around a (wired) container."""
    container = container or init_container()
    container.wire()

    fastapi_app = FastAPI(
        title="Market Data Push",
        description="Scheduled crypto market pushes to subscribed chats",
        version="0.1.0",
        lifespan=lifespan,
    )
    fastapi_app.state.container = container

    fastapi_app.include_router(jobs_router)
    fastapi_app.include_router(market_router)
    fastapi_app.include_router(subscriptions_router)

    @fastapi_app.get("/")
    def health():
        """Return health check status."""
        return {"status": "ok"}

    return fastapi_app


app = create_app()


def run():
    """Run the server (uvicorn). Use for the `start` script."""
    settings = Settings.from_env()
    configure_logging(settings.log_level, settings.log_file)
    uvicorn.run("market_data_push.main:app", host="127.0.0.1", port=8001)
