# catalog_sync/main.py

import logging
import os
import subprocess
from contextlib import asynccontextmanager

from fastapi import FastAPI

from catalog_sync.core.logging_config import configure_logging
from catalog_sync.database import dispose_engine
from catalog_sync.routes import catalog_sync, health
from catalog_sync.scheduler import start_scheduler, stop_scheduler

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Run migrations on startup
    if os.getenv('RUN_MIGRATIONS', 'false').lower() == 'true':
        logger.info("Running database migrations...")
        result = subprocess.run(['alembic', 'upgrade', 'head'], capture_output=True, text=True)
        if result.returncode == 0:
            logger.info("Migrations completed successfully")
        else:
            logger.error(f"Migration failed: {result.stderr}")

    await start_scheduler()
    try:
        yield  # This is where the app runs
    finally:
        await stop_scheduler()
        await dispose_engine()

app = FastAPI(
    title="Catalog Sync",
    lifespan=lifespan
)

app.include_router(catalog_sync.router)
app.include_router(health.router)  # Health check should be accessible without auth
