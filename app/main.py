"""Main FastAPI application."""
import logging
from fastapi import FastAPI
from contextlib import asynccontextmanager

from app.core.config import settings
from app.core.dependencies import close_session_store
from app.core.logging import setup_logging
from app.db.database import AsyncSessionLocal, init_db
from app.api import health
from app.api.webhooks import voice
from app.services.directory.seed import seed_directory

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    if settings.directory_backend == "sql":
        await init_db()
        if settings.directory_file:
            async with AsyncSessionLocal() as db:
                await seed_directory(db, settings.directory_file)
    logger.info(
        f"Banking IVR ready - Directory: {settings.directory_backend}, "
        f"Sessions: {settings.session_backend}"
    )
    yield
    # Shutdown
    await close_session_store()


app = FastAPI(
    title="Banking IVR",
    description="Telephone banking assistant driven by Twilio voice webhooks",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])
app.include_router(voice.router, prefix="/webhooks/voice", tags=["webhooks"])


@app.get("/")
async def root():
    return {
        "message": "Banking IVR API",
        "version": "0.1.0",
        "entry_point": "/webhooks/voice/landing",
    }
