"""Main FastAPI application for Live KB Sync."""

import logging

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from live_kb_sync import __version__
from live_kb_sync.api.sync import get_settings
from live_kb_sync.api.sync import router as sync_router

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format=LOG_FORMAT,
    datefmt=LOG_DATE_FORMAT,
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    description="Keeps the live municipal document current in the assistant's vector store",
    version=__version__,
)


# Root endpoint for simple health checks (load balancers, schedulers)
@app.get("/", response_class=PlainTextResponse)
@app.head("/")
async def root_health_check():
    """Simple, fast health check - no external dependencies."""
    return f"{settings.app_name} is running! 🚀"


app.include_router(sync_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("live_kb_sync.api.app:app", log_level=settings.log_level.lower())
