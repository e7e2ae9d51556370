"""Live sync trigger endpoints."""

import logging
from functools import lru_cache

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from live_kb_sync.core.config import Settings
from live_kb_sync.pipelines.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/live-sync", tags=["Live sync"])


@lru_cache
def get_settings() -> Settings:
    return Settings()


async def _run_sync(settings: Settings) -> JSONResponse:
    result = await SyncOrchestrator(settings).run()
    if not result.ok:
        logger.error(f"Triggered live sync failed: {result.error}")
    return JSONResponse(
        status_code=200 if result.ok else 500,
        content=result.model_dump(mode="json"),
    )


@router.get("")
async def trigger_sync(settings: Settings = Depends(get_settings)):
    """Run one sync (scheduler entry point). 200 on success, 500 on failure."""
    return await _run_sync(settings)


@router.post("")
async def trigger_sync_post(settings: Settings = Depends(get_settings)):
    """Run one sync on demand."""
    return await _run_sync(settings)
