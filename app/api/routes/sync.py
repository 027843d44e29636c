"""Sync API routes for market data synchronization and health.

Provides endpoints for:
- Triggering the scheduled market sync (cron caller or admin)
- Per-status sync health for the admin dashboard
- Scheduler status

All endpoints require a bearer token (CRON_SECRET or ADMIN_TOKEN).
"""
import time
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from app.api.routes.market import get_orchestrator
from app.core.auth import require_sync_token
from app.core.logging import get_logger
from app.core.scheduler import get_scheduler
from app.services.sync.errors import PersistenceError
from app.services.sync.orchestrator import SYNC_TYPES, MatchSyncOrchestrator

logger = get_logger(__name__)

router = APIRouter(
    prefix="/sync",
    tags=["sync"],
    dependencies=[Depends(require_sync_token)],
)


@router.api_route("/market", methods=["GET", "POST"])
async def trigger_market_sync(
    sync_type: str = Query("all", alias="type", description="all, live, upcoming or finished"),
    orchestrator: MatchSyncOrchestrator = Depends(get_orchestrator),
) -> Dict:
    """
    Run the market sync now.

    Live matches synced less than the live TTL ago and upcoming matches
    synced less than the upcoming TTL ago are skipped; finished matches are
    written once.
    """
    if sync_type.lower() not in SYNC_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown sync type '{sync_type}'. Use one of: {', '.join(SYNC_TYPES)}",
        )

    started = time.perf_counter()
    logger.info(f"Market sync triggered (type={sync_type})")
    result = await orchestrator.run_scheduled_sync(sync_type)
    logger.info(
        f"Market sync finished in {int((time.perf_counter() - started) * 1000)}ms",
        extra={"sync_type": sync_type},
    )
    return result


@router.get("/market/status")
async def get_market_sync_status(
    orchestrator: MatchSyncOrchestrator = Depends(get_orchestrator),
):
    """
    Sync health per status (healthy, degraded, error).

    A status is in error when it has no data or its newest record is older
    than twice its interval, and degraded when that record has sync errors or
    is older than 1.5 times its interval.
    """
    try:
        return orchestrator.get_sync_status()
    except PersistenceError as e:
        logger.error(f"Failed to get sync status: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})


@router.get("/scheduler")
async def get_scheduler_status() -> Dict:
    """Whether the background scheduler runs, and its jobs."""
    scheduler = get_scheduler()
    if scheduler is None or not scheduler.running:
        return {"running": False, "jobs": []}
    return {"running": True, "jobs": scheduler.jobs()}
