"""Market routes: match listings and single-match lookups.

Both endpoints always answer with a structured body. Provider or store
failures show up as `_metadata` on a 200 response; only a single match that
no tier could resolve is a 404.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.logging import get_logger
from app.services.sync.orchestrator import CACHE_NO_STORE, MatchSyncOrchestrator

logger = get_logger(__name__)

router = APIRouter(tags=["market"])


def get_upstream_client(request: Request):
    """The process-wide upstream client created in the app lifespan."""
    return request.app.state.upstream_client


def get_orchestrator(
    request: Request,
    db: Session = Depends(get_db),
    upstream=Depends(get_upstream_client),
) -> MatchSyncOrchestrator:
    """Dependency to get a request-scoped orchestrator."""
    state = request.app.state
    return MatchSyncOrchestrator(
        db,
        upstream,
        settings=settings,
        quick_purchases=getattr(state, "quick_purchases", None),
        single_flight=getattr(state, "single_flight", None),
    )


@router.get("/market")
async def get_market(
    response: Response,
    status: Optional[str] = Query(
        None,
        pattern="(?i)^(live|upcoming|finished|completed)$",
        description="Lifecycle status filter",
    ),
    mode: str = Query("full", pattern="^(lite|full)$", description="lite for cheap partial payloads"),
    limit: Optional[int] = Query(None, ge=1, le=500),
    league: Optional[str] = Query(None, description="League id"),
    match_id: Optional[str] = Query(None),
    include_v2: Optional[bool] = Query(None),
    orchestrator: MatchSyncOrchestrator = Depends(get_orchestrator),
):
    """
    List matches.

    Returns:
        {matches, total_count, _metadata?}; `_metadata` is present when the
        data is stale or the provider could not be reached
    """
    result = await orchestrator.get_market(
        status=status,
        mode=mode,
        limit=limit,
        league=league,
        match_id=match_id,
        include_v2=include_v2,
    )
    response.headers["Cache-Control"] = result.cache_control
    return result.to_dict()


@router.get("/match/{match_id}")
async def get_match(
    match_id: str,
    response: Response,
    orchestrator: MatchSyncOrchestrator = Depends(get_orchestrator),
):
    """Single match with its QuickPurchase package, if any."""
    result = await orchestrator.get_match(match_id)
    if not result.found:
        return JSONResponse(
            status_code=404,
            content={"error": "Match not found", "_metadata": result.metadata},
            headers={"Cache-Control": CACHE_NO_STORE},
        )
    response.headers["Cache-Control"] = result.cache_control
    return result.to_dict()
