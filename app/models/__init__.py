"""
Database models for the match sync API.

Usage:
    from app.models import MarketMatch, MatchStatus

    live = db.query(MarketMatch).filter(MarketMatch.status == MatchStatus.LIVE.value).all()
"""
from app.models.models import Base, MarketMatch, MatchStatus, SyncMetadata

__all__ = [
    "Base",
    "MarketMatch",
    "MatchStatus",
    "SyncMetadata",
]
