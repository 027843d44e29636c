"""
Repository layer for data access.

The repository pattern provides:
1. Separation of data access logic from business logic
2. Single place for query logic (easier to maintain)
3. Easier testing (can mock repositories)
4. Consistent interface for data operations

Usage:
    from app.repositories import MarketMatchRepository
    from app.core.database import SessionLocal

    db = SessionLocal()
    repo = MarketMatchRepository(db)
    match = repo.find_by_match_id("42")
    db.close()
"""

from app.repositories.base import BaseRepository
from app.repositories.market_match_repository import MarketMatchRepository, SyncMetadataRepository

__all__ = [
    "BaseRepository",
    "MarketMatchRepository",
    "SyncMetadataRepository",
]
