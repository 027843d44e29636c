"""
Database models for the match sync API.

`MarketMatch` is the system of record for a match. Rows are created on the
first successful sync (full or lite), mutated on every later sync while the
match is UPCOMING or LIVE, and effectively frozen once FINISHED with a
final result.
"""
import enum
from typing import Optional

from sqlalchemy import Column, String, Integer, DateTime, Boolean, Text, JSON, Index, UniqueConstraint
from sqlalchemy.orm import declarative_base

from app.utils.timezone import utc_now

Base = declarative_base()


class MatchStatus(str, enum.Enum):
    UPCOMING = "UPCOMING"
    LIVE = "LIVE"
    FINISHED = "FINISHED"

    @classmethod
    def normalize(cls, value: Optional[str]) -> "MatchStatus":
        """Map provider status strings onto the three lifecycle states."""
        text = str(value or "").strip().upper()
        if text == "LIVE":
            return cls.LIVE
        if text in ("FINISHED", "COMPLETED"):
            return cls.FINISHED
        return cls.UPCOMING

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {MatchStatus.UPCOMING: 0, MatchStatus.LIVE: 1, MatchStatus.FINISHED: 2}


class MarketMatch(Base):
    """A match with its market payload, keyed by the provider's match id."""
    __tablename__ = "market_matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(String(64), nullable=False, unique=True, index=True)
    status = Column(String(16), nullable=False, default=MatchStatus.UPCOMING.value, index=True)
    kickoff_at = Column(DateTime, nullable=False, index=True)

    # Descriptive fields, nullable until known
    league = Column(String(255), nullable=True)
    league_id = Column(String(64), nullable=True, index=True)
    league_country = Column(String(128), nullable=True)
    home_team = Column(String(255), nullable=True)
    home_team_id = Column(String(64), nullable=True)
    home_team_logo = Column(Text, nullable=True)
    away_team = Column(String(255), nullable=True)
    away_team_id = Column(String(64), nullable=True)
    away_team_logo = Column(Text, nullable=True)
    venue = Column(String(255), nullable=True)
    referee = Column(String(255), nullable=True)

    # Live state
    current_score = Column(JSON, nullable=True)  # {"home": int, "away": int}
    elapsed = Column(Integer, nullable=True)
    period = Column(String(32), nullable=True)

    # Set once for FINISHED matches, never recomputed
    final_result = Column(JSON, nullable=True)  # {"score": {...}, "outcome": ..., "outcome_text": ...}

    # Market payload (opaque, merge-able)
    consensus_odds = Column(JSON, nullable=True)
    all_bookmakers = Column(JSON, nullable=True)
    books_count = Column(Integer, nullable=True)
    primary_book = Column(String(64), nullable=True)
    v1_model = Column(JSON, nullable=True)
    v2_model = Column(JSON, nullable=True)
    model_predictions = Column(JSON, nullable=True)
    live_statistics = Column(JSON, nullable=True)
    momentum = Column(JSON, nullable=True)
    model_markets = Column(JSON, nullable=True)
    ai_analysis = Column(JSON, nullable=True)
    match_statistics = Column(JSON, nullable=True)
    raw_api_data = Column(JSON, nullable=True)

    # Sync bookkeeping
    last_synced_at = Column(DateTime, nullable=False, index=True)
    sync_count = Column(Integer, nullable=False, default=0)
    sync_errors = Column(Integer, nullable=False, default=0)
    last_sync_error = Column(Text, nullable=True)
    sync_priority = Column(String(8), nullable=True)  # high, medium, low
    next_sync_at = Column(DateTime, nullable=True)

    # Visibility
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    is_archived = Column(Boolean, nullable=False, default=False, index=True)

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        Index('ix_market_matches_status_kickoff', 'status', 'kickoff_at'),
        Index('ix_market_matches_status_synced', 'status', 'last_synced_at'),
    )

    @property
    def match_status(self) -> MatchStatus:
        return MatchStatus.normalize(self.status)

    def __repr__(self) -> str:
        return f"<MarketMatch {self.match_id} {self.status}>"


class SyncMetadata(Base):
    """Tracks scheduled sync runs per match status.

    One row per (source, data_type); data_type is the synced status
    (live, upcoming, finished). Used by the sync-status endpoint.
    """
    __tablename__ = "sync_metadata"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source = Column(String(32), nullable=False)  # upstream_market
    data_type = Column(String(32), nullable=False)  # live, upcoming, finished
    last_sync_started_at = Column(DateTime, nullable=True)
    last_sync_completed_at = Column(DateTime, nullable=True, index=True)
    last_sync_status = Column(String(16), nullable=True)  # success, failed, partial
    records_processed = Column(Integer, nullable=False, default=0)
    records_synced = Column(Integer, nullable=False, default=0)
    records_skipped = Column(Integer, nullable=False, default=0)
    records_failed = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    sync_duration_ms = Column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint('source', 'data_type', name='uq_sync_metadata_source_type'),
    )
