"""
Market match repository.

All reads and writes of persisted matches go through here. Writes are upserts
keyed by match_id and commit one record at a time, so a failure on one item
never rolls back the rest of a batch.

Usage:
    repo = MarketMatchRepository(db)
    match = repo.find_by_match_id("42")
    upcoming = repo.find_for_listing(status=MatchStatus.UPCOMING, limit=50)
    repo.upsert("42", lambda row: merge_payload(payload, row))
"""
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError

from app.models import MarketMatch, MatchStatus, SyncMetadata
from app.repositories.base import BaseRepository
from app.utils.timezone import utc_now


class MarketMatchRepository(BaseRepository[MarketMatch]):
    """Repository for persisted market matches."""

    def __init__(self, db):
        """Initialize the market match repository."""
        super().__init__(MarketMatch, db)

    # ========================================================================
    # Lookups
    # ========================================================================

    def find_by_match_id(self, match_id: str) -> Optional[MarketMatch]:
        """Find a non-archived match by its external id."""
        with self.guarded("find_by_match_id"):
            return self.where_first(
                MarketMatch.match_id == match_id,
                MarketMatch.is_archived.is_(False),
            )

    def _listing_query(
        self,
        status: Optional[MatchStatus],
        league: Optional[str],
        match_id: Optional[str],
        active_only: bool,
    ):
        query = self.query().filter(MarketMatch.is_archived.is_(False))
        if active_only:
            query = query.filter(MarketMatch.is_active.is_(True))
        if status is not None:
            query = query.filter(MarketMatch.status == status.value)
        if league:
            query = query.filter(MarketMatch.league_id == str(league))
        if match_id:
            query = query.filter(MarketMatch.match_id == str(match_id))
        if status == MatchStatus.FINISHED:
            return query.order_by(desc(MarketMatch.kickoff_at), MarketMatch.id)
        return query.order_by(MarketMatch.kickoff_at, MarketMatch.id)

    def find_for_listing(
        self,
        status: Optional[MatchStatus] = None,
        league: Optional[str] = None,
        match_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[MarketMatch]:
        """
        Active, non-archived matches for a listing.

        Args:
            status: Only this lifecycle status
            league: Only this league id
            match_id: Only this match
            limit: Maximum rows

        Returns:
            Matches ordered by kickoff (latest first for FINISHED)
        """
        with self.guarded("find_for_listing"):
            query = self._listing_query(status, league, match_id, active_only=True)
            if limit:
                query = query.limit(limit)
            return query.all()

    def emergency_read(
        self,
        status: Optional[MatchStatus] = None,
        league: Optional[str] = None,
        match_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[MarketMatch]:
        """
        Last-resort read before an empty response.

        Same filters as the listing but inactive rows are included; archived
        rows stay excluded. The session is rolled back first so a failed
        earlier statement does not poison this one.
        """
        self.rollback_quietly()
        with self.guarded("emergency_read"):
            query = self._listing_query(status, league, match_id, active_only=False)
            if limit:
                query = query.limit(limit)
            return query.all()

    def find_stored(self, match_id: str) -> Optional[MarketMatch]:
        """Find the stored row for a match id, archived or not."""
        with self.guarded("find_stored"):
            return self.where_first(MarketMatch.match_id == match_id)

    # ========================================================================
    # Writes
    # ========================================================================

    def upsert(
        self,
        match_id: str,
        build: Callable[[Optional[MarketMatch]], Dict[str, Any]],
    ) -> MarketMatch:
        """
        Create the match if absent, else update it in place, and commit.

        `build` receives the row that is about to be written (None for a new
        match, archived rows included) and returns the column values, so a
        merge always starts from the stored state it replaces. A concurrent
        insert of the same match_id loses the race on the unique index; the
        winning row is then re-read and merged again.

        Raises:
            PersistenceError: The write failed
        """
        with self.guarded("upsert"):
            instance = self.where_first(MarketMatch.match_id == match_id)
            if instance is None:
                instance = self.create(**build(None))
                try:
                    self.save()
                except IntegrityError:
                    self.rollback()
                    instance = self.where_first(MarketMatch.match_id == match_id)
                    if instance is None:
                        raise
                    self.assign(instance, build(instance))
                    self.save()
            else:
                self.assign(instance, build(instance))
                self.save()
            return instance

    def record_sync_error(self, match_id: str, message: str) -> bool:
        """Count a failed sync against an existing match. Returns False if absent."""
        with self.guarded("record_sync_error"):
            instance = self.where_first(MarketMatch.match_id == match_id)
            if instance is None:
                return False
            instance.sync_errors = (instance.sync_errors or 0) + 1
            instance.last_sync_error = message[:1000]
            instance.updated_at = utc_now()
            self.save()
            return True

    # ========================================================================
    # Sync Status Queries
    # ========================================================================

    def latest_synced(self, status: MatchStatus) -> Optional[MarketMatch]:
        """Most recently synced active match with the given status."""
        with self.guarded("latest_synced"):
            return (
                self.query()
                .filter(
                    MarketMatch.status == status.value,
                    MarketMatch.is_active.is_(True),
                )
                .order_by(desc(MarketMatch.last_synced_at))
                .first()
            )

    def count_by_status(self, status: MatchStatus) -> int:
        with self.guarded("count_by_status"):
            return self.count(
                MarketMatch.status == status.value,
                MarketMatch.is_active.is_(True),
            )


class SyncMetadataRepository(BaseRepository[SyncMetadata]):
    """Bookkeeping rows for scheduled sync runs."""

    SOURCE = "upstream_market"

    def __init__(self, db):
        super().__init__(SyncMetadata, db)

    def get_or_create(self, data_type: str, source: Optional[str] = None) -> SyncMetadata:
        source = source or self.SOURCE
        with self.guarded("sync_metadata_get"):
            metadata = self.where_first(
                SyncMetadata.source == source,
                SyncMetadata.data_type == data_type,
            )
            if metadata is None:
                metadata = self.create(source=source, data_type=data_type)
                self.flush()
            return metadata

    def record_run(
        self,
        data_type: str,
        started_at: datetime,
        synced: int,
        skipped: int,
        errors: int,
        error_message: Optional[str] = None,
    ) -> SyncMetadata:
        """Store the outcome of one scheduled run for a status."""
        metadata = self.get_or_create(data_type)
        finished_at = utc_now()
        with self.guarded("sync_metadata_record"):
            metadata.last_sync_started_at = started_at
            metadata.last_sync_completed_at = finished_at
            if errors and not synced:
                metadata.last_sync_status = "failed"
            elif errors:
                metadata.last_sync_status = "partial"
            else:
                metadata.last_sync_status = "success"
            metadata.records_processed = synced + skipped + errors
            metadata.records_synced = synced
            metadata.records_skipped = skipped
            metadata.records_failed = errors
            metadata.error_message = error_message
            metadata.sync_duration_ms = int((finished_at - started_at).total_seconds() * 1000)
            self.save()
            return metadata

    def find_by_source(self, source: Optional[str] = None) -> List[SyncMetadata]:
        with self.guarded("sync_metadata_list"):
            return self.where(SyncMetadata.source == (source or self.SOURCE))
