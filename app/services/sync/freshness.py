"""Freshness policy for persisted match records.

FINISHED matches never go stale: once finalized the stored record is the
source of truth. LIVE and UPCOMING records go stale once the time since their
last successful upstream sync exceeds the TTL for their status.

    policy = FreshnessPolicy.from_settings(settings)
    if not policy.is_too_old(record):
        return record
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from app.models import MarketMatch, MatchStatus
from app.utils.timezone import utc_now

DEFAULT_LIVE_TTL_SECONDS = 30
DEFAULT_UPCOMING_TTL_SECONDS = 600


@dataclass(frozen=True)
class FreshnessPolicy:
    live_ttl_seconds: int = DEFAULT_LIVE_TTL_SECONDS
    upcoming_ttl_seconds: int = DEFAULT_UPCOMING_TTL_SECONDS

    @classmethod
    def from_settings(cls, settings) -> "FreshnessPolicy":
        return cls(
            live_ttl_seconds=settings.FRESHNESS_LIVE_TTL_SECONDS,
            upcoming_ttl_seconds=settings.FRESHNESS_UPCOMING_TTL_SECONDS,
        )

    def ttl_for(self, status: MatchStatus) -> Optional[int]:
        """TTL in seconds for a status; None means the status never expires."""
        if status == MatchStatus.FINISHED:
            return None
        if status == MatchStatus.LIVE:
            return self.live_ttl_seconds
        return self.upcoming_ttl_seconds

    def is_too_old(self, record: MarketMatch, now: Optional[datetime] = None) -> bool:
        """
        Whether a persisted record is too old to serve.

        Args:
            record: Stored match with `status` and `last_synced_at`
            now: Reference time (naive UTC), defaults to the current time

        Returns:
            False for FINISHED records regardless of age; otherwise True once
            the age exceeds the status TTL or when the record was never synced
        """
        ttl = self.ttl_for(record.match_status)
        if ttl is None:
            return False
        age = age_seconds(record, now)
        if age is None:
            return True
        return age > ttl

    def partition(
        self,
        records: Iterable[MarketMatch],
        now: Optional[datetime] = None,
    ) -> Tuple[List[MarketMatch], List[MarketMatch]]:
        """Split records into (fresh, stale), preserving order within each."""
        now = now or utc_now()
        fresh: List[MarketMatch] = []
        stale: List[MarketMatch] = []
        for record in records:
            (stale if self.is_too_old(record, now) else fresh).append(record)
        return fresh, stale


def age_seconds(record: MarketMatch, now: Optional[datetime] = None) -> Optional[float]:
    """Seconds since the record's last successful sync, or None if never synced."""
    if record.last_synced_at is None:
        return None
    now = now or utc_now()
    return max(0.0, (now - record.last_synced_at).total_seconds())


_default_policy = FreshnessPolicy()


def is_too_old(
    record: MarketMatch,
    now: Optional[datetime] = None,
    policy: Optional[FreshnessPolicy] = None,
) -> bool:
    """Module-level shortcut for `FreshnessPolicy.is_too_old` with default TTLs."""
    return (policy or _default_policy).is_too_old(record, now)
