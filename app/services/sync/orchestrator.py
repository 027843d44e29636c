"""Match sync orchestrator.

Decides, per request, which tier answers:

    store (fresh) -> upstream provider -> store (stale) -> emergency read -> empty

Single-match flow (`get_match`):
1. Read the stored record.
2. Fresh (or FINISHED) -> return it without calling the provider.
3. Otherwise fetch from the provider, merge, persist and return fresh data.
4. Provider failed and a record exists -> return it flagged stale.
5. Nothing stored -> emergency re-read when the first read failed, then the
   QuickPurchase placeholder, else a not-found result.

List flow (`get_market`):
1. Read stored records for the status/league/match filters.
2. Split them into fresh and stale.
3. Any fresh -> dedupe and return them.
4. Only stale and mode=lite -> return the stale set flagged stale.
5. Fetch from the provider; parse each item as lite or full, merge, persist,
   dedupe and return.
6. Provider failed -> stale set, else emergency read, else an empty result
   with `errorType` / `fallbackReason` metadata.

Nothing in this module raises past its public methods: provider and store
failures become degraded results with `_metadata`. Persisting is a best-effort
side effect; a failed write still returns the freshly fetched data.
Request-path provider calls, retries included, are cut off at
`settings.upstream_deadline_seconds` so the fallbacks run inside the request
timeout.

Scheduled sync (`sync_by_status`, `run_scheduled_sync`) walks the provider's
listing for one status and upserts whatever is due, recording a SyncMetadata
row per status.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, Union

from app.core import metrics
from app.core.config import settings as default_settings
from app.core.logging import get_logger
from app.models import MarketMatch, MatchStatus
from app.repositories import MarketMatchRepository, SyncMetadataRepository
from app.services.sync.dedupe import dedupe, match_id_of, normalize_key
from app.services.sync.errors import MissingIdentifier, PersistenceError, UpstreamError, UpstreamTimeout
from app.services.sync.freshness import FreshnessPolicy, age_seconds
from app.services.sync.match_mapper import to_api_format, to_api_list
from app.services.sync.merge import merge_payload
from app.services.sync.payloads import FULL, LITE, FullPayload, LitePayload, parse_upstream_item
from app.services.sync.quick_purchase import (
    NullQuickPurchaseProvider,
    QuickPurchaseProvider,
    build_match_from_package,
    fill_missing_team_names,
)
from app.services.sync.single_flight import NoFlight
from app.utils.timezone import format_time_since, isoformat_utc, utc_now

logger = get_logger(__name__)

# Fallback reasons reported in `_metadata.fallbackReason`
STALE_DATA = "stale_data"
EMERGENCY_READ = "emergency_read"
QUICK_PURCHASE = "quick_purchase"
NO_DATA_AVAILABLE = "no_data_available"

UPSTREAM_NO_DATA = "upstream_no_data"

CACHE_NO_STORE = "no-store, no-cache, must-revalidate"
CACHE_FINISHED = "public, s-maxage=3600, stale-while-revalidate=7200"
CACHE_UPCOMING = "public, s-maxage=60, stale-while-revalidate=120"

# Accepted sync types and the statuses they cover
SYNC_TYPES = {
    "all": (MatchStatus.LIVE, MatchStatus.UPCOMING, MatchStatus.FINISHED),
    "live": (MatchStatus.LIVE,),
    "upcoming": (MatchStatus.UPCOMING,),
    "finished": (MatchStatus.FINISHED,),
    "completed": (MatchStatus.FINISHED,),
}


def cache_control_for(status: Optional[MatchStatus], degraded: bool = False) -> str:
    """Cache-Control header for a response about matches of `status`."""
    if degraded or status == MatchStatus.LIVE:
        return CACHE_NO_STORE
    if status == MatchStatus.FINISHED:
        return CACHE_FINISHED
    return CACHE_UPCOMING


def parse_status(value: Optional[Union[str, MatchStatus]]) -> Optional[MatchStatus]:
    """Query-string status (live|upcoming|finished|completed) to MatchStatus."""
    if value is None or isinstance(value, MatchStatus):
        return value
    text = str(value).strip()
    if not text:
        return None
    return MatchStatus.normalize(text)


@dataclass
class MarketResult:
    """Outcome of a list request."""

    matches: List[Dict[str, Any]] = field(default_factory=list)
    total_count: int = 0
    metadata: Optional[Dict[str, Any]] = None
    status: Optional[MatchStatus] = None
    source: str = "database"

    @property
    def degraded(self) -> bool:
        return bool(self.metadata and (self.metadata.get("stale") or self.metadata.get("errorType")))

    @property
    def cache_control(self) -> str:
        status = self.status
        if status is None and any(m.get("status") == "live" for m in self.matches):
            status = MatchStatus.LIVE
        return cache_control_for(status, self.degraded)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"matches": self.matches, "total_count": self.total_count}
        if self.metadata:
            body["_metadata"] = self.metadata
        return body


@dataclass
class MatchResult:
    """Outcome of a single-match request."""

    match: Optional[Dict[str, Any]] = None
    quick_purchase: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None
    status: Optional[MatchStatus] = None
    source: str = "database"

    @property
    def found(self) -> bool:
        return self.match is not None

    @property
    def degraded(self) -> bool:
        return bool(self.metadata and (self.metadata.get("stale") or self.metadata.get("errorType")))

    @property
    def cache_control(self) -> str:
        return cache_control_for(self.status, self.degraded)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"match": self.match, "quickPurchase": self.quick_purchase}
        if self.metadata:
            body["_metadata"] = self.metadata
        return body


def _stale_metadata(
    records: Iterable[MarketMatch],
    now: datetime,
    error: Optional[UpstreamError] = None,
    reason: str = STALE_DATA,
) -> Dict[str, Any]:
    synced = [r.last_synced_at for r in records if r.last_synced_at is not None]
    last_sync = max(synced) if synced else None
    metadata: Dict[str, Any] = {
        "stale": True,
        "fallbackReason": reason,
        "lastSyncTime": isoformat_utc(last_sync),
        "ageSeconds": int((now - last_sync).total_seconds()) if last_sync else None,
    }
    if error is not None:
        metadata["errorType"] = error.error_type
        metadata["errorMessage"] = str(error)
    return metadata


def _empty_metadata(error: Optional[Exception]) -> Dict[str, Any]:
    return {
        "stale": False,
        "errorType": getattr(error, "error_type", UPSTREAM_NO_DATA),
        "errorMessage": str(error) if error else "Upstream returned no data",
        "fallbackReason": NO_DATA_AVAILABLE,
        "lastSyncTime": None,
        "ageSeconds": None,
    }


class MatchSyncOrchestrator:
    """
    Serves matches from the store or the provider, keeping the store in sync.

    Args:
        db: SQLAlchemy session (request scoped)
        upstream: UpstreamClient (process scoped, from the app lifespan)
        settings: Settings instance, defaults to the global settings
        quick_purchases: QuickPurchase collaborator for single-match requests
        single_flight: Shared SingleFlight guard; NoFlight when omitted
        policy: Freshness policy, defaults to the configured TTLs
        clock: Callable returning the current naive UTC time
    """

    def __init__(
        self,
        db,
        upstream,
        settings=None,
        quick_purchases: Optional[QuickPurchaseProvider] = None,
        single_flight=None,
        policy: Optional[FreshnessPolicy] = None,
        clock=utc_now,
    ):
        self.db = db
        self.upstream = upstream
        self.settings = settings or default_settings
        self.policy = policy or FreshnessPolicy.from_settings(self.settings)
        self.quick_purchases = quick_purchases or NullQuickPurchaseProvider()
        self.flight = single_flight or NoFlight()
        self.clock = clock
        self.matches = MarketMatchRepository(db)
        self.sync_metadata = SyncMetadataRepository(db)

    # ========================================================================
    # Store helpers (never raise)
    # ========================================================================

    def _read_one(self, match_id: str) -> Tuple[Optional[MarketMatch], bool]:
        try:
            return self.matches.find_by_match_id(match_id), True
        except PersistenceError:
            return None, False

    def _read_listing(self, **filters) -> Tuple[List[MarketMatch], bool]:
        try:
            return self.matches.find_for_listing(**filters), True
        except PersistenceError:
            return [], False

    def _emergency_read(self, **filters) -> List[MarketMatch]:
        try:
            return self.matches.emergency_read(**filters)
        except PersistenceError:
            return []

    def _merged_values(
        self,
        payload: Union[LitePayload, FullPayload],
        existing: Optional[MarketMatch],
        now: datetime,
    ) -> Dict[str, Any]:
        values = merge_payload(payload, existing, now, self.policy)
        values["sync_errors"] = 0
        values["last_sync_error"] = None
        return values

    def _persist(
        self,
        payload: Union[LitePayload, FullPayload],
        existing: Optional[MarketMatch],
        now: datetime,
    ) -> Tuple[MarketMatch, bool]:
        """
        Merge a payload onto the stored row and upsert it.

        The merge runs against the row the repository writes, which may be an
        archived row the read tiers never returned. Returns the record to
        render and whether it was written; on a failed write the payload is
        merged onto `existing` and rendered from a transient row.
        """
        try:
            stored = self.matches.upsert(
                payload.match_id,
                lambda row: self._merged_values(payload, row, now),
            )
            return stored, True
        except PersistenceError as e:
            logger.warning(
                f"Serving match {payload.match_id} without persisting it: {e}",
                extra={"match_id": payload.match_id, "error_type": e.error_type},
            )
            return MarketMatch(**self._merged_values(payload, existing, now)), False

    async def _within_deadline(self, call: Callable[[], Awaitable[Dict[str, Any]]]) -> Dict[str, Any]:
        """Await a provider call, giving up once the request's upstream budget is spent."""
        deadline = self.settings.upstream_deadline_seconds
        try:
            return await asyncio.wait_for(call(), timeout=deadline)
        except asyncio.TimeoutError as e:
            metrics.record_upstream_failure(UpstreamTimeout.error_type, deadline)
            logger.warning(
                f"Upstream call cut off after the {deadline:.1f}s request deadline",
                extra={"error_type": UpstreamTimeout.error_type},
            )
            raise UpstreamTimeout(f"Upstream did not answer within {deadline:.1f}s") from e

    async def _quick_purchase(self, match_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.quick_purchases.get_for_match(match_id)
        except Exception as e:
            logger.warning(
                f"QuickPurchase lookup failed for match {match_id}: {e}",
                extra={"match_id": match_id},
            )
            return None

    # ========================================================================
    # Single match
    # ========================================================================

    async def get_match(self, match_id: str) -> MatchResult:
        """
        Resolve one match through the store, the provider and the fallbacks.

        Returns:
            MatchResult; `found` is False only when no tier had the match
        """
        match_id = normalize_key(match_id)
        if match_id is None:
            return MatchResult(metadata=_empty_metadata(MissingIdentifier("Invalid match id")))

        now = self.clock()
        record, read_ok = self._read_one(match_id)

        if record is not None and not self.policy.is_too_old(record, now):
            logger.info(
                f"Match {match_id} served from store",
                extra={"match_id": match_id, "tier": "store"},
            )
            metrics.record_cache_result("single", "hit")
            package = await self._quick_purchase(match_id)
            return MatchResult(
                match=fill_missing_team_names(to_api_format(record), package),
                quick_purchase=package,
                status=record.match_status,
            )

        error: Optional[Exception] = None
        try:
            data = await self.flight.do(
                f"match:{match_id}",
                lambda: self._within_deadline(
                    lambda: self.upstream.fetch_market(match_id=match_id, mode=FULL)
                ),
            )
            item = self._pick_item(data.get("matches") or [], match_id)
            if item is not None:
                payload = parse_upstream_item(item, FULL)
                stored, _ = self._persist(payload, record, now)
                metrics.record_cache_result("single", "upstream")
                logger.info(
                    f"Match {match_id} refreshed from upstream",
                    extra={"match_id": match_id, "tier": "upstream"},
                )
                package = await self._quick_purchase(match_id)
                return MatchResult(
                    match=fill_missing_team_names(to_api_format(stored), package),
                    quick_purchase=package,
                    status=stored.match_status,
                    source="upstream",
                )
        except UpstreamError as e:
            error = e
        except MissingIdentifier as e:
            error = e

        if record is not None:
            logger.warning(
                f"Serving stale match {match_id}: {error or 'not in upstream response'}",
                extra={"match_id": match_id, "tier": "stale", "error_type": getattr(error, "error_type", None)},
            )
            metrics.record_cache_result("single", "stale")
            package = await self._quick_purchase(match_id)
            metadata = _stale_metadata([record], now, error if isinstance(error, UpstreamError) else None)
            if error is None:
                metadata["errorType"] = UPSTREAM_NO_DATA
            return MatchResult(
                match=fill_missing_team_names(to_api_format(record), package),
                quick_purchase=package,
                metadata=metadata,
                status=record.match_status,
            )

        if not read_ok:
            rows = self._emergency_read(match_id=match_id, limit=1)
            if rows:
                logger.warning(
                    f"Match {match_id} served from emergency read",
                    extra={"match_id": match_id, "tier": "emergency"},
                )
                metrics.record_cache_result("single", "emergency")
                metadata = _stale_metadata(rows, now, error if isinstance(error, UpstreamError) else None, EMERGENCY_READ)
                return MatchResult(
                    match=to_api_format(rows[0]),
                    quick_purchase=await self._quick_purchase(match_id),
                    metadata=metadata,
                    status=rows[0].match_status,
                )

        package = await self._quick_purchase(match_id)
        placeholder = build_match_from_package(match_id, package) if package else None
        if placeholder is not None:
            metrics.record_cache_result("single", "quick_purchase")
            metadata = _empty_metadata(error)
            metadata["fallbackReason"] = QUICK_PURCHASE
            return MatchResult(
                match=placeholder,
                quick_purchase=package,
                metadata=metadata,
                status=MatchStatus.UPCOMING,
                source="quick_purchase",
            )

        logger.info(
            f"Match {match_id} not found in any tier",
            extra={"match_id": match_id, "tier": "none"},
        )
        metrics.record_cache_result("single", "not_found")
        return MatchResult(metadata=_empty_metadata(error))

    @staticmethod
    def _pick_item(items: List[Any], match_id: str) -> Optional[Dict[str, Any]]:
        for item in items:
            if normalize_key(match_id_of(item)) == match_id:
                return item
        return None

    # ========================================================================
    # Match list
    # ========================================================================

    async def get_market(
        self,
        status: Optional[Union[str, MatchStatus]] = None,
        mode: str = FULL,
        limit: Optional[int] = None,
        league: Optional[str] = None,
        match_id: Optional[str] = None,
        include_v2: Optional[bool] = None,
    ) -> MarketResult:
        """
        Resolve a match listing through the store, the provider and the fallbacks.

        Args:
            status: live|upcoming|finished (None for all)
            mode: lite or full consumption mode
            limit: Maximum matches
            league: League id filter
            match_id: Single match filter
            include_v2: Forwarded to the provider

        Returns:
            MarketResult, never raising
        """
        status = parse_status(status)
        mode = LITE if str(mode or "").lower() == LITE else FULL
        match_id = normalize_key(match_id) if match_id is not None else None
        filters = {"status": status, "league": league, "match_id": match_id, "limit": limit}
        now = self.clock()

        records, _ = self._read_listing(**filters)
        fresh, stale = self.policy.partition(records, now)

        if fresh:
            served = list(dedupe(fresh, match_id_of))
            metrics.record_cache_result("list", "hit")
            logger.info(
                f"Market list served from store ({len(served)} fresh, {len(stale)} stale)",
                extra={"tier": "store", "status": getattr(status, "value", None)},
            )
            return MarketResult(matches=to_api_list(served), total_count=len(served), status=status)

        if stale and mode == LITE:
            served = list(dedupe(stale, match_id_of))
            metrics.record_cache_result("list", "stale")
            logger.info(
                f"Market list served stale in lite mode ({len(served)} records)",
                extra={"tier": "stale", "status": getattr(status, "value", None)},
            )
            return MarketResult(
                matches=to_api_list(served),
                total_count=len(served),
                metadata=_stale_metadata(served, now),
                status=status,
            )

        try:
            data = await self.flight.do(
                f"market:{getattr(status, 'value', None)}:{league}:{match_id}:{limit}:{mode}:{include_v2}",
                lambda: self._within_deadline(
                    lambda: self.upstream.fetch_market(
                        status=status.value.lower() if status else None,
                        match_id=match_id,
                        league=league,
                        limit=limit,
                        mode=mode,
                        include_v2=include_v2,
                    )
                ),
            )
        except UpstreamError as e:
            return self._market_fallback(e, stale, filters, now)

        return self._apply_upstream_list(data, records, mode, status, now)

    def _apply_upstream_list(
        self,
        data: Dict[str, Any],
        records: List[MarketMatch],
        mode: str,
        status: Optional[MatchStatus],
        now: datetime,
    ) -> MarketResult:
        raw_items = data.get("matches") or []
        known = {record.match_id: record for record in records}
        served: List[MarketMatch] = []
        skipped = 0
        write_failures = 0

        for item in dedupe(raw_items, match_id_of):
            try:
                payload = parse_upstream_item(item, mode)
            except MissingIdentifier as e:
                skipped += 1
                logger.warning(f"Skipping upstream item: {e}")
                continue

            existing = known.get(payload.match_id)
            if existing is None:
                existing, _ = self._read_one(payload.match_id)
            stored, written = self._persist(payload, existing, now)
            if not written:
                write_failures += 1
            if stored.is_archived:
                skipped += 1
                continue
            served.append(stored)

        metrics.record_cache_result("list", "upstream")
        logger.info(
            f"Market list refreshed from upstream ({len(served)} matches, {skipped} skipped, "
            f"{write_failures} not persisted)",
            extra={"tier": "upstream", "status": getattr(status, "value", None)},
        )

        total = data.get("total_count")
        if not isinstance(total, int) or total < len(served) or total == len(raw_items):
            total = len(served)

        metadata = None
        if write_failures:
            metadata = {
                "stale": False,
                "errorType": PersistenceError.error_type,
                "errorMessage": f"{write_failures} match(es) could not be persisted",
            }
        return MarketResult(
            matches=to_api_list(served),
            total_count=total,
            metadata=metadata,
            status=status,
            source="upstream",
        )

    def _market_fallback(
        self,
        error: UpstreamError,
        stale: List[MarketMatch],
        filters: Dict[str, Any],
        now: datetime,
    ) -> MarketResult:
        status = filters["status"]

        if stale:
            served = list(dedupe(stale, match_id_of))
            metrics.record_cache_result("list", "stale")
            logger.warning(
                f"Upstream failed ({error.error_type}); serving {len(served)} stale matches",
                extra={"tier": "stale", "error_type": error.error_type},
            )
            return MarketResult(
                matches=to_api_list(served),
                total_count=len(served),
                metadata=_stale_metadata(served, now, error),
                status=status,
            )

        rows = list(dedupe(self._emergency_read(**filters), match_id_of))
        if rows:
            metrics.record_cache_result("list", "emergency")
            logger.warning(
                f"Upstream failed ({error.error_type}); serving {len(rows)} matches from emergency read",
                extra={"tier": "emergency", "error_type": error.error_type},
            )
            return MarketResult(
                matches=to_api_list(rows),
                total_count=len(rows),
                metadata=_stale_metadata(rows, now, error, EMERGENCY_READ),
                status=status,
            )

        metrics.record_cache_result("list", "empty")
        logger.warning(
            f"Upstream failed ({error.error_type}) and no stored data; returning empty list",
            extra={"tier": "empty", "error_type": error.error_type},
        )
        return MarketResult(metadata=_empty_metadata(error), status=status)

    # ========================================================================
    # Scheduled sync
    # ========================================================================

    def _is_due(self, existing: Optional[MarketMatch], status: MatchStatus, now: datetime) -> bool:
        """Whether a record listed under `status` needs writing in this run."""
        if existing is None:
            return True
        if status == MatchStatus.FINISHED:
            return existing.match_status != MatchStatus.FINISHED
        if existing.match_status != status:
            return True
        age = age_seconds(existing, now)
        return age is None or age >= self.policy.ttl_for(status)

    async def sync_by_status(self, status: Union[str, MatchStatus]) -> Dict[str, int]:
        """
        Sync the provider's listing for one status into the store.

        Items without an id are skipped, items synced recently enough are
        skipped, and a failing item is counted (and noted on its record)
        without stopping the batch.

        Returns:
            {"synced": n, "errors": n, "skipped": n}; a provider failure for
            the whole listing gives {"synced": 0, "errors": 1, "skipped": 0}
        """
        status = parse_status(status) or MatchStatus.UPCOMING
        label = status.value.lower()
        logger.info(f"Starting sync for {label} matches", extra={"status": label})

        try:
            data = await self.upstream.fetch_market(
                status=label,
                limit=self.settings.SYNC_BATCH_LIMIT,
                include_v2=False,
            )
        except UpstreamError as e:
            logger.error(
                f"Failed to sync {label} matches after retries: {e}",
                extra={"status": label, "error_type": e.error_type},
            )
            metrics.record_sync_records(label, 0, 0, 1)
            return {"synced": 0, "errors": 1, "skipped": 0}

        synced = errors = skipped = 0
        for item in data.get("matches") or []:
            now = self.clock()
            try:
                payload = parse_upstream_item(item, FULL)
            except MissingIdentifier:
                skipped += 1
                continue

            try:
                existing = self.matches.find_stored(payload.match_id)
                if not self._is_due(existing, status, now):
                    skipped += 1
                    continue
                self.matches.upsert(
                    payload.match_id,
                    lambda row: self._merged_values(payload, row, now),
                )
                synced += 1
            except (PersistenceError, MissingIdentifier, ValueError) as e:
                errors += 1
                logger.error(
                    f"Error syncing match {payload.match_id}: {e}",
                    extra={"match_id": payload.match_id, "status": label},
                )
                try:
                    self.matches.record_sync_error(payload.match_id, str(e))
                except PersistenceError:
                    pass

        metrics.record_sync_records(label, synced, skipped, errors)
        logger.info(
            f"Completed sync for {label} matches",
            extra={"status": label, "synced": synced, "errors": errors, "skipped": skipped},
        )
        return {"synced": synced, "errors": errors, "skipped": skipped}

    async def run_scheduled_sync(self, sync_type: str = "all") -> Dict[str, Any]:
        """
        Run `sync_by_status` for every status covered by `sync_type`.

        Args:
            sync_type: all|live|upcoming|finished (completed is an alias of finished)

        Raises:
            ValueError: Unknown sync type
        """
        statuses = SYNC_TYPES.get((sync_type or "all").lower())
        if statuses is None:
            raise ValueError(f"Unknown sync type: {sync_type}")

        started = utc_now()
        results: Dict[str, Dict[str, int]] = {}
        for status in statuses:
            run_started = utc_now()
            label = status.value.lower()
            results[label] = await self.sync_by_status(status)
            try:
                self.sync_metadata.record_run(
                    label,
                    run_started,
                    error_message=None if not results[label]["errors"] else f"{results[label]['errors']} error(s)",
                    **results[label],
                )
            except PersistenceError as e:
                logger.warning(f"Could not record sync metadata for {label}: {e}")

        duration_ms = int((utc_now() - started).total_seconds() * 1000)
        summary = {
            "totalSynced": sum(r["synced"] for r in results.values()),
            "totalErrors": sum(r["errors"] for r in results.values()),
            "totalSkipped": sum(r["skipped"] for r in results.values()),
            "duration": f"{duration_ms}ms",
        }
        logger.info("Scheduled market sync completed", extra={"sync_type": sync_type, **summary})
        return {"success": True, "results": results, "summary": summary}

    # ========================================================================
    # Sync health
    # ========================================================================

    def _status_health(self, status: MatchStatus, interval_seconds: int, now: datetime) -> Dict[str, Any]:
        latest = self.matches.latest_synced(status)
        count = self.matches.count_by_status(status)

        if latest is None or count == 0:
            health = "error"
        else:
            since = (now - latest.last_synced_at).total_seconds()
            if since > interval_seconds * 2:
                health = "error"
            elif (latest.sync_errors or 0) > 0 or since > interval_seconds * 1.5:
                health = "degraded"
            else:
                health = "healthy"

        return {
            "status": health,
            "lastSyncedAt": isoformat_utc(latest.last_synced_at) if latest else None,
            "timeSinceLastSync": format_time_since(latest.last_synced_at if latest else None, now),
            "matchCount": count,
            "syncErrors": (latest.sync_errors or 0) if latest else 0,
            "syncCount": (latest.sync_count or 0) if latest else 0,
        }

    def get_sync_status(self) -> Dict[str, Any]:
        """
        Per-status sync health for the admin dashboard.

        Raises:
            PersistenceError: The store could not be read
        """
        now = self.clock()
        live = self._status_health(MatchStatus.LIVE, self.policy.live_ttl_seconds, now)
        upcoming = self._status_health(MatchStatus.UPCOMING, self.policy.upcoming_ttl_seconds, now)
        finished = self._status_health(MatchStatus.FINISHED, self.policy.upcoming_ttl_seconds, now)

        if "error" in (live["status"], upcoming["status"]):
            overall = "error"
        elif "degraded" in (live["status"], upcoming["status"]):
            overall = "degraded"
        else:
            overall = "healthy"

        runs = {
            m.data_type: {
                "lastRunAt": isoformat_utc(m.last_sync_completed_at),
                "lastRunStatus": m.last_sync_status,
                "recordsSynced": m.records_synced,
                "recordsSkipped": m.records_skipped,
                "recordsFailed": m.records_failed,
                "durationMs": m.sync_duration_ms,
            }
            for m in self.sync_metadata.find_by_source()
        }

        return {
            "success": True,
            "status": {"live": live, "upcoming": upcoming, "finished": finished},
            "runs": runs,
            "overall": {"status": overall, "lastCheckedAt": isoformat_utc(now)},
        }
