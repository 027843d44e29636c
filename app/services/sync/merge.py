"""Merge engine: shape upstream payloads into MarketMatch column values.

Records are handled as plain dicts of column values so that merges are pure
and can be compared field by field; the repository applies the result onto
the ORM row.

Rules shared by every merge:
- a field the payload carries (non-null) overwrites the stored value
- a field the payload does not carry is kept from the stored record
- status only moves forward (UPCOMING -> LIVE -> FINISHED)
- a stored final_result on a FINISHED match is never replaced, and the live
  state (score, minute, period) is frozen with it
- last_synced_at is set to `now` and sync_count goes up by exactly one
"""
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional, Union

from app.models import MarketMatch, MatchStatus
from app.services.sync.errors import MissingIdentifier
from app.services.sync.freshness import FreshnessPolicy
from app.services.sync.payloads import OUTCOME_TEXT, FullPayload, LitePayload
from app.utils.timezone import utc_now

Payload = Union[LitePayload, FullPayload]
Record = Dict[str, Any]

# Columns the merge reads and writes
RECORD_COLUMNS = (
    "match_id",
    "status",
    "kickoff_at",
    "league",
    "league_id",
    "league_country",
    "home_team",
    "home_team_id",
    "home_team_logo",
    "away_team",
    "away_team_id",
    "away_team_logo",
    "venue",
    "referee",
    "current_score",
    "elapsed",
    "period",
    "final_result",
    "consensus_odds",
    "all_bookmakers",
    "books_count",
    "primary_book",
    "v1_model",
    "v2_model",
    "model_predictions",
    "live_statistics",
    "momentum",
    "model_markets",
    "ai_analysis",
    "match_statistics",
    "raw_api_data",
    "last_synced_at",
    "sync_count",
    "sync_priority",
    "next_sync_at",
    "is_active",
    "is_archived",
)

LIVE_STATE_COLUMNS = ("current_score", "elapsed", "period")

# Payload attributes that are not stored as columns
_NON_COLUMN_FIELDS = {"kind", "raw", "match_id", "is_consensus_odds"}

_default_policy = FreshnessPolicy()


def record_columns(record: Union[MarketMatch, Mapping[str, Any], None]) -> Record:
    """Snapshot a stored record (ORM row or dict) as a dict of column values."""
    if record is None:
        return {}
    if isinstance(record, Mapping):
        return {column: record.get(column) for column in RECORD_COLUMNS}
    return {column: getattr(record, column, None) for column in RECORD_COLUMNS}


def payload_columns(payload: Payload) -> Record:
    """Column values a payload carries, without None entries."""
    data = payload.model_dump(exclude=_NON_COLUMN_FIELDS)
    if payload.status is not None:
        data["status"] = payload.status.value
    return {key: value for key, value in data.items() if value is not None}


def sync_priority(status: MatchStatus, kickoff_at: Optional[datetime], now: datetime) -> str:
    """high for LIVE, medium for kickoffs within a day, low otherwise."""
    if status == MatchStatus.LIVE:
        return "high"
    if status == MatchStatus.UPCOMING and kickoff_at is not None:
        if kickoff_at - now < timedelta(hours=24):
            return "medium"
    return "low"


def next_sync_time(
    status: MatchStatus,
    now: datetime,
    policy: Optional[FreshnessPolicy] = None,
) -> Optional[datetime]:
    ttl = (policy or _default_policy).ttl_for(status)
    if ttl is None:
        return None
    return now + timedelta(seconds=ttl)


def derive_final_result(score: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """Build a final result from the last known score of a finished match."""
    if not score:
        return None
    home = int(score.get("home") or 0)
    away = int(score.get("away") or 0)
    if home > away:
        outcome = "home"
    elif away > home:
        outcome = "away"
    else:
        outcome = "draw"
    return {
        "score": {"home": home, "away": away},
        "outcome": outcome,
        "outcome_text": OUTCOME_TEXT[outcome],
    }


def _require_id(payload: Payload) -> str:
    match_id = getattr(payload, "match_id", None)
    if not match_id or not str(match_id).strip():
        raise MissingIdentifier("Payload has no match id")
    return match_id


def _is_finalized(record: Mapping[str, Any]) -> bool:
    return (
        MatchStatus.normalize(record.get("status")) == MatchStatus.FINISHED
        and bool(record.get("final_result"))
    )


def _resolve_status(existing: Optional[str], incoming: Optional[str]) -> str:
    if incoming is None:
        return MatchStatus.normalize(existing).value
    new = MatchStatus.normalize(incoming)
    if existing is None:
        return new.value
    old = MatchStatus.normalize(existing)
    return (new if new.rank >= old.rank else old).value


def _merge_predictions(
    existing: Optional[Mapping[str, Any]],
    incoming: Optional[Mapping[str, Any]],
) -> Optional[Dict[str, Any]]:
    if not incoming:
        return dict(existing) if existing else existing
    merged = dict(existing or {})
    for key, value in incoming.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = {**current, **value}
        else:
            merged[key] = value
    return merged


def _finish(
    result: Record,
    existing: Mapping[str, Any],
    now: datetime,
    policy: Optional[FreshnessPolicy],
) -> Record:
    status = MatchStatus.normalize(result["status"])

    if _is_finalized(existing):
        result["final_result"] = existing["final_result"]
        for column in LIVE_STATE_COLUMNS:
            result[column] = existing.get(column)
    elif status == MatchStatus.FINISHED and not result.get("final_result"):
        result["final_result"] = derive_final_result(result.get("current_score"))

    result["last_synced_at"] = now
    result["sync_count"] = int(existing.get("sync_count") or 0) + 1
    result["sync_priority"] = sync_priority(status, result.get("kickoff_at"), now)
    result["next_sync_at"] = next_sync_time(status, now, policy)
    return result


def to_database_format(
    full: FullPayload,
    now: Optional[datetime] = None,
    policy: Optional[FreshnessPolicy] = None,
) -> Record:
    """
    Reshape a complete upstream payload into a new record.

    Args:
        full: Validated full payload
        now: Sync time (naive UTC)
        policy: Freshness policy used to schedule the next sync

    Returns:
        Column values for a fresh MarketMatch

    Raises:
        MissingIdentifier: The payload has no match id
    """
    match_id = _require_id(full)
    now = now or utc_now()

    record = {column: None for column in RECORD_COLUMNS}
    record.update(payload_columns(full))
    record["match_id"] = match_id
    record["status"] = record.get("status") or MatchStatus.UPCOMING.value
    record["kickoff_at"] = record.get("kickoff_at") or now
    record["raw_api_data"] = full.raw or None
    record["is_active"] = True
    record["is_archived"] = False
    return _finish(record, {}, now, policy)


def lite_to_database_format(
    lite: LitePayload,
    now: Optional[datetime] = None,
    policy: Optional[FreshnessPolicy] = None,
) -> Record:
    """First sync of a match seen only through a lite feed."""
    match_id = _require_id(lite)
    now = now or utc_now()

    record = {column: None for column in RECORD_COLUMNS}
    record.update(payload_columns(lite))
    record["match_id"] = match_id
    record["status"] = record.get("status") or MatchStatus.UPCOMING.value
    record["kickoff_at"] = record.get("kickoff_at") or now
    record["is_active"] = True
    record["is_archived"] = False
    return _finish(record, {}, now, policy)


def merge_lite_with_existing(
    lite: LitePayload,
    existing: Union[MarketMatch, Mapping[str, Any]],
    now: Optional[datetime] = None,
    policy: Optional[FreshnessPolicy] = None,
) -> Record:
    """
    Apply a partial update onto a stored record.

    Fields present in `lite` overwrite, absent fields are preserved. Applying
    the same payload twice gives the same field values as applying it once,
    apart from sync_count and last_synced_at.

    Raises:
        MissingIdentifier: The payload has no match id
    """
    _require_id(lite)
    now = now or utc_now()
    base = record_columns(existing)
    incoming = payload_columns(lite)

    result = dict(base)
    for column, value in incoming.items():
        if column == "model_predictions":
            result[column] = _merge_predictions(base.get(column), value)
        else:
            result[column] = value
    result["status"] = _resolve_status(base.get("status"), incoming.get("status"))
    return _finish(result, base, now, policy)


def merge_full_with_existing(
    full: FullPayload,
    existing: Union[MarketMatch, Mapping[str, Any]],
    now: Optional[datetime] = None,
    policy: Optional[FreshnessPolicy] = None,
) -> Record:
    """Full refresh of a stored record; the same forward-only rules apply."""
    _require_id(full)
    now = now or utc_now()
    base = record_columns(existing)

    result = dict(base)
    result.update(payload_columns(full))
    result["status"] = _resolve_status(base.get("status"), full.status.value if full.status else None)
    if full.raw:
        result["raw_api_data"] = full.raw
    return _finish(result, base, now, policy)


def merge_payload(
    payload: Payload,
    existing: Union[MarketMatch, Mapping[str, Any], None],
    now: Optional[datetime] = None,
    policy: Optional[FreshnessPolicy] = None,
) -> Record:
    """Dispatch on the payload variant and on whether a record already exists."""
    if isinstance(payload, LitePayload):
        if existing is None:
            return lite_to_database_format(payload, now, policy)
        return merge_lite_with_existing(payload, existing, now, policy)
    if existing is None:
        return to_database_format(payload, now, policy)
    return merge_full_with_existing(payload, existing, now, policy)
