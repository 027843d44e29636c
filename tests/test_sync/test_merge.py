"""Unit tests for the merge engine.

Test Strategy:
1. to_database_format builds a complete record from a full payload
2. Lite merges overwrite present fields and keep absent ones
3. Merging the same payload twice is idempotent (apart from sync bookkeeping)
4. Finalized matches keep their result and live state
5. Status never moves backwards
6. Payloads without an id are rejected
"""
from datetime import datetime, timedelta

import pytest

from conftest import upstream_item
from app.models import MatchStatus
from app.services.sync.errors import MissingIdentifier
from app.services.sync.merge import (
    derive_final_result,
    lite_to_database_format,
    merge_full_with_existing,
    merge_lite_with_existing,
    merge_payload,
    sync_priority,
    to_database_format,
)
from app.services.sync.payloads import FULL, LITE, LitePayload, parse_upstream_item

NOW = datetime(2026, 10, 19, 12, 0, 0)
LATER = NOW + timedelta(seconds=45)

BOOKKEEPING = {"last_synced_at", "sync_count", "next_sync_at", "sync_priority"}


def _stored(**overrides):
    record = to_database_format(parse_upstream_item(upstream_item("42"), FULL), NOW)
    record.update(overrides)
    return record


def _without_bookkeeping(record):
    return {k: v for k, v in record.items() if k not in BOOKKEEPING}


class TestToDatabaseFormat:
    """Test suite for building new records."""

    def test_full_record(self):
        """Should fill descriptive, odds and sync fields."""
        record = _stored()
        assert record["match_id"] == "42"
        assert record["status"] == "UPCOMING"
        assert record["home_team"] == "Arsenal"
        assert record["books_count"] == 2
        assert record["raw_api_data"]["id"] == "42"
        assert record["last_synced_at"] == NOW
        assert record["sync_count"] == 1
        assert record["next_sync_at"] == NOW + timedelta(seconds=600)
        assert record["is_active"] is True

    def test_lite_first_sync(self):
        """Should create a record from a lite payload, defaulting status and kickoff."""
        lite = parse_upstream_item({"id": "8", "score": {"home": 0, "away": 0}}, LITE)
        record = lite_to_database_format(lite, NOW)
        assert record["status"] == "UPCOMING"
        assert record["kickoff_at"] == NOW
        assert record["current_score"] == {"home": 0, "away": 0}
        assert record["sync_count"] == 1

    def test_missing_identifier(self):
        """Should reject payloads without a match id."""
        payload = LitePayload.model_construct(match_id="", kind=LITE)
        with pytest.raises(MissingIdentifier):
            lite_to_database_format(payload, NOW)


class TestLiteMerge:
    """Test suite for partial updates."""

    def test_present_fields_overwrite(self):
        """Should apply the fields the lite payload carries."""
        lite = parse_upstream_item(
            {"id": "42", "status": "live", "score": {"home": 1, "away": 0}, "minute": 12},
            LITE,
        )
        merged = merge_lite_with_existing(lite, _stored(), LATER)
        assert merged["status"] == "LIVE"
        assert merged["current_score"] == {"home": 1, "away": 0}
        assert merged["elapsed"] == 12

    def test_absent_fields_preserved(self):
        """Should never null out a stored field the payload does not carry."""
        stored = _stored()
        lite = parse_upstream_item({"id": "42", "status": "live", "score": {"home": 1, "away": 0}}, LITE)
        merged = merge_lite_with_existing(lite, stored, LATER)
        for column in ("home_team", "away_team", "league", "consensus_odds", "all_bookmakers", "v1_model"):
            assert merged[column] == stored[column]

    def test_idempotent(self):
        """Should give the same field values when applied twice."""
        lite = parse_upstream_item(
            {"id": "42", "status": "live", "score": {"home": 2, "away": 2}, "prediction": {"pick": "draw", "confidence": 0.4}},
            LITE,
        )
        once = merge_lite_with_existing(lite, _stored(), LATER)
        twice = merge_lite_with_existing(lite, once, LATER)
        assert _without_bookkeeping(once) == _without_bookkeeping(twice)
        assert twice["sync_count"] == once["sync_count"] + 1

    def test_sync_count_increments_once(self):
        """Should bump sync_count by exactly one per merge."""
        lite = parse_upstream_item({"id": "42", "status": "live"}, LITE)
        merged = merge_lite_with_existing(lite, _stored(sync_count=5), LATER)
        assert merged["sync_count"] == 6
        assert merged["last_synced_at"] == LATER

    def test_predictions_merge_by_key(self):
        """Should keep the premium prediction when a lite update brings only the free one."""
        stored = _stored(model_predictions={"free": {"side": "home", "confidence": 62}, "premium": {"side": "away", "confidence": 55}})
        lite = parse_upstream_item({"id": "42", "prediction": {"pick": "draw", "confidence": 0.3}}, LITE)
        merged = merge_lite_with_existing(lite, stored, LATER)
        assert merged["model_predictions"]["free"] == {"side": "draw", "confidence": 30}
        assert merged["model_predictions"]["premium"] == {"side": "away", "confidence": 55}

    def test_status_never_regresses(self):
        """Should keep LIVE when a late lite update still says upcoming."""
        lite = parse_upstream_item({"id": "42", "status": "upcoming"}, LITE)
        merged = merge_lite_with_existing(lite, _stored(status="LIVE"), LATER)
        assert merged["status"] == "LIVE"


class TestFinalization:
    """Test suite for finished matches."""

    def test_finished_result_is_immutable(self):
        """Should never replace a stored final result or its live state."""
        final = {"score": {"home": 3, "away": 1}, "outcome": "home", "outcome_text": "Home Win"}
        stored = _stored(status="FINISHED", final_result=final, current_score={"home": 3, "away": 1}, elapsed=90)

        full = parse_upstream_item(
            upstream_item("42", status="finished", score={"home": 0, "away": 4}),
            FULL,
        )
        merged = merge_full_with_existing(full, stored, LATER)
        assert merged["final_result"] == final
        assert merged["current_score"] == {"home": 3, "away": 1}
        assert merged["elapsed"] == 90

        lite = parse_upstream_item({"id": "42", "score": {"home": 9, "away": 9}}, LITE)
        merged = merge_lite_with_existing(lite, stored, LATER)
        assert merged["final_result"] == final
        assert merged["current_score"] == {"home": 3, "away": 1}

    def test_finishing_derives_result_from_score(self):
        """Should derive the final result when a live match finishes without one."""
        stored = _stored(status="LIVE", current_score={"home": 1, "away": 1})
        lite = parse_upstream_item({"id": "42", "status": "finished"}, LITE)
        merged = merge_lite_with_existing(lite, stored, LATER)
        assert merged["status"] == "FINISHED"
        assert merged["final_result"]["outcome"] == "draw"
        assert merged["next_sync_at"] is None

    def test_derive_final_result(self):
        """Should pick the outcome from the score."""
        assert derive_final_result({"home": 0, "away": 2})["outcome_text"] == "Away Win"
        assert derive_final_result(None) is None


class TestDispatch:
    """Test suite for merge_payload and helpers."""

    def test_merge_payload_creates_and_merges(self):
        """Should create when nothing is stored and merge otherwise."""
        full = parse_upstream_item(upstream_item("42"), FULL)
        created = merge_payload(full, None, NOW)
        assert created["sync_count"] == 1
        merged = merge_payload(full, created, LATER)
        assert merged["sync_count"] == 2

    def test_sync_priority(self):
        """Should rank live high and imminent kickoffs medium."""
        assert sync_priority(MatchStatus.LIVE, None, NOW) == "high"
        assert sync_priority(MatchStatus.UPCOMING, NOW + timedelta(hours=2), NOW) == "medium"
        assert sync_priority(MatchStatus.UPCOMING, NOW + timedelta(days=3), NOW) == "low"
        assert sync_priority(MatchStatus.FINISHED, NOW, NOW) == "low"
