"""Unit tests for upstream payload parsing.

Test Strategy:
1. Variant selection (lite vs full) from content and requested mode
2. Identifier resolution and MissingIdentifier
3. Field resolution for lite extras (prediction, bookmakers)
4. Status-dependent sections (live state, final result)
"""
from datetime import datetime

import pytest

from conftest import upstream_item
from app.models import MatchStatus
from app.services.sync.errors import MissingIdentifier
from app.services.sync.payloads import (
    FULL,
    LITE,
    FullPayload,
    LitePayload,
    Score,
    detect_kind,
    parse_upstream_item,
)


class TestVariantSelection:
    """Test suite for lite/full detection."""

    def test_lite_mode_without_full_sections(self):
        """Should parse a partial item requested in lite mode as LitePayload."""
        payload = parse_upstream_item({"id": "5", "status": "live", "score": {"home": 1, "away": 0}}, LITE)
        assert isinstance(payload, LitePayload)
        assert payload.kind == LITE

    def test_full_sections_win_over_lite_mode(self):
        """Should parse an item carrying full-only sections as FullPayload."""
        raw = {"id": "5", "models": {"v1_consensus": {"pick": "away", "confidence": 0.5}}}
        assert detect_kind(raw, LITE) == FULL
        assert isinstance(parse_upstream_item(raw, LITE), FullPayload)

    def test_defaults_to_full(self):
        """Should treat items as full when no mode was requested."""
        assert isinstance(parse_upstream_item({"id": "5"}), FullPayload)


class TestIdentifiers:
    """Test suite for match id resolution."""

    def test_missing_id_raises(self):
        """Should raise MissingIdentifier when no id field is usable."""
        with pytest.raises(MissingIdentifier):
            parse_upstream_item({"id": "null", "status": "live"}, LITE)

    def test_non_object_raises(self):
        """Should raise MissingIdentifier for non-dict items."""
        with pytest.raises(MissingIdentifier):
            parse_upstream_item(["not", "a", "match"], FULL)

    def test_numeric_id_is_stringified(self):
        """Should store ids as strings."""
        assert parse_upstream_item({"matchId": 1234}).match_id == "1234"


class TestLiteFields:
    """Test suite for lite payload fields."""

    def test_live_state(self):
        """Should read score, minute and default the period for live items."""
        payload = parse_upstream_item(
            {"id": "5", "status": "LIVE", "live_data": {"current_score": {"home": 2, "away": 1}}, "minute": 55},
            LITE,
        )
        # live_data is a full-only section
        assert isinstance(payload, FullPayload)
        assert payload.current_score == Score(home=2, away=1)
        assert payload.elapsed == 55
        assert payload.period == "Live"

    def test_prediction_becomes_free_model_prediction(self):
        """Should convert the basic prediction into a 0-100 confidence."""
        payload = parse_upstream_item(
            {"id": "5", "prediction": {"pick": "home", "confidence": 0.71}},
            LITE,
        )
        assert payload.model_predictions == {"free": {"side": "home", "confidence": 71}}

    def test_bookmakers_list(self):
        """Should count bookmakers and pick the first as primary."""
        payload = parse_upstream_item({"id": "5", "bookmakers": ["pinnacle", "bet365"]}, LITE)
        assert payload.books_count == 2
        assert payload.primary_book == "pinnacle"

    def test_absent_fields_stay_none(self):
        """Should leave fields the item does not carry as None."""
        payload = parse_upstream_item({"id": "5", "status": "live"}, LITE)
        assert payload.home_team is None
        assert payload.consensus_odds is None
        assert payload.current_score is None


class TestFullFields:
    """Test suite for full payload fields."""

    def test_descriptive_fields(self):
        """Should resolve teams, league, kickoff and odds."""
        payload = parse_upstream_item(upstream_item("7"), FULL)
        assert payload.home_team == "Arsenal"
        assert payload.away_team_id == "49"
        assert payload.league_country == "England"
        assert payload.kickoff_at == datetime(2026, 11, 1, 15, 0)
        assert payload.consensus_odds == {"home": 0.5, "draw": 0.25, "away": 0.25}
        assert payload.is_consensus_odds is True
        assert payload.books_count == 2
        assert payload.primary_book == "pinnacle"

    def test_model_predictions_from_models(self):
        """Should derive the free prediction from the v1 model."""
        payload = parse_upstream_item(upstream_item("7"), FULL)
        assert payload.v1_model["pick"] == "home"
        assert payload.model_predictions["free"]["side"] == "home"
        assert payload.model_predictions["free"]["confidence"] == pytest.approx(62.0)
        assert "premium" not in payload.model_predictions

    def test_upcoming_ignores_live_state(self):
        """Should not read a score for an upcoming match."""
        payload = parse_upstream_item(upstream_item("7", score={"home": 0, "away": 0}), FULL)
        assert payload.status == MatchStatus.UPCOMING
        assert payload.current_score is None

    def test_finished_derives_final_result(self):
        """Should build the final result from the score of a finished match."""
        payload = parse_upstream_item(
            upstream_item("7", status="finished", score={"home": 2, "away": 1}, venue="Emirates"),
            FULL,
        )
        assert payload.status == MatchStatus.FINISHED
        assert payload.final_result.outcome == "home"
        assert payload.final_result.outcome_text == "Home Win"
        assert payload.final_result.score == Score(home=2, away=1)
        assert payload.venue == "Emirates"

    def test_finished_keeps_provider_outcome_text(self):
        """Should keep an outcome_text supplied by the provider."""
        payload = parse_upstream_item(
            upstream_item(
                "7",
                status="finished",
                score={"home": 0, "away": 0},
                final_result={"outcome": "draw", "outcome_text": "Score draw"},
            ),
            FULL,
        )
        assert payload.final_result.outcome == "draw"
        assert payload.final_result.outcome_text == "Score draw"

    def test_completed_is_finished(self):
        """Should map the provider's 'completed' status to FINISHED."""
        payload = parse_upstream_item(upstream_item("7", status="completed"), FULL)
        assert payload.status == MatchStatus.FINISHED
