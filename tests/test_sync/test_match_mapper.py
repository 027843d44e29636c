"""Unit tests for rendering stored matches and QuickPurchase placeholders."""
from conftest import create_market_match
from app.models import MatchStatus
from app.services.sync.match_mapper import to_api_format
from app.services.sync.quick_purchase import (
    build_match_from_package,
    fill_missing_team_names,
    split_team_names,
    team_names_from,
)


class TestToApiFormat:
    """Test suite for to_api_format()."""

    def test_common_fields(self):
        """Should render ids, teams, league and odds in the provider shape."""
        match = to_api_format(create_market_match(match_id="42"))

        assert match["id"] == "42"
        assert match["status"] == "upcoming"
        assert match["home"]["name"] == "Arsenal"
        assert match["league"]["id"] == "39"
        assert match["kickoff_at"].endswith("Z")
        assert match["matchDate"] == match["kickoff_at"]
        assert match["odds"]["novig_current"] == {"home": 0.45, "draw": 0.27, "away": 0.28}
        assert match["odds"]["consensus"] == match["odds"]["novig_current"]

    def test_live_sections(self):
        """Should emit score and live data only for live matches."""
        record = create_market_match(
            status=MatchStatus.LIVE,
            current_score={"home": 1, "away": 1},
            elapsed=64,
            period="2H",
            momentum={"home": 0.6},
        )
        match = to_api_format(record)

        assert match["score"] == {"home": 1, "away": 1}
        assert match["live_data"] == {"current_score": {"home": 1, "away": 1}, "minute": 64, "period": "2H"}
        assert match["minute"] == 64
        assert match["momentum"] == {"home": 0.6}

    def test_finished_sections(self):
        """Should emit the final result and statistics for finished matches."""
        final = {"score": {"home": 0, "away": 2}, "outcome": "away", "outcome_text": "Away Win"}
        record = create_market_match(
            status=MatchStatus.FINISHED,
            final_result=final,
            current_score={"home": 0, "away": 1},
            match_statistics={"shots": [9, 14]},
            venue="Emirates",
        )
        match = to_api_format(record)

        assert match["final_result"] == final
        assert match["score"] == {"home": 0, "away": 2}
        assert match["statistics"] == {"shots": [9, 14]}
        assert match["venue"] == "Emirates"
        assert "live_data" not in match

    def test_upcoming_hides_live_keys_from_raw_payload(self):
        """Should not leak live-only keys of the raw payload on upcoming matches."""
        record = create_market_match(raw_api_data={"id": "1", "score": {"home": 0, "away": 0}, "tv": "Sky"})
        match = to_api_format(record)

        assert "score" not in match
        assert match["tv"] == "Sky"

    def test_models_rendered_under_both_names(self):
        """Should expose model outputs as models and predictions."""
        record = create_market_match(v1_model={"pick": "home", "confidence": 0.62, "probs": None})
        match = to_api_format(record)

        assert match["models"]["v1_consensus"]["pick"] == "home"
        assert match["predictions"]["v1"] == match["models"]["v1_consensus"]
        assert match["models"]["v2_lightgbm"] is None


class TestQuickPurchase:
    """Test suite for QuickPurchase helpers."""

    def test_split_team_names(self):
        """Should split 'Home vs Away' names."""
        assert split_team_names("Arsenal vs Chelsea") == ("Arsenal", "Chelsea")
        assert split_team_names("Arsenal - Chelsea") == (None, None)
        assert split_team_names(None) == (None, None)

    def test_team_names_prefer_match_data(self):
        """Should prefer team names from the package's match data."""
        package = {"name": "A vs B", "matchData": {"home": {"name": "Lyon"}, "away_team": "Nice"}}
        assert team_names_from(package) == ("Lyon", "Nice")

    def test_placeholder_defaults(self):
        """Should fall back to generic team names and skip the model without prediction data."""
        match = build_match_from_package("9", {"matchData": {"date": "2026-11-01T15:00:00Z"}})

        assert match["home"]["name"] == "Home Team"
        assert match["away"]["name"] == "Away Team"
        assert match["models"]["v1_consensus"] is None
        assert match["status"] == "upcoming"

    def test_no_match_data(self):
        """Should not build a placeholder from a package without match data."""
        assert build_match_from_package("9", {"name": "A vs B"}) is None

    def test_fill_keeps_known_names(self):
        """Should leave real team names untouched."""
        match = {"home": {"name": "Arsenal"}, "away": {"name": "Chelsea"}}
        assert fill_missing_team_names(match, {"name": "X vs Y", "matchData": {}}) == match
