"""Render stored MarketMatch rows in the provider's API shape.

Consumers read the same JSON shape whether a match came from the store or
straight from the provider, so stored rows are rendered back into it,
including the alternative field names (`odds.consensus`, `predictions.v1`,
`statistics`) that different clients read.
"""
from typing import Any, Dict, Iterable, List, Optional

from app.models import MarketMatch, MatchStatus
from app.utils.timezone import isoformat_utc


def _model_block(model: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not model:
        return None
    return {
        "pick": model.get("pick"),
        "confidence": model.get("confidence") or 0,
        "probs": model.get("probs"),
    }


def to_api_format(record: MarketMatch) -> Dict[str, Any]:
    """
    Render one stored record as an API match.

    Live-only sections (score, live_data, momentum, ...) are emitted only for
    LIVE rows and result sections only for FINISHED rows. Keys of the last raw
    provider payload fill in anything the rendered fields do not set.
    """
    status = record.match_status
    kickoff = isoformat_utc(record.kickoff_at)

    match: Dict[str, Any] = {
        "id": record.match_id,
        "match_id": record.match_id,
        "status": status.value.lower(),
        "home": {
            "name": record.home_team,
            "id": record.home_team_id,
            "team_id": record.home_team_id,
            "logo_url": record.home_team_logo,
        },
        "away": {
            "name": record.away_team,
            "id": record.away_team_id,
            "team_id": record.away_team_id,
            "logo_url": record.away_team_logo,
        },
        "league": {
            "name": record.league,
            "id": record.league_id,
            "country": record.league_country,
        },
        "kickoff_at": kickoff,
        "matchDate": kickoff,
        "last_synced_at": isoformat_utc(record.last_synced_at),
    }

    consensus = record.consensus_odds
    if consensus or record.all_bookmakers:
        odds: Dict[str, Any] = {}
        if consensus:
            odds["novig_current"] = {
                side: consensus.get(side) or 0 for side in ("home", "draw", "away")
            }
            odds["consensus"] = odds["novig_current"]
        if record.all_bookmakers:
            odds["books"] = record.all_bookmakers
        match["odds"] = odds

    v1 = _model_block(record.v1_model)
    v2 = _model_block(record.v2_model)
    if v1 or v2:
        match["models"] = {"v1_consensus": v1, "v2_lightgbm": v2}
        match["predictions"] = {"v1": v1, "v2": v2}
    if record.model_predictions:
        match["model_predictions"] = record.model_predictions

    if status == MatchStatus.LIVE:
        score = record.current_score
        if score:
            match["score"] = {"home": score.get("home") or 0, "away": score.get("away") or 0}
            match["live_data"] = {
                "current_score": match["score"],
                "minute": record.elapsed,
                "period": record.period or "Live",
            }
        if record.elapsed is not None:
            match["minute"] = record.elapsed
            match["elapsed"] = record.elapsed
        if record.period:
            match["period"] = record.period
        if record.live_statistics:
            match.setdefault("live_data", {})["statistics"] = record.live_statistics
            match["statistics"] = record.live_statistics
        for column in ("momentum", "model_markets", "ai_analysis"):
            value = getattr(record, column)
            if value:
                match[column] = value

    if status == MatchStatus.FINISHED:
        final = record.final_result
        if final:
            match["final_result"] = final
            if final.get("score"):
                match["score"] = final["score"]
        if record.match_statistics:
            match["match_statistics"] = record.match_statistics
            match["statistics"] = record.match_statistics
        if record.venue:
            match["venue"] = record.venue
        if record.referee:
            match["referee"] = record.referee

    raw = record.raw_api_data
    if isinstance(raw, dict):
        for key, value in raw.items():
            if key in ("id", "match_id") or match.get(key):
                continue
            match[key] = value

    return upcoming_without_live_state(match)


def to_api_list(records: Iterable[MarketMatch]) -> List[Dict[str, Any]]:
    return [to_api_format(record) for record in records]


def upcoming_without_live_state(match: Dict[str, Any]) -> Dict[str, Any]:
    """Strip live-only keys a provider sometimes leaves on upcoming matches."""
    if str(match.get("status") or "").upper() != MatchStatus.UPCOMING.value:
        return match
    return {
        key: value
        for key, value in match.items()
        if key not in ("score", "live_data", "minute", "elapsed", "period", "momentum")
    }
