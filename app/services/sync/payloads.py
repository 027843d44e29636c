"""Boundary validation of upstream market items.

Raw provider items are untyped JSON whose shape depends on the request mode.
They are parsed once, here, into one of two pydantic models:

- LitePayload: the cheap partial update (score, status, odds snapshot,
  basic prediction). Fields the item did not carry stay None and are left
  untouched by the merge.
- FullPayload: a complete record, enough to rebuild a MarketMatch from
  scratch, including bookmaker books, model outputs, live analysis and the
  final result.

    payload = parse_upstream_item(raw, mode="lite")
    if isinstance(payload, LitePayload): ...

The variant is chosen from the item's content: anything carrying a full-only
section is a FullPayload; otherwise the requested mode decides.
"""
from datetime import datetime
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from app.models import MatchStatus
from app.services.sync.dedupe import normalize_key
from app.services.sync.errors import MissingIdentifier
from app.services.sync.utils import resolvers as r
from app.utils.timezone import parse_datetime

LITE = "lite"
FULL = "full"

# Sections only a full payload carries
FULL_ONLY_MARKERS = (
    "odds.books",
    "models",
    "predictions",
    "live_data",
    "momentum",
    "model_markets",
    "ai_analysis",
    "final_result",
    "match_statistics",
)

OUTCOME_TEXT = {
    "home": "Home Win",
    "away": "Away Win",
    "draw": "Draw",
}


class Score(BaseModel):
    model_config = ConfigDict(frozen=True)

    home: int = 0
    away: int = 0


class FinalResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: Optional[Score] = None
    outcome: Optional[Literal["home", "away", "draw"]] = None
    outcome_text: Optional[str] = None


class _PayloadBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    match_id: str
    status: Optional[MatchStatus] = None
    kickoff_at: Optional[datetime] = None

    league: Optional[str] = None
    league_id: Optional[str] = None
    league_country: Optional[str] = None
    home_team: Optional[str] = None
    home_team_id: Optional[str] = None
    home_team_logo: Optional[str] = None
    away_team: Optional[str] = None
    away_team_id: Optional[str] = None
    away_team_logo: Optional[str] = None

    current_score: Optional[Score] = None
    elapsed: Optional[int] = None
    period: Optional[str] = None

    consensus_odds: Optional[Dict[str, float]] = None
    books_count: Optional[int] = None
    primary_book: Optional[str] = None
    model_predictions: Optional[Dict[str, Any]] = None

    raw: Dict[str, Any] = Field(default_factory=dict, repr=False)


class LitePayload(_PayloadBase):
    kind: Literal["lite"] = LITE


class FullPayload(_PayloadBase):
    kind: Literal["full"] = FULL

    venue: Optional[str] = None
    referee: Optional[str] = None
    final_result: Optional[FinalResult] = None

    all_bookmakers: Optional[Dict[str, Any]] = None
    is_consensus_odds: bool = False
    v1_model: Optional[Dict[str, Any]] = None
    v2_model: Optional[Dict[str, Any]] = None
    live_statistics: Optional[Any] = None
    momentum: Optional[Any] = None
    model_markets: Optional[Any] = None
    ai_analysis: Optional[Any] = None
    match_statistics: Optional[Any] = None


UpstreamPayload = Annotated[Union[LitePayload, FullPayload], Field(discriminator="kind")]

_payload_adapter = TypeAdapter(UpstreamPayload)


def resolve_match_id(raw: Dict[str, Any]) -> Optional[str]:
    """First usable identifier among match_id, id and matchId."""
    for path in r.MATCH_ID_PATHS:
        key = normalize_key(r.get_path(raw, path))
        if key is not None:
            return key
    return None


def detect_kind(raw: Dict[str, Any], requested_mode: Optional[str] = None) -> str:
    """Decide whether a raw item is a lite partial or a full record."""
    for marker in FULL_ONLY_MARKERS:
        if r.get_path(raw, marker) is not None:
            return FULL
    return LITE if (requested_mode or "").lower() == LITE else FULL


def _model_summary(model: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not model:
        return None
    return {
        "pick": model.get("pick"),
        "confidence": r.as_float(model.get("confidence")) or 0.0,
        "probs": model.get("probs"),
    }


def _consensus(raw: Dict[str, Any]) -> Optional[Dict[str, float]]:
    odds = r.first_non_null(raw, *r.CONSENSUS_ODDS_PATHS, coerce=r.as_dict)
    if not odds:
        return None
    return {side: r.as_float(odds.get(side)) or 0.0 for side in ("home", "draw", "away")}


def _common_fields(raw: Dict[str, Any], kind: str) -> Dict[str, Any]:
    status_text = r.first_non_null(raw, *r.STATUS_PATHS, coerce=r.as_str)
    status = MatchStatus.normalize(status_text) if status_text else None

    fields: Dict[str, Any] = {
        "status": status,
        "kickoff_at": parse_datetime(r.first_non_null(raw, *r.KICKOFF_PATHS)),
        "league": r.first_non_null(raw, *r.LEAGUE_NAME_PATHS, coerce=r.as_str),
        "league_id": r.first_non_null(raw, *r.LEAGUE_ID_PATHS, coerce=r.as_str),
        "league_country": r.first_non_null(raw, *r.LEAGUE_COUNTRY_PATHS, coerce=r.as_str),
        "home_team": r.first_non_null(raw, *r.HOME_NAME_PATHS, coerce=r.as_str),
        "home_team_id": r.first_non_null(raw, *r.HOME_ID_PATHS, coerce=r.as_str),
        "home_team_logo": r.first_non_null(raw, *r.HOME_LOGO_PATHS, coerce=r.as_str),
        "away_team": r.first_non_null(raw, *r.AWAY_NAME_PATHS, coerce=r.as_str),
        "away_team_id": r.first_non_null(raw, *r.AWAY_ID_PATHS, coerce=r.as_str),
        "away_team_logo": r.first_non_null(raw, *r.AWAY_LOGO_PATHS, coerce=r.as_str),
        "consensus_odds": _consensus(raw),
    }

    # Live state only means something once the match is under way
    if status == MatchStatus.LIVE or (status is None and kind == LITE):
        fields["current_score"] = r.first_non_null(raw, *r.SCORE_PATHS, coerce=r.as_score)
        fields["elapsed"] = r.first_non_null(raw, *r.ELAPSED_PATHS, coerce=r.as_int)
        fields["period"] = r.first_non_null(raw, *r.PERIOD_PATHS, coerce=r.as_str)
        if status == MatchStatus.LIVE and fields["current_score"] is not None and not fields["period"]:
            fields["period"] = "Live"

    return fields


def _lite_extras(raw: Dict[str, Any]) -> Dict[str, Any]:
    extras: Dict[str, Any] = {}

    prediction = r.as_dict(raw.get("prediction"))
    if prediction:
        confidence = r.as_float(prediction.get("confidence")) or 0.0
        extras["model_predictions"] = {
            "free": {
                "side": prediction.get("pick") or "draw",
                "confidence": round(confidence * 100),
            }
        }

    bookmakers = raw.get("bookmakers")
    if isinstance(bookmakers, list):
        extras["books_count"] = len(bookmakers)
        extras["primary_book"] = r.as_str(bookmakers[0]) if bookmakers else None

    return extras


def _final_result(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    explicit = r.as_dict(raw.get("final_result")) or {}
    score = r.first_non_null(raw, *r.FINAL_SCORE_PATHS, coerce=r.as_score)
    outcome = r.as_str(explicit.get("outcome") or raw.get("outcome"))
    if outcome is not None:
        outcome = outcome.lower()
    if outcome not in OUTCOME_TEXT and score is not None:
        if score["home"] > score["away"]:
            outcome = "home"
        elif score["away"] > score["home"]:
            outcome = "away"
        else:
            outcome = "draw"
    if outcome not in OUTCOME_TEXT:
        outcome = None
    if score is None and outcome is None:
        return None
    return {
        "score": score,
        "outcome": outcome,
        "outcome_text": r.as_str(explicit.get("outcome_text") or raw.get("outcome_text"))
        or (OUTCOME_TEXT[outcome] if outcome else None),
    }


def _full_extras(raw: Dict[str, Any], status: Optional[MatchStatus]) -> Dict[str, Any]:
    books = r.first_non_null(raw, *r.BOOKS_PATHS, coerce=r.as_dict)
    v1 = _model_summary(r.first_non_null(raw, *r.V1_MODEL_PATHS, coerce=r.as_dict))
    v2 = _model_summary(r.first_non_null(raw, *r.V2_MODEL_PATHS, coerce=r.as_dict))

    extras: Dict[str, Any] = {
        "all_bookmakers": books,
        "books_count": len(books) if books else None,
        "primary_book": next(iter(books)) if books else None,
        "is_consensus_odds": r.get_path(raw, "odds.novig_current") is not None,
        "v1_model": v1,
        "v2_model": v2,
    }

    if v1 or v2:
        predictions: Dict[str, Any] = {}
        if v1:
            predictions["free"] = {"side": v1["pick"], "confidence": v1["confidence"] * 100}
        if v2:
            predictions["premium"] = {"side": v2["pick"], "confidence": v2["confidence"] * 100}
        extras["model_predictions"] = predictions

    if status == MatchStatus.LIVE:
        extras["live_statistics"] = r.first_non_null(raw, *r.LIVE_STATISTICS_PATHS)
        extras["momentum"] = raw.get("momentum")
        extras["model_markets"] = raw.get("model_markets")
        extras["ai_analysis"] = raw.get("ai_analysis")

    if status == MatchStatus.FINISHED:
        extras["final_result"] = _final_result(raw)
        extras["match_statistics"] = r.first_non_null(raw, *r.MATCH_STATISTICS_PATHS)
        extras["venue"] = r.first_non_null(raw, "venue", "venue.name", coerce=r.as_str)
        extras["referee"] = r.first_non_null(raw, "referee", coerce=r.as_str)

    return extras


def parse_upstream_item(
    raw: Dict[str, Any],
    requested_mode: Optional[str] = None,
) -> Union[LitePayload, FullPayload]:
    """
    Validate one raw provider item into a LitePayload or FullPayload.

    Args:
        raw: Item from the provider's `matches` list
        requested_mode: Mode the list was requested with (lite|full)

    Returns:
        The parsed payload

    Raises:
        MissingIdentifier: The item has no usable match id
    """
    if not isinstance(raw, dict):
        raise MissingIdentifier(f"Upstream item is {type(raw).__name__}, not an object")

    match_id = resolve_match_id(raw)
    if match_id is None:
        raise MissingIdentifier("Upstream item has no resolvable match id")

    kind = detect_kind(raw, requested_mode)
    fields = _common_fields(raw, kind)
    if kind == LITE:
        fields.update(_lite_extras(raw))
    else:
        fields.update(_full_extras(raw, fields["status"]))

    data = {k: v for k, v in fields.items() if v is not None}
    data.update({"kind": kind, "match_id": match_id, "raw": raw})
    return _payload_adapter.validate_python(data)
