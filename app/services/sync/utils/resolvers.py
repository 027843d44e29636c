"""Ordered field resolution for provider payloads.

The provider does not put a value in one fixed place: a live score can arrive
as `score`, `live_data.current_score`, `current_score` or `liveScore`
depending on the endpoint and mode. Each field therefore has an explicit
priority list of dotted paths, and the first path holding a usable value wins.

    first_non_null(raw, "score", "live_data.current_score", "current_score", "liveScore")
"""
from typing import Any, Callable, Mapping, Optional, Sequence

_MISSING = object()


def get_path(source: Any, path: str, default: Any = None) -> Any:
    """
    Read a dotted path from nested mappings.

    Examples:
        >>> get_path({"a": {"b": 1}}, "a.b")
        1
        >>> get_path({"a": 3}, "a.b") is None
        True
    """
    current = source
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return default
        current = current.get(part, _MISSING)
        if current is _MISSING:
            return default
    return current


def is_blank(value: Any) -> bool:
    """None and whitespace-only strings count as absent."""
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def first_non_null(
    source: Any,
    *paths: str,
    coerce: Optional[Callable[[Any], Any]] = None,
    default: Any = None,
) -> Any:
    """
    Return the value at the first path that holds a usable value.

    Args:
        source: Nested mapping (usually a raw provider item)
        paths: Dotted paths in priority order
        coerce: Optional converter; a candidate that coerces to None is skipped
        default: Returned when no path yields a value

    Returns:
        The first usable (optionally coerced) value, else `default`
    """
    for path in paths:
        value = get_path(source, path)
        if coerce is not None and not is_blank(value):
            value = coerce(value)
        if not is_blank(value):
            return value
    return default


def first_of(values: Sequence[Any], default: Any = None) -> Any:
    """First non-blank element of an already-evaluated sequence."""
    for value in values:
        if not is_blank(value):
            return value
    return default


# Coercers ---------------------------------------------------------------

def as_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value.strip()))
        except ValueError:
            return None
    return None


def as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def as_dict(value: Any) -> Optional[dict]:
    if isinstance(value, Mapping) and value:
        return dict(value)
    return None


def as_score(value: Any) -> Optional[dict]:
    """Normalize {home, away} scores; anything without either side is rejected."""
    if not isinstance(value, Mapping):
        return None
    home = as_int(value.get("home"))
    away = as_int(value.get("away"))
    if home is None and away is None:
        return None
    return {"home": home or 0, "away": away or 0}


# Priority lists ---------------------------------------------------------

MATCH_ID_PATHS = ("match_id", "id", "matchId")
STATUS_PATHS = ("status",)
KICKOFF_PATHS = ("kickoff_at", "kickoff_utc", "matchDate", "date")

HOME_NAME_PATHS = ("home.name", "homeTeam.name", "home_name", "home_team")
HOME_ID_PATHS = ("home.id", "home.team_id", "homeTeam.id", "home_id")
HOME_LOGO_PATHS = ("home.logo_url", "homeTeam.logo", "home.logoUrl", "home_logo")
AWAY_NAME_PATHS = ("away.name", "awayTeam.name", "away_name", "away_team")
AWAY_ID_PATHS = ("away.id", "away.team_id", "awayTeam.id", "away_id")
AWAY_LOGO_PATHS = ("away.logo_url", "awayTeam.logo", "away.logoUrl", "away_logo")

LEAGUE_NAME_PATHS = ("league.name", "leagueName")
LEAGUE_ID_PATHS = ("league.id", "leagueId")
LEAGUE_COUNTRY_PATHS = ("league.country", "country")

SCORE_PATHS = ("score", "live_data.current_score", "current_score", "liveScore")
FINAL_SCORE_PATHS = ("final_result.score", "final_score", "score", "live_data.current_score")
ELAPSED_PATHS = ("elapsed.minute", "minute", "elapsed", "live_data.minute")
PERIOD_PATHS = ("elapsed.period", "period", "live_data.period")

CONSENSUS_ODDS_PATHS = ("odds.novig_current", "odds.consensus")
BOOKS_PATHS = ("odds.books",)
V1_MODEL_PATHS = ("models.v1_consensus", "predictions.v1")
V2_MODEL_PATHS = ("models.v2_lightgbm", "predictions.v2")
LIVE_STATISTICS_PATHS = ("live_data.statistics", "statistics")
MATCH_STATISTICS_PATHS = ("match_statistics", "statistics")
