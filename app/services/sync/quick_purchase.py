"""QuickPurchase collaborator for the single-match endpoint.

Purchasable tip packages live outside this service. The orchestrator only
needs two things from them: the package attached to a match (returned to the
caller as `quickPurchase`) and, when neither the store nor the provider knows
the match, enough of the package's match data to build a placeholder.
"""
from typing import Any, Dict, Optional, Protocol

PLACEHOLDER_HOME = "Home Team"
PLACEHOLDER_AWAY = "Away Team"
PLACEHOLDER_PROBS = {"home": 0.33, "draw": 0.33, "away": 0.34}


class QuickPurchaseProvider(Protocol):
    async def get_for_match(self, match_id: str) -> Optional[Dict[str, Any]]:
        ...


class NullQuickPurchaseProvider:
    """Default provider: no packages are known."""

    async def get_for_match(self, match_id: str) -> Optional[Dict[str, Any]]:
        return None


def split_team_names(name: Optional[str]):
    """Split a package name of the form "Home vs Away"."""
    if not name:
        return None, None
    parts = name.split(" vs ")
    if len(parts) != 2:
        return None, None
    return parts[0].strip() or None, parts[1].strip() or None


def team_names_from(package: Dict[str, Any]):
    match_data = package.get("matchData") or {}
    home = match_data.get("home_team") or (match_data.get("home") or {}).get("name")
    away = match_data.get("away_team") or (match_data.get("away") or {}).get("name")
    if not home or not away:
        name_home, name_away = split_team_names(package.get("name"))
        home = home or name_home
        away = away or name_away
    return home or PLACEHOLDER_HOME, away or PLACEHOLDER_AWAY


def build_match_from_package(match_id: str, package: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Placeholder match in API format built from a QuickPurchase package.

    Returns None when the package carries no match data.
    """
    match_data = package.get("matchData")
    if not match_data:
        return None

    home, away = team_names_from(package)
    league = match_data.get("league")
    league_name = league.get("name") if isinstance(league, dict) else league

    v1 = None
    if package.get("predictionData"):
        v1 = {
            "pick": package.get("predictionType") or "home",
            "confidence": (package.get("confidenceScore") or 0) / 100,
            "probs": dict(PLACEHOLDER_PROBS),
        }

    return {
        "id": match_id,
        "match_id": match_id,
        "status": "upcoming",
        "kickoff_at": match_data.get("date"),
        "league": {"id": None, "name": league_name},
        "home": {"name": home, "id": None, "team_id": None, "logo_url": None},
        "away": {"name": away, "id": None, "team_id": None, "logo_url": None},
        "odds": {"novig_current": dict(PLACEHOLDER_PROBS)},
        "models": {"v1_consensus": v1, "v2_lightgbm": None},
    }


def fill_missing_team_names(match: Dict[str, Any], package: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Replace blank or "TBD" team names with the ones on the package."""
    if not package:
        return match

    def _missing(side):
        name = (match.get(side) or {}).get("name")
        return not name or not str(name).strip() or name == "TBD"

    if not (_missing("home") or _missing("away")):
        return match

    home, away = team_names_from(package)
    if home == PLACEHOLDER_HOME or away == PLACEHOLDER_AWAY:
        return match
    match.setdefault("home", {})
    match.setdefault("away", {})
    match["home"] = {**(match["home"] or {}), "name": home}
    match["away"] = {**(match["away"] or {}), "name": away}
    return match
