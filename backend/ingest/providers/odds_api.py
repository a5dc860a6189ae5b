"""
The Odds API provider adapter.
Fetches the totals market and the live/upcoming scores feed for one sport.
"""
from __future__ import annotations

from typing import Any, Optional

from shared.models.domain import OddsRow, opt_str
from shared.models.enums import ProviderName
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger

from ingest.providers.base import BaseProvider

logger = get_logger(__name__)

TOTALS_MARKET = "totals"


class OddsAPIProvider(BaseProvider):
    """Odds Adapter: one call per fetch, raw payload out."""

    def __init__(
        self,
        http_client: ProviderHTTPClient,
        sport_key: str = "basketball_nba",
        regions: str = "us",
    ) -> None:
        super().__init__(ProviderName.ODDS_API, http_client)
        self._sport_key = sport_key
        self._regions = regions

    @property
    def sport_key(self) -> str:
        return self._sport_key

    def _auth_params(self) -> dict[str, str]:
        return {"apiKey": self._http.api_key}

    async def fetch_odds(self, bookmaker: str) -> list[dict[str, Any]]:
        """Fetch the totals market for one bookmaker."""
        data = await self._get(
            "fetch_odds",
            f"/sports/{self._sport_key}/odds",
            params={
                "regions": self._regions,
                "markets": TOTALS_MARKET,
                "bookmakers": bookmaker,
                "oddsFormat": "american",
                "dateFormat": "iso",
            },
        )
        return self._expect_list(self._name, data, "games")

    async def fetch_scores(self) -> list[dict[str, Any]]:
        """Fetch live and upcoming games with their scores (no daysFrom)."""
        data = await self._get(
            "fetch_scores",
            f"/sports/{self._sport_key}/scores",
            params={"dateFormat": "iso"},
        )
        return self._expect_list(self._name, data, "games")


def _find_key(items: Any, key: str) -> Optional[dict[str, Any]]:
    if not isinstance(items, list):
        return None
    return next((i for i in items if isinstance(i, dict) and i.get("key") == key), None)


def _outcome_point(outcomes: list[Any], name: str) -> Any:
    outcome = next((o for o in outcomes if isinstance(o, dict) and o.get("name") == name), None)
    return outcome.get("point") if outcome else None


def extract_totals_row(game: dict[str, Any], bookmaker: str) -> OddsRow:
    """
    Flatten one odds game into an OddsRow for the given bookmaker.

    The Over outcome's point wins, then Under's; anything that is not a real
    number yields total_point=None.
    """
    bk = _find_key(game.get("bookmakers"), bookmaker)
    totals = _find_key(bk.get("markets"), TOTALS_MARKET) if bk else None
    outcomes = totals.get("outcomes") if totals else None
    point: Any = None
    if isinstance(outcomes, list):
        point = _outcome_point(outcomes, "Over")
        if point is None:
            point = _outcome_point(outcomes, "Under")
    if isinstance(point, bool) or not isinstance(point, (int, float)):
        point = None

    return OddsRow(
        id=str(game.get("id", "")),
        sport_key=game.get("sport_key"),
        commence_time=game.get("commence_time"),
        home_team=game.get("home_team"),
        away_team=game.get("away_team"),
        bookmaker=(opt_str(bk.get("title")) if bk else None) or bookmaker,
        bookmaker_last_update=bk.get("last_update") if bk else None,
        total_point=float(point) if point is not None else None,
    )
