"""
The Odds API integration for head-to-head (h2h) prices.
https://the-odds-api.com/

Only the h2h market is read.  Prices are requested in decimal format.

Consensus vs reference prices
-----------------------------
``consensus_odds`` averages every bookmaker quoting h2h for an event.  The
poller stores this consensus and diffs it cycle to cycle.

``reference_quote`` returns a single book's quote, preferring the sharp
reference book (Pinnacle) and falling back to the first bookmaker listed.
The CLV tracker uses it as the closing price.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

import numpy as np
import requests
from dotenv import load_dotenv

from market_intel.core.errors import ConfigurationError, OddsAPIError

load_dotenv()

logger = logging.getLogger(__name__)

BASE_URL = os.getenv("ODDS_API_BASE_URL", "https://api.the-odds-api.com/v4")
DEFAULT_REGIONS = os.getenv("ODDS_API_REGIONS", "eu,us")

_DRAW_NAMES = frozenset({"draw", "the draw", "tie"})


@dataclass
class OddsQuote:
    """One bookmaker's h2h prices for one event."""

    bookmaker: str
    home: Optional[float] = None
    away: Optional[float] = None
    draw: Optional[float] = None
    last_update: Optional[str] = None


@dataclass
class ConsensusOdds:
    """Mean h2h price per outcome across bookmakers."""

    home: float
    away: float
    draw: Optional[float] = None
    books: int = 0


def _format_iso(ts: datetime) -> str:
    return ts.strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_price(value) -> Optional[float]:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return price if price > 1.0 else None


class OddsAPIClient:
    """Client for The Odds API"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 10,
    ):
        self.api_key = api_key or os.getenv("THE_ODDS_API_KEY")
        if not self.api_key:
            raise ConfigurationError("THE_ODDS_API_KEY not set in environment")
        self.base_url = base_url or BASE_URL
        self.timeout = timeout
        self.requests_remaining: Optional[str] = None

    def get_odds_for_sport(
        self,
        sport_key: str,
        regions: str = DEFAULT_REGIONS,
        markets: str = "h2h",
        commence_from: Optional[datetime] = None,
        commence_to: Optional[datetime] = None,
    ) -> List[Dict]:
        """
        Fetch current odds for one sport.

        Returns the provider's list of events, each with ``home_team``,
        ``away_team``, ``commence_time`` and ``bookmakers``.

        Raises:
            OddsAPIError: On timeout, connection failure, HTTP error or an
                unparseable body.
        """
        url = f"{self.base_url}/sports/{sport_key}/odds"
        params = {
            "apiKey": self.api_key,
            "regions": regions,
            "markets": markets,
            "oddsFormat": "decimal",
        }
        if commence_from is not None:
            params["commenceTimeFrom"] = _format_iso(commence_from)
        if commence_to is not None:
            params["commenceTimeTo"] = _format_iso(commence_to)

        try:
            response = requests.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            logger.error("Odds API error for %s: %s", sport_key, e)
            raise OddsAPIError(sport_key, str(e)) from e
        except ValueError as e:
            logger.error("Odds API returned invalid JSON for %s: %s", sport_key, e)
            raise OddsAPIError(sport_key, "invalid JSON body") from e

        self.requests_remaining = response.headers.get("x-requests-remaining")
        logger.info(
            "Odds API: %d events fetched for %s. Quota: %s used, %s remaining",
            len(data), sport_key,
            response.headers.get("x-requests-used"), self.requests_remaining,
        )
        return data


# ---------------------------------------------------------------------------
# Parsing (pure functions, no network)
# ---------------------------------------------------------------------------

def parse_h2h_quotes(event: Dict) -> List[OddsQuote]:
    """
    Extract one :class:`OddsQuote` per bookmaker exposing the h2h market.

    Outcomes are assigned by exact (case-insensitive) team name, or to the
    draw by name.  Unparseable prices and prices ≤ 1.0 are skipped.
    """
    home_team = (event.get("home_team") or "").lower()
    away_team = (event.get("away_team") or "").lower()
    quotes: List[OddsQuote] = []

    for bookmaker in event.get("bookmakers") or []:
        if not isinstance(bookmaker, dict):
            logger.debug("Skipping malformed bookmaker entry %r", bookmaker)
            continue
        h2h = next(
            (m for m in bookmaker.get("markets") or []
             if isinstance(m, dict) and m.get("key") == "h2h"),
            None,
        )
        if h2h is None:
            continue

        quote = OddsQuote(
            bookmaker=(bookmaker.get("key") or "").lower(),
            last_update=h2h.get("last_update") or bookmaker.get("last_update"),
        )
        for outcome in h2h.get("outcomes") or []:
            if not isinstance(outcome, dict):
                logger.debug("Skipping malformed outcome %r at %s", outcome, quote.bookmaker)
                continue
            name = str(outcome.get("name") or "").strip().lower()
            price = _parse_price(outcome.get("price"))
            if price is None:
                logger.debug(
                    "Skipping unparseable price %r for %s at %s",
                    outcome.get("price"), name, quote.bookmaker,
                )
                continue
            if name == home_team:
                quote.home = price
            elif name == away_team:
                quote.away = price
            elif name in _DRAW_NAMES:
                quote.draw = price

        quotes.append(quote)

    return quotes


def consensus_odds(event: Dict) -> Optional[ConsensusOdds]:
    """Arithmetic mean of each outcome's price across bookmakers.

    Returns None when either side has no quote at all.
    """
    quotes = parse_h2h_quotes(event)
    home = [q.home for q in quotes if q.home is not None]
    away = [q.away for q in quotes if q.away is not None]
    draw = [q.draw for q in quotes if q.draw is not None]

    if not home or not away:
        return None

    return ConsensusOdds(
        home=float(np.mean(home)),
        away=float(np.mean(away)),
        draw=float(np.mean(draw)) if draw else None,
        books=len(quotes),
    )


def reference_quote(event: Dict, sharp_book: str = "pinnacle") -> Optional[OddsQuote]:
    """The sharp book's h2h quote if present, otherwise the first bookmaker's."""
    quotes = parse_h2h_quotes(event)
    if not quotes:
        return None
    for quote in quotes:
        if quote.bookmaker == sharp_book:
            return quote
    return quotes[0]


def parse_commence_time(value: Optional[str]) -> Optional[datetime]:
    """Parse the provider's ISO timestamp into a naive UTC datetime.

    Returns None for anything that is not an ISO-8601 string.
    """
    if not value or not isinstance(value, str):
        return None
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts
