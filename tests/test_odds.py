"""Tests for the odds provider client and h2h parsing."""

from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
import requests

from market_intel.core.errors import ConfigurationError, OddsAPIError
from market_intel.services.odds import (
    OddsAPIClient,
    consensus_odds,
    parse_commence_time,
    parse_h2h_quotes,
    reference_quote,
)


def _book(key, home, away, draw=None, home_team="Arsenal", away_team="Chelsea"):
    outcomes = [
        {"name": home_team, "price": home},
        {"name": away_team, "price": away},
    ]
    if draw is not None:
        outcomes.append({"name": "Draw", "price": draw})
    return {"key": key, "markets": [{"key": "h2h", "outcomes": outcomes}]}


def _event(*books, home_team="Arsenal", away_team="Chelsea"):
    return {
        "id": "evt1",
        "home_team": home_team,
        "away_team": away_team,
        "commence_time": "2026-01-11T15:00:00Z",
        "bookmakers": list(books),
    }


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

class TestParseQuotes:

    def test_assigns_outcomes_by_name(self):
        quotes = parse_h2h_quotes(_event(_book("bet365", 2.0, 3.8, 3.5)))
        assert len(quotes) == 1
        q = quotes[0]
        assert (q.bookmaker, q.home, q.away, q.draw) == ("bet365", 2.0, 3.8, 3.5)

    def test_skips_bad_prices(self):
        quotes = parse_h2h_quotes(_event(_book("bet365", "n/a", 1.0, 3.5)))
        q = quotes[0]
        assert q.home is None
        assert q.away is None
        assert q.draw == 3.5

    def test_ignores_books_without_h2h(self):
        book = {"key": "fanduel", "markets": [{"key": "spreads", "outcomes": []}]}
        assert parse_h2h_quotes(_event(book)) == []

    def test_skips_malformed_entries(self):
        book = _book("bet365", 2.0, 3.8)
        book["markets"][0]["outcomes"].insert(0, "garbage")
        book["markets"].insert(0, None)
        quotes = parse_h2h_quotes(_event(None, "unibet", book))
        assert len(quotes) == 1
        assert (quotes[0].bookmaker, quotes[0].home, quotes[0].away) == ("bet365", 2.0, 3.8)

    def test_consensus_is_mean(self):
        event = _event(_book("bet365", 1.9, 4.0, 3.4), _book("unibet", 2.1, 3.6, 3.6))
        consensus = consensus_odds(event)
        assert consensus.home == pytest.approx(2.0)
        assert consensus.away == pytest.approx(3.8)
        assert consensus.draw == pytest.approx(3.5)
        assert consensus.books == 2

    def test_consensus_none_without_both_sides(self):
        assert consensus_odds(_event(_book("bet365", "x", 3.8))) is None
        assert consensus_odds(_event()) is None

    def test_two_way_consensus_has_no_draw(self):
        consensus = consensus_odds(_event(_book("draftkings", 1.8, 2.1)))
        assert consensus.draw is None

    def test_reference_prefers_sharp_book(self):
        event = _event(_book("bet365", 2.05, 3.6), _book("pinnacle", 1.95, 3.9))
        assert reference_quote(event, "pinnacle").bookmaker == "pinnacle"

    def test_reference_falls_back_to_first(self):
        event = _event(_book("bet365", 2.05, 3.6), _book("unibet", 2.0, 3.7))
        assert reference_quote(event, "pinnacle").bookmaker == "bet365"
        assert reference_quote(_event(), "pinnacle") is None

    def test_parse_commence_time(self):
        assert parse_commence_time("2026-01-11T15:00:00Z") == datetime(2026, 1, 11, 15, 0)
        assert parse_commence_time("2026-01-11T17:00:00+02:00") == datetime(2026, 1, 11, 15, 0)
        assert parse_commence_time("not a date") is None
        assert parse_commence_time(None) is None
        assert parse_commence_time(1767970800) is None
        assert parse_commence_time(["2026-01-11T15:00:00Z"]) is None


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

class TestOddsAPIClient:

    def test_missing_key_raises(self, monkeypatch):
        monkeypatch.delenv("THE_ODDS_API_KEY", raising=False)
        with pytest.raises(ConfigurationError):
            OddsAPIClient()

    @patch("market_intel.services.odds.requests.get")
    def test_requests_decimal_h2h(self, mock_get):
        response = MagicMock()
        response.json.return_value = [_event(_book("bet365", 2.0, 3.8, 3.5))]
        response.headers = {"x-requests-used": "10", "x-requests-remaining": "490"}
        mock_get.return_value = response

        client = OddsAPIClient(api_key="test-key", base_url="https://odds.test/v4")
        events = client.get_odds_for_sport(
            "soccer_epl",
            commence_from=datetime(2026, 1, 10, 12, 0),
            commence_to=datetime(2026, 1, 13, 12, 0),
        )

        assert len(events) == 1
        assert client.requests_remaining == "490"
        url = mock_get.call_args.args[0]
        params = mock_get.call_args.kwargs["params"]
        assert url == "https://odds.test/v4/sports/soccer_epl/odds"
        assert params["oddsFormat"] == "decimal"
        assert params["markets"] == "h2h"
        assert params["commenceTimeFrom"] == "2026-01-10T12:00:00Z"
        assert params["commenceTimeTo"] == "2026-01-13T12:00:00Z"
        assert mock_get.call_args.kwargs["timeout"] == 10

    @patch("market_intel.services.odds.requests.get")
    def test_network_failure_raises_odds_api_error(self, mock_get):
        mock_get.side_effect = requests.exceptions.Timeout("timed out")
        client = OddsAPIClient(api_key="test-key")
        with pytest.raises(OddsAPIError) as exc_info:
            client.get_odds_for_sport("soccer_epl")
        assert exc_info.value.sport_key == "soccer_epl"

    @patch("market_intel.services.odds.requests.get")
    def test_http_error_raises_odds_api_error(self, mock_get):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("401")
        mock_get.return_value = response
        client = OddsAPIClient(api_key="bad-key")
        with pytest.raises(OddsAPIError):
            client.get_odds_for_sport("basketball_nba")
