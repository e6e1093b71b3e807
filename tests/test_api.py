"""Tests for the FastAPI service shell: auth, analysis endpoint, job triggers."""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from market_intel.auth import get_valid_api_keys
from market_intel.core.errors import ConfigurationError
from market_intel.main import app
from market_intel.models import get_db

ADMIN_KEY = "admin-key"
USER_KEY = "user-key"


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("API_KEY_USER1", ADMIN_KEY)
    monkeypatch.setenv("API_KEY_USER2", USER_KEY)
    get_valid_api_keys.cache_clear()
    app.dependency_overrides[get_db] = lambda: MagicMock()
    yield TestClient(app)
    app.dependency_overrides.clear()
    get_valid_api_keys.cache_clear()


def _payload(**overrides):
    payload = {
        "sport": "soccer_epl",
        "home_team": "Arsenal",
        "away_team": "Chelsea",
        "home": {"form": "wwwwd", "played": 5, "wins": 4, "draws": 1, "scored": 12, "conceded": 4},
        "away": {"form": "LLWDL", "played": 5, "wins": 1, "draws": 1, "losses": 3,
                 "scored": 5, "conceded": 9},
        "odds": {"home": 1.8, "away": 4.5, "draw": 3.6},
    }
    payload.update(overrides)
    return payload


def test_health_reports_stopped_scheduler(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["database"] == "connected"
    assert body["scheduler"] == "stopped"
    assert body["status"] == "degraded"


class TestAnalyzeEndpoint:

    def test_requires_api_key(self, client):
        assert client.post("/api/analyze", json=_payload()).status_code == 401

    def test_rejects_unknown_key(self, client):
        response = client.post("/api/analyze", json=_payload(), headers={"X-API-Key": "nope"})
        assert response.status_code == 401

    def test_full_analysis(self, client):
        response = client.post("/api/analyze", json=_payload(), headers={"X-API-Key": USER_KEY})
        assert response.status_code == 200
        body = response.json()
        assert body["signals"]["form_home"] == "strong"
        assert body["signals"]["form_away"] == "weak"
        p = body["probability"]
        assert p["home"] + p["away"] + p["draw"] == 100
        assert p["fidelity"] == "full"
        assert body["value_edge"]["outcome"] == "home"
        assert body["recommendation"] == "slight_value"
        assert body["line_movement"] is None

    def test_previous_odds_adds_line_movement(self, client):
        payload = _payload(previous_odds={"home": 2.0, "away": 4.0, "draw": 3.5})
        body = client.post("/api/analyze", json=payload, headers={"X-API-Key": USER_KEY}).json()
        assert body["line_movement"]["direction"] == "toward_home"

    def test_invalid_odds_rejected(self, client):
        payload = _payload(odds={"home": 1.0, "away": 4.5})
        response = client.post("/api/analyze", json=payload, headers={"X-API-Key": USER_KEY})
        assert response.status_code == 422


class TestAdminJobs:

    def test_non_admin_forbidden(self, client):
        response = client.post("/admin/jobs/poll-odds", headers={"X-API-Key": USER_KEY})
        assert response.status_code == 403

    @patch("market_intel.main.poll_odds")
    def test_poll_odds_trigger(self, mock_poll, client):
        mock_poll.return_value.to_dict.return_value = {"events_processed": 3, "errors": []}
        response = client.post("/admin/jobs/poll-odds", headers={"X-API-Key": ADMIN_KEY})
        assert response.status_code == 200
        assert response.json()["events_processed"] == 3

    @patch("market_intel.main.fetch_closing_lines")
    def test_clv_trigger_without_key_configured(self, mock_fetch, client):
        mock_fetch.side_effect = ConfigurationError("THE_ODDS_API_KEY not set in environment")
        response = client.post("/admin/jobs/fetch-clv", headers={"X-API-Key": ADMIN_KEY})
        assert response.status_code == 503


class TestApiKeys:

    @pytest.fixture(autouse=True)
    def _no_keys(self, monkeypatch):
        for i in range(1, 6):
            monkeypatch.delenv(f"API_KEY_USER{i}", raising=False)
        get_valid_api_keys.cache_clear()
        yield
        get_valid_api_keys.cache_clear()

    def test_missing_keys_raise_configuration_error(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        with pytest.raises(ConfigurationError):
            get_valid_api_keys()

    def test_development_falls_back_to_admin_dev_key(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "development")
        assert get_valid_api_keys() == {"dev-key-insecure": "user1"}

    def test_keys_map_to_user_ids(self, monkeypatch):
        monkeypatch.setenv("API_KEY_USER1", ADMIN_KEY)
        monkeypatch.setenv("API_KEY_USER3", USER_KEY)
        assert get_valid_api_keys() == {ADMIN_KEY: "user1", USER_KEY: "user3"}
