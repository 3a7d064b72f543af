"""Tests for signaldesk.api.routers — internal API endpoints."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from signaldesk.api.routers import configure_routers, update_pipeline_status
from signaldesk.config import Config
from signaldesk.main import app, resolve_settings, warn_if_live
from signaldesk.market.client import MarketDataClient
from signaldesk.models.settings import UserSettings
from signaldesk.models.trades import SimulatorTrade
from signaldesk.repos.persistence import Persistence

client = TestClient(app)


# ── Helpers ──────────────────────────────────────────────────────────────


def _make_config(**overrides) -> Config:
    values = dict(
        twelve_data_api_key="",
        twelve_data_base_url="https://api.twelvedata.com",
        request_interval_seconds=8.5,
        daily_request_budget=750,
        quote_batch_size=8,
        quote_cache_ttl_seconds=300.0,
        openai_api_key="",
        openai_model="gpt-4o-mini",
        openai_base_url="https://api.openai.com/v1",
        alpaca_api_key="",
        alpaca_secret_key="",
        alpaca_mode="PAPER",
        telegram_bot_token="",
        telegram_chat_id="",
        db_path=":memory:",
        log_level="INFO",
        health_port=8080,
    )
    values.update(overrides)
    return Config(**values)


@pytest.fixture
def persistence(tmp_path):
    db = Persistence.from_db_path(str(tmp_path / "api.db"))
    configure_routers(persistence=db, market_data=MarketDataClient(_make_config()))
    yield db
    configure_routers()


# ── Tests ────────────────────────────────────────────────────────────────


def test_health():
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


class TestStatusEndpoint:
    def test_reports_pipeline_and_market_state(self, persistence):
        update_pipeline_status(running=True, scope="US", progress=45)
        data = client.get("/status").json()
        assert data["pipeline"]["running"] is True
        assert data["pipeline"]["progress"] == 45
        assert data["market_data"]["data_source"] == "mock"
        assert data["market_data"]["daily_budget"] == 750

    def test_without_dependencies(self):
        configure_routers()
        data = client.get("/status").json()
        assert data["pipeline"]["running"] is False
        assert data["market_data"] is None


class TestQuotesEndpoint:
    def test_requested_symbols(self, persistence):
        data = client.get("/quotes", params={"symbols": "aapl, MSFT"}).json()
        assert [q["symbol"] for q in data["quotes"]] == ["AAPL", "MSFT"]
        assert data["quotes"][0]["name"] == "Apple Inc."
        assert data["data_source"] == "mock"

    def test_default_universe_for_market(self, persistence):
        data = client.get("/quotes", params={"market": "CRYPTO"}).json()
        assert len(data["quotes"]) == 8
        assert all(q["source"] == "mock" for q in data["quotes"])

    def test_unknown_market(self, persistence):
        assert "error" in client.get("/quotes", params={"market": "MARS"}).json()


class TestHistoryEndpoints:
    def test_empty_without_persistence(self):
        configure_routers()
        assert client.get("/signals").json() == {"signals": [], "total": 0}
        assert client.get("/trades").json() == {"trades": [], "total": 0}
        assert client.get("/logs").json() == {"logs": []}

    def test_trades_listed(self, persistence):
        persistence.trades.insert_simulator_trade(
            SimulatorTrade("local", "AAPL", "Apple", "US", "BUY", 10, 100.0, 1000.0)
        )
        data = client.get("/trades", params={"kind": "simulator", "status": "OPEN"}).json()
        assert data["total"] == 1
        assert data["trades"][0]["symbol"] == "AAPL"

    def test_invalid_trade_kind_rejected(self, persistence):
        assert client.get("/trades", params={"kind": "paper"}).status_code == 422

    def test_limit_bounds(self, persistence):
        assert client.get("/signals", params={"limit": 0}).status_code == 422
        assert client.get("/signals", params={"limit": 500}).status_code == 422

    def test_delegates_filters_to_repo(self):
        repo = MagicMock()
        repo.signals.get_signals.return_value = {"signals": [], "total": 0}
        repo.signals.get_scores.return_value = {"scores": [], "total": 0}
        configure_routers(persistence=repo)

        client.get("/signals", params={"limit": 5, "direction": "BUY"})
        client.get("/scores", params={"passed": "true"})

        repo.signals.get_signals.assert_called_once_with("local", limit=5, direction="BUY")
        repo.signals.get_scores.assert_called_once_with("local", limit=20, passed_only=True)
        configure_routers()


class TestSettingsEndpoint:
    def test_defaults(self, persistence):
        data = client.get("/settings").json()
        assert data["min_signal_score"] == 75.0
        assert data["alpaca_mode"] == "PAPER"

    def test_update_persists_and_redacts(self, persistence):
        resp = client.post(
            "/settings",
            json={"min_signal_score": 80, "alpaca_api_key": "AKID", "alpaca_secret_key": "SECRET"},
        )
        data = resp.json()
        assert data["status"] == "ok"
        assert data["min_signal_score"] == 80
        assert data["alpaca_api_key"] == "***"

        stored = persistence.settings.get("local")
        assert stored.alpaca_api_key == "AKID"
        assert client.get("/settings").json()["alpaca_secret_key"] == "***"

    def test_redacted_value_keeps_stored_credential(self, persistence):
        persistence.settings.save("local", UserSettings(alpaca_api_key="AKID", alpaca_secret_key="S"))
        resp = client.post("/settings", json={"alpaca_api_key": "***", "max_position_pct": 5})
        assert resp.json()["status"] == "ok"
        stored = persistence.settings.get("local")
        assert stored.alpaca_api_key == "AKID"
        assert stored.max_position_pct == 5

    def test_out_of_range_rejected(self, persistence):
        data = client.post("/settings", json={"min_signal_score": 150}).json()
        assert data["status"] == "error"
        assert "min_signal_score" in data["errors"][0]
        assert persistence.settings.get("local").min_signal_score == 75.0

    def test_unknown_key_rejected(self, persistence):
        data = client.post("/settings", json={"leverage": 10}).json()
        assert data == {"status": "error", "errors": ["Unknown setting: leverage"]}


class TestWatchlistEndpoint:
    def test_add_list_remove(self, persistence):
        assert client.post("/watchlist", json={"symbol": "aapl"}).json()["status"] == "ok"
        assert client.post("/watchlist", json={"symbol": "AAPL"}).json()["status"] == "exists"
        client.post("/watchlist", json={"symbol": "BTC/USD", "market": "CRYPTO"})

        items = client.get("/watchlist").json()["watchlist"]
        assert [i["symbol"] for i in items] == ["AAPL", "BTC/USD"]
        assert items[0]["name"] == "Apple Inc."

        assert client.delete("/watchlist/AAPL").json()["status"] == "ok"
        assert client.delete("/watchlist/AAPL").json()["status"] == "not_found"

    def test_custom_symbol_name(self, persistence):
        client.post("/watchlist", json={"symbol": "IBM", "name": "IBM Corp."})
        assert client.get("/watchlist").json()["watchlist"][0]["name"] == "IBM Corp."

    def test_validation(self, persistence):
        assert client.post("/watchlist", json={}).json()["status"] == "error"
        assert client.post("/watchlist", json={"symbol": "X", "market": "MARS"}).json()["status"] == "error"


class TestLogsEndpoint:
    def test_newest_first(self, persistence):
        persistence.logs.insert_log("local", "INFO", "analysis", "first")
        persistence.logs.insert_log("local", "ERROR", "automation", "second")
        logs = client.get("/logs", params={"limit": 1}).json()["logs"]
        assert [log["message"] for log in logs] == ["second"]


class TestStartupHelpers:
    def test_live_warning(self):
        assert warn_if_live(UserSettings(enable_real_trading=True, alpaca_mode="LIVE")) is True
        assert warn_if_live(UserSettings(enable_real_trading=True)) is False
        assert warn_if_live(UserSettings(alpaca_mode="LIVE")) is False

    def test_env_credentials_fill_missing_settings(self, tmp_path):
        db = Persistence.from_db_path(str(tmp_path / "s.db"))
        config = _make_config(alpaca_api_key="ENVKEY", alpaca_secret_key="ENVSECRET", alpaca_mode="LIVE")

        settings = resolve_settings(config, db)

        assert settings.alpaca_api_key == "ENVKEY"
        assert settings.alpaca_mode == "LIVE"

    def test_stored_credentials_win(self, tmp_path):
        db = Persistence.from_db_path(str(tmp_path / "s.db"))
        db.settings.save("local", UserSettings(alpaca_api_key="DBKEY", alpaca_secret_key="DBSECRET"))
        config = _make_config(alpaca_api_key="ENVKEY", alpaca_secret_key="ENVSECRET")

        assert resolve_settings(config, db).alpaca_api_key == "DBKEY"
