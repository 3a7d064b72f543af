"""Tests for signaldesk.models.settings — defaults, redaction, validation."""

import pytest

from signaldesk.models.settings import UserSettings, validate_settings


def test_defaults():
    settings = UserSettings()
    assert settings.min_signal_score == 75.0
    assert settings.max_position_pct == 10.0
    assert settings.enable_real_trading is False
    assert settings.alpaca_mode == "PAPER"
    assert settings.simulator_balance == 100_000.0
    assert settings.has_alpaca_credentials is False


def test_redacted_dict_hides_credentials():
    settings = UserSettings(alpaca_api_key="AKID", alpaca_secret_key="")
    data = settings.to_dict(redact=True)
    assert data["alpaca_api_key"] == "***"
    assert data["alpaca_secret_key"] == ""
    assert settings.to_dict()["alpaca_api_key"] == "AKID"


def test_from_dict_ignores_unknown_keys():
    settings = UserSettings.from_dict({"min_signal_score": 60, "theme": "dark"})
    assert settings.min_signal_score == 60


@pytest.mark.parametrize(
    "field, value",
    [
        ("min_signal_score", 101.0),
        ("min_signal_score", -1.0),
        ("max_position_pct", 0.0),
        ("max_position_pct", 150.0),
        ("alpaca_mode", "DEMO"),
        ("analysis_interval_minutes", 0),
        ("simulator_balance", -10.0),
        ("history_size", 0),
    ],
)
def test_invalid_values_rejected(field, value):
    with pytest.raises(ValueError, match=field):
        validate_settings(UserSettings(**{field: value}))
