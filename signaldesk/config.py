"""SignalDesk — application configuration.

Loads .env variables into a typed config object.
Every vendor credential is optional: a missing key switches the matching
component into its offline mode (mock market data, templated narrative,
no brokerage, no notifications).
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv


_ALPACA_MODES = ("PAPER", "LIVE")


def _credential(name: str) -> str:
    """Return a credential value, treating ``your_...`` placeholders as unset."""
    value = os.environ.get(name, "").strip()
    if value.startswith("your_"):
        return ""
    return value


def _number(name: str, default: str, cast=float):
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(
            f"Invalid value for environment variable {name}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    twelve_data_api_key: str
    twelve_data_base_url: str
    request_interval_seconds: float
    daily_request_budget: int
    quote_batch_size: int
    quote_cache_ttl_seconds: float
    openai_api_key: str
    openai_model: str
    openai_base_url: str
    alpaca_api_key: str
    alpaca_secret_key: str
    alpaca_mode: str  # "PAPER" or "LIVE"
    telegram_bot_token: str
    telegram_chat_id: str
    db_path: str
    log_level: str
    health_port: int

    @property
    def market_data_configured(self) -> bool:
        return bool(self.twelve_data_api_key)

    @property
    def narrative_configured(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def alpaca_configured(self) -> bool:
        return bool(self.alpaca_api_key and self.alpaca_secret_key)

    @property
    def telegram_configured(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    @property
    def alpaca_base_url(self) -> str:
        """Return the Alpaca trading API base URL for the configured mode."""
        if self.alpaca_mode == "LIVE":
            return "https://api.alpaca.markets"
        return "https://paper-api.alpaca.markets"


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` naming the offending variable when a numeric
    variable cannot be parsed or ``ALPACA_MODE`` is not PAPER/LIVE.
    """
    load_dotenv(dotenv_path=env_path)

    alpaca_mode = os.environ.get("ALPACA_MODE", "PAPER").strip().upper()
    if alpaca_mode not in _ALPACA_MODES:
        raise ValueError(
            f"Invalid value for environment variable ALPACA_MODE: {alpaca_mode!r}"
        )

    batch_size = _number("QUOTE_BATCH_SIZE", "8", int)
    if batch_size < 1:
        raise ValueError("QUOTE_BATCH_SIZE must be at least 1")

    return Config(
        twelve_data_api_key=_credential("TWELVE_DATA_API_KEY"),
        twelve_data_base_url=os.environ.get(
            "TWELVE_DATA_BASE_URL", "https://api.twelvedata.com"
        ).rstrip("/"),
        request_interval_seconds=_number("TWELVE_REQUEST_INTERVAL_SECONDS", "8.5"),
        daily_request_budget=_number("TWELVE_DAILY_REQUEST_BUDGET", "750", int),
        quote_batch_size=batch_size,
        quote_cache_ttl_seconds=_number("QUOTE_CACHE_TTL_SECONDS", "300"),
        openai_api_key=_credential("OPENAI_API_KEY"),
        openai_model=os.environ.get("OPENAI_MODEL", "gpt-4o-mini"),
        openai_base_url=os.environ.get(
            "OPENAI_BASE_URL", "https://api.openai.com/v1"
        ).rstrip("/"),
        alpaca_api_key=_credential("ALPACA_API_KEY"),
        alpaca_secret_key=_credential("ALPACA_SECRET_KEY"),
        alpaca_mode=alpaca_mode,
        telegram_bot_token=_credential("TELEGRAM_BOT_TOKEN"),
        telegram_chat_id=_credential("TELEGRAM_CHAT_ID"),
        db_path=os.environ.get("DB_PATH", "data/signaldesk.db"),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        health_port=_number("HEALTH_PORT", "8080", int),
    )
