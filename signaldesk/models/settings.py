"""User settings dataclass.

Represents the per-user automation preferences that drive one pipeline run.
"""

from dataclasses import asdict, dataclass, fields

ALPACA_MODES = ("PAPER", "LIVE")


@dataclass(frozen=True)
class UserSettings:
    """Automation preferences for a single user.

    ``min_signal_score`` is the evaluation pass threshold;
    ``max_position_pct`` caps the share of cash one position may use.
    """

    min_signal_score: float = 75.0
    max_position_pct: float = 10.0
    enable_real_trading: bool = False
    alpaca_api_key: str = ""
    alpaca_secret_key: str = ""
    alpaca_mode: str = "PAPER"  # "PAPER" or "LIVE"
    enable_telegram: bool = False
    auto_analysis: bool = False
    analysis_interval_minutes: int = 60
    simulator_balance: float = 100_000.0
    fetch_history: bool = False  # pull daily candles per symbol before analysis
    history_size: int = 90

    @property
    def has_alpaca_credentials(self) -> bool:
        return bool(self.alpaca_api_key and self.alpaca_secret_key)

    def to_dict(self, redact: bool = False) -> dict:
        data = asdict(self)
        if redact:
            for key in ("alpaca_api_key", "alpaca_secret_key"):
                if data[key]:
                    data[key] = "***"
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "UserSettings":
        """Build settings from a dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return validate_settings(cls(**{k: v for k, v in data.items() if k in known}))


def validate_settings(settings: UserSettings) -> UserSettings:
    """Return *settings* unchanged, or raise ``ValueError`` naming the bad field."""
    if not 0 <= settings.min_signal_score <= 100:
        raise ValueError(
            f"min_signal_score must be within [0, 100], got {settings.min_signal_score}"
        )
    if not 0 < settings.max_position_pct <= 100:
        raise ValueError(
            f"max_position_pct must be within (0, 100], got {settings.max_position_pct}"
        )
    if settings.alpaca_mode not in ALPACA_MODES:
        raise ValueError(f"alpaca_mode must be PAPER or LIVE, got {settings.alpaca_mode!r}")
    if settings.analysis_interval_minutes < 1:
        raise ValueError(
            "analysis_interval_minutes must be at least 1, "
            f"got {settings.analysis_interval_minutes}"
        )
    if settings.simulator_balance < 0:
        raise ValueError(
            f"simulator_balance must not be negative, got {settings.simulator_balance}"
        )
    if not 1 <= settings.history_size <= 5000:
        raise ValueError(f"history_size must be within [1, 5000], got {settings.history_size}")
    return settings
