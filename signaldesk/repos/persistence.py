"""Repository bundle handed to the pipeline and the API."""

from dataclasses import dataclass

from signaldesk.repos.db import init_db
from signaldesk.repos.log_repo import LogRepo
from signaldesk.repos.settings_repo import SettingsRepo
from signaldesk.repos.signal_repo import SignalRepo
from signaldesk.repos.symbol_repo import StockRepo, WatchlistRepo
from signaldesk.repos.trade_repo import TradeRepo


@dataclass(frozen=True)
class Persistence:
    """All repositories backed by one SQLite file."""

    signals: SignalRepo
    trades: TradeRepo
    stocks: StockRepo
    watchlist: WatchlistRepo
    settings: SettingsRepo
    logs: LogRepo

    @classmethod
    def from_db_path(cls, db_path: str, initialize: bool = True) -> "Persistence":
        """Build every repo for *db_path*, running the migration first."""
        if initialize:
            init_db(db_path)
        return cls(
            signals=SignalRepo(db_path),
            trades=TradeRepo(db_path),
            stocks=StockRepo(db_path),
            watchlist=WatchlistRepo(db_path),
            settings=SettingsRepo(db_path),
            logs=LogRepo(db_path),
        )
