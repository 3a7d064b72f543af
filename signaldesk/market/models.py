"""Market data models — typed representations of quotes and candles."""

from dataclasses import dataclass


MARKET_TYPES = ("US", "TR", "CRYPTO", "COMMODITY", "INDEX")


@dataclass(frozen=True)
class SymbolInfo:
    """A tradable symbol with its display metadata."""

    symbol: str
    name: str
    market: str  # one of MARKET_TYPES
    currency: str = "USD"


@dataclass(frozen=True)
class Quote:
    """A point-in-time price snapshot for one symbol."""

    symbol: str
    name: str
    market: str
    currency: str
    price: float
    change: float
    change_percent: float
    volume: int
    source: str = "live"  # "live" or "mock"


@dataclass(frozen=True)
class CandleBar:
    """A single OHLCV bar keyed by a UNIX timestamp in seconds."""

    time: int
    open: float
    high: float
    low: float
    close: float
    volume: int


def default_currency(market: str) -> str:
    """Quote currency used when a symbol arrives without one."""
    return "TRY" if market == "TR" else "USD"


# ── Default universe ─────────────────────────────────────────────────────

DEFAULT_SYMBOLS: dict[str, list[SymbolInfo]] = {
    "US": [
        SymbolInfo("AAPL", "Apple Inc.", "US"),
        SymbolInfo("MSFT", "Microsoft Corp.", "US"),
        SymbolInfo("GOOGL", "Alphabet Inc.", "US"),
        SymbolInfo("AMZN", "Amazon.com Inc.", "US"),
        SymbolInfo("NVDA", "NVIDIA Corp.", "US"),
        SymbolInfo("META", "Meta Platforms", "US"),
        SymbolInfo("TSLA", "Tesla Inc.", "US"),
        SymbolInfo("JPM", "JPMorgan Chase", "US"),
        SymbolInfo("BRK/B", "Berkshire Hathaway", "US"),
        SymbolInfo("V", "Visa Inc.", "US"),
    ],
    "TR": [
        SymbolInfo("GARAN", "Garanti Bankasi", "TR", "TRY"),
        SymbolInfo("AKBNK", "Akbank", "TR", "TRY"),
        SymbolInfo("THYAO", "Turk Hava Yollari", "TR", "TRY"),
        SymbolInfo("EREGL", "Eregli Demir Celik", "TR", "TRY"),
        SymbolInfo("SISE", "Sisecam", "TR", "TRY"),
        SymbolInfo("BIMAS", "BIM Birlesik Magazalar", "TR", "TRY"),
        SymbolInfo("ARCLK", "Arcelik", "TR", "TRY"),
        SymbolInfo("KCHOL", "Koc Holding", "TR", "TRY"),
        SymbolInfo("TCELL", "Turkcell", "TR", "TRY"),
        SymbolInfo("SAHOL", "Sabanci Holding", "TR", "TRY"),
    ],
    "CRYPTO": [
        SymbolInfo("BTC/USD", "Bitcoin", "CRYPTO"),
        SymbolInfo("ETH/USD", "Ethereum", "CRYPTO"),
        SymbolInfo("BNB/USD", "BNB", "CRYPTO"),
        SymbolInfo("SOL/USD", "Solana", "CRYPTO"),
        SymbolInfo("XRP/USD", "XRP", "CRYPTO"),
        SymbolInfo("ADA/USD", "Cardano", "CRYPTO"),
        SymbolInfo("DOGE/USD", "Dogecoin", "CRYPTO"),
        SymbolInfo("AVAX/USD", "Avalanche", "CRYPTO"),
    ],
    "COMMODITY": [
        SymbolInfo("XAU/USD", "Gold", "COMMODITY"),
        SymbolInfo("XAG/USD", "Silver", "COMMODITY"),
        SymbolInfo("WTI/USD", "Crude Oil WTI", "COMMODITY"),
        SymbolInfo("BRENT/USD", "Brent Oil", "COMMODITY"),
        SymbolInfo("XPT/USD", "Platinum", "COMMODITY"),
    ],
    "INDEX": [
        SymbolInfo("SPX", "S&P 500", "INDEX"),
        SymbolInfo("DJI", "Dow Jones", "INDEX"),
        SymbolInfo("IXIC", "NASDAQ", "INDEX"),
        SymbolInfo("FTSE", "FTSE 100", "INDEX", "GBP"),
        SymbolInfo("DAX", "DAX", "INDEX", "EUR"),
        SymbolInfo("XU100", "BIST 100", "INDEX", "TRY"),
    ],
}


def all_default_symbols() -> list[SymbolInfo]:
    """Flatten ``DEFAULT_SYMBOLS`` in market order."""
    return [info for market in MARKET_TYPES for info in DEFAULT_SYMBOLS[market]]
