"""Internal API routers — /status, /quotes, /signals, /scores, /trades,
/settings, /watchlist, /logs endpoints.

No business logic, no SQL. Delegates to repos, the market-data client,
and shared pipeline state.
"""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Query

from signaldesk.market.models import DEFAULT_SYMBOLS, MARKET_TYPES, SymbolInfo, default_currency
from signaldesk.models.settings import UserSettings

logger = logging.getLogger("signaldesk")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_DEFAULT_PIPELINE_STATUS: dict = {
    "running": False,
    "scope": None,
    "progress": 0,
    "message": "",
    "cycle_count": 0,
    "started_at": None,
    "last_run_at": None,
    "last_result": None,
    "last_error": None,
}

_pipeline_status: dict = {**_DEFAULT_PIPELINE_STATUS}

_persistence = None   # Set via configure_routers()
_market_data = None   # Set via configure_routers()
_user_id: str = "local"

_REDACTED = "***"


def configure_routers(
    persistence=None,
    market_data=None,
    user_id: str = "local",
    pipeline_status: Optional[dict] = None,
) -> None:
    """Inject dependencies from the application startup.

    Args:
        persistence: A ``Persistence`` bundle (or duck-type for tests).
        market_data: A ``MarketDataClient`` for the quotes and status endpoints.
        user_id: Opaque user key for every repo query.
        pipeline_status: Optional dict to seed the pipeline status.
    """
    global _persistence, _market_data, _user_id  # noqa: PLW0603
    _persistence = persistence
    _market_data = market_data
    _user_id = user_id
    _pipeline_status.clear()
    _pipeline_status.update(_DEFAULT_PIPELINE_STATUS)
    if pipeline_status is not None:
        _pipeline_status.update(pipeline_status)


def update_pipeline_status(**fields) -> None:
    """Update individual fields of the pipeline status dict."""
    _pipeline_status.update(fields)


def get_pipeline_status() -> dict:
    return dict(_pipeline_status)


def _resolve_symbol(symbol: str, market: str) -> SymbolInfo:
    for info in DEFAULT_SYMBOLS.get(market, []):
        if info.symbol == symbol:
            return info
    return SymbolInfo(symbol, symbol, market, default_currency(market))


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/status")
async def get_status():
    """Return pipeline progress and the market-data layer state."""
    market = _market_data.status() if _market_data is not None else None
    return {"pipeline": get_pipeline_status(), "market_data": market}


@router.get("/quotes")
async def get_quotes(
    symbols: Optional[str] = Query(default=None),
    market: str = Query(default="US"),
):
    """Return quotes for a comma-separated symbol list (default universe otherwise)."""
    if _market_data is None:
        return {"quotes": [], "data_source": None}
    if market not in MARKET_TYPES:
        return {"error": f"Unknown market: {market}"}
    if symbols:
        infos = [
            _resolve_symbol(s.strip().upper(), market)
            for s in symbols.split(",")
            if s.strip()
        ]
    else:
        infos = list(DEFAULT_SYMBOLS[market])
    quotes = await _market_data.get_quotes(infos)
    return {
        "quotes": [asdict(q) for q in quotes],
        "data_source": _market_data.data_source,
    }


@router.get("/signals")
async def get_signals(
    limit: int = Query(default=20, ge=1, le=100),
    direction: Optional[str] = Query(default=None),
):
    """Return recent signals."""
    if _persistence is None:
        return {"signals": [], "total": 0}
    return _persistence.signals.get_signals(_user_id, limit=limit, direction=direction)


@router.get("/scores")
async def get_scores(
    limit: int = Query(default=20, ge=1, le=100),
    passed: bool = Query(default=False),
):
    """Return recent evaluation scores (only passed ones with ``passed=true``)."""
    if _persistence is None:
        return {"scores": [], "total": 0}
    return _persistence.signals.get_scores(_user_id, limit=limit, passed_only=passed)


@router.get("/trades")
async def get_trades(
    kind: str = Query(default="simulator", pattern="^(simulator|real)$"),
    limit: int = Query(default=20, ge=1, le=100),
    status: Optional[str] = Query(default=None),
):
    """Return recent simulated or real trades."""
    if _persistence is None:
        return {"trades": [], "total": 0}
    return _persistence.trades.get_trades(
        _user_id, kind=kind, limit=limit, status_filter=status,
    )


@router.get("/settings")
async def get_settings():
    """Return the user's settings with credentials redacted."""
    if _persistence is None:
        return UserSettings().to_dict(redact=True)
    return _persistence.settings.get(_user_id).to_dict(redact=True)


@router.post("/settings")
async def post_settings(body: dict):
    """Validate and persist a partial settings update."""
    if _persistence is None:
        return {"status": "error", "errors": ["Persistence not configured"]}

    current = _persistence.settings.get(_user_id).to_dict()
    known = set(current)
    errors = [f"Unknown setting: {key}" for key in body if key not in known]
    if errors:
        return {"status": "error", "errors": errors}

    for key, value in body.items():
        # Redacted credentials echoed back from GET mean "unchanged"
        if value == _REDACTED:
            continue
        current[key] = value

    try:
        updated = UserSettings.from_dict(current)
    except (TypeError, ValueError) as exc:
        return {"status": "error", "errors": [str(exc)]}

    _persistence.settings.save(_user_id, updated)
    logger.info("Settings updated: %s", sorted(k for k in body if body[k] != _REDACTED))
    return {"status": "ok", **updated.to_dict(redact=True)}


@router.get("/watchlist")
async def get_watchlist():
    if _persistence is None:
        return {"watchlist": []}
    return {"watchlist": [asdict(i) for i in _persistence.watchlist.list_symbols(_user_id)]}


@router.post("/watchlist")
async def add_to_watchlist(body: dict):
    """Add ``{"symbol", "name"?, "market"?}`` to the watchlist."""
    if _persistence is None:
        return {"status": "error", "errors": ["Persistence not configured"]}
    symbol = str(body.get("symbol", "")).strip().upper()
    market = str(body.get("market", "US")).upper()
    if not symbol:
        return {"status": "error", "errors": ["symbol is required"]}
    if market not in MARKET_TYPES:
        return {"status": "error", "errors": [f"Unknown market: {market}"]}
    info = _resolve_symbol(symbol, market)
    if body.get("name"):
        info = SymbolInfo(symbol, str(body["name"]), market, info.currency)
    added = _persistence.watchlist.add(_user_id, info)
    return {"status": "ok" if added else "exists", "symbol": symbol}


@router.delete("/watchlist/{symbol}")
async def remove_from_watchlist(symbol: str):
    if _persistence is None:
        return {"status": "error", "errors": ["Persistence not configured"]}
    removed = _persistence.watchlist.remove(_user_id, symbol.upper())
    return {"status": "ok" if removed else "not_found", "symbol": symbol.upper()}


@router.get("/logs")
async def get_logs(limit: int = Query(default=50, ge=1, le=200)):
    """Return the most recent system log rows."""
    if _persistence is None:
        return {"logs": []}
    return {"logs": _persistence.logs.get_logs(_user_id, limit=limit)}
