"""SignalDesk — automation pipeline (orchestration loop).

Connects market data, signal synthesis, evaluation, notification, and trade
execution into one sequential pass over a symbol set.  Symbols are
processed one at a time so the running cash balance and the open-position
set are never read and written by two symbols at once.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from signaldesk.api.routers import update_pipeline_status
from signaldesk.broker.alpaca_client import AlpacaClient
from signaldesk.broker.models import OrderRequest
from signaldesk.market.client import MarketDataClient
from signaldesk.market.models import DEFAULT_SYMBOLS, SymbolInfo, all_default_symbols
from signaldesk.models.settings import UserSettings
from signaldesk.models.trades import PipelineResult, RealTrade, SimulatorTrade
from signaldesk.notify.telegram import TelegramNotifier
from signaldesk.repos.persistence import Persistence
from signaldesk.risk.position_sizer import calculate_quantity
from signaldesk.strategy.evaluator import evaluate
from signaldesk.strategy.models import EvaluationScore, Signal
from signaldesk.strategy.synthesizer import SignalSynthesizer

logger = logging.getLogger("signaldesk")

SCOPES = ("WATCHLIST", "US", "TR", "GLOBAL")

ProgressCallback = Callable[[str, int], None]


class PipelineError(Exception):
    """The symbol universe for a run could not be loaded."""


def default_broker_factory(settings: UserSettings) -> AlpacaClient:
    return AlpacaClient(
        api_key=settings.alpaca_api_key,
        secret_key=settings.alpaca_secret_key,
        mode=settings.alpaca_mode,
    )


def dedupe_symbols(symbols: Iterable[SymbolInfo]) -> list[SymbolInfo]:
    """Drop repeated symbols, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[SymbolInfo] = []
    for info in symbols:
        if info.symbol in seen:
            continue
        seen.add(info.symbol)
        unique.append(info)
    return unique


class AutomationPipeline:
    """Runs analyze → evaluate → notify → trade over a set of symbols.

    Args:
        market_data: A ``MarketDataClient`` (or compatible duck-type / mock).
        synthesizer: A ``SignalSynthesizer``.
        broker_factory: Builds a broker client from ``UserSettings``; only
            called when real trading is enabled and credentials are present.
        notifier: Optional ``TelegramNotifier``.
        persistence: Optional ``Persistence`` bundle.  Writes are
            best-effort; a failed write never aborts a run.
        user_id: Opaque key for every persisted row.
    """

    def __init__(
        self,
        market_data: MarketDataClient,
        synthesizer: SignalSynthesizer,
        broker_factory: Optional[Callable[[UserSettings], object]] = None,
        notifier: Optional[TelegramNotifier] = None,
        persistence: Optional[Persistence] = None,
        user_id: str = "local",
    ) -> None:
        self._market = market_data
        self._synthesizer = synthesizer
        self._broker_factory = broker_factory or default_broker_factory
        self._notifier = notifier
        self._db = persistence
        self._user_id = user_id
        self._running: bool = False
        self._cycle_count: int = 0

    # ── Guarded side effects ─────────────────────────────────────────────

    def _persist(self, action: str, write: Callable[[Persistence], object]) -> None:
        """Run one repository write; log and swallow any failure."""
        if self._db is None:
            return
        try:
            write(self._db)
        except Exception as exc:
            logger.warning("Persistence failed (%s): %s", action, exc)

    def _log(self, level: str, category: str, message: str, details: Optional[dict] = None) -> None:
        self._persist(
            "system log",
            lambda db: db.logs.insert_log(self._user_id, level, category, message, details),
        )

    @staticmethod
    def _report(progress: Optional[ProgressCallback], message: str, percent: int) -> None:
        update_pipeline_status(progress=percent, message=message)
        if progress is not None:
            progress(message, percent)

    def _notifications_on(self, settings: UserSettings) -> bool:
        return bool(settings.enable_telegram and self._notifier and self._notifier.enabled)

    # ── Single run ───────────────────────────────────────────────────────

    async def run(
        self,
        symbols: Iterable[SymbolInfo],
        settings: UserSettings,
        cash_balance: float,
        open_symbols: Iterable[str] = (),
        progress: Optional[ProgressCallback] = None,
    ) -> PipelineResult:
        """Analyze every symbol once and act on the strong signals.

        Args:
            symbols: Instruments to analyze; duplicates are dropped.
            settings: Thresholds, sizing, and feature switches.
            cash_balance: Simulated cash available at the start.
            open_symbols: Symbols that already have an open position.
            progress: Optional ``(message, percent)`` callback.

        Returns:
            ``PipelineResult`` with everything produced and the final cash.
        """
        unique = dedupe_symbols(symbols)
        open_positions = set(open_symbols)
        result = PipelineResult(cash_balance=cash_balance)

        self._report(progress, f"Starting analysis of {len(unique)} symbol(s)", 10)
        self._log("INFO", "analysis", "Analysis run started", {"symbols": len(unique)})

        if not unique:
            self._report(progress, "Nothing to analyze", 100)
            return result

        quotes = await self._market.get_quotes(unique)
        self._report(progress, "Prices fetched", 20)

        broker = None
        for index, (info, quote) in enumerate(zip(unique, quotes), start=1):
            candles = None
            if settings.fetch_history:
                candles = await self._market.get_candles(
                    info.symbol, "1day", settings.history_size, info.market,
                )

            signal = await self._synthesizer.analyze(
                info.symbol,
                info.name,
                info.market,
                quote.price,
                candles=candles,
                data_source=quote.source,
            )
            score = evaluate(signal, settings.min_signal_score)
            result.signals.append(signal)
            result.scores.append(score)
            self._persist("save signal", lambda db: db.signals.insert_signal(signal, self._user_id))

            if score.passed and self._notifications_on(settings):
                if await self._notifier.send_signal(signal, score):
                    score.mark_delivered()
            self._persist("save score", lambda db: db.signals.insert_score(score, self._user_id))

            if self._should_trade(signal, score, open_positions):
                broker = await self._execute(signal, settings, result, open_positions, broker)

            percent = 20 + int(index / len(unique) * 75)
            self._report(progress, f"Analyzed {info.symbol} ({index}/{len(unique)})", percent)

        self._log(
            "INFO",
            "analysis",
            "Analysis run finished",
            {
                "signals": len(result.signals),
                "strong": result.strong_signals,
                "delivered": result.delivered_signals,
                "trades": len(result.simulated_trades),
                "cash_balance": result.cash_balance,
            },
        )
        self._report(progress, "Analysis complete", 100)
        logger.info(
            "Run complete: %d signal(s), %d strong, %d trade(s), cash $%.2f",
            len(result.signals), result.strong_signals,
            len(result.simulated_trades), result.cash_balance,
        )
        return result

    @staticmethod
    def _should_trade(signal: Signal, score: EvaluationScore, open_positions: set[str]) -> bool:
        if not score.passed or signal.direction == "HOLD":
            return False
        if signal.symbol in open_positions:
            logger.info("%s skipped — position already open", signal.symbol)
            return False
        return True

    async def _execute(
        self,
        signal: Signal,
        settings: UserSettings,
        result: PipelineResult,
        open_positions: set[str],
        broker,
    ):
        """Book the simulated trade and forward it to the broker.

        Returns the broker client so one instance serves the whole run.
        """
        quantity = calculate_quantity(result.cash_balance, settings.max_position_pct, signal.price)
        if quantity < 1:
            logger.info(
                "%s skipped — cash $%.2f buys no whole unit at $%.2f",
                signal.symbol, result.cash_balance, signal.price,
            )
            self._log("INFO", "trade", f"{signal.symbol} skipped: quantity below one unit")
            return broker

        total = round(quantity * signal.price, 2)
        sim_trade = SimulatorTrade(
            user_id=self._user_id,
            symbol=signal.symbol,
            name=signal.name,
            market=signal.market,
            side=signal.direction,
            quantity=quantity,
            price=signal.price,
            total=total,
            signal_id=signal.id,
        )
        if signal.direction == "BUY":
            result.cash_balance -= total
        else:
            result.cash_balance += total
        open_positions.add(signal.symbol)
        result.simulated_trades.append(sim_trade)
        self._persist("save simulator trade", lambda db: db.trades.insert_simulator_trade(sim_trade))
        self._log(
            "INFO", "trade",
            f"Simulated {signal.direction} {quantity} {signal.symbol} @ {signal.price:.2f}",
        )

        real_trade, broker = await self._forward_real_trade(
            signal, quantity, total, settings, broker,
        )
        result.real_trades.append(real_trade)
        self._persist("save real trade", lambda db: db.trades.insert_real_trade(real_trade))

        if self._notifications_on(settings):
            await self._notifier.send_trade(sim_trade, signal)
            if real_trade.status not in ("SIMULATED", "FAILED"):
                await self._notifier.send_trade(real_trade, signal)
        return broker

    async def _forward_real_trade(
        self,
        signal: Signal,
        quantity: int,
        total: float,
        settings: UserSettings,
        broker,
    ):
        def _record(status: str, **extra) -> RealTrade:
            return RealTrade(
                user_id=self._user_id,
                symbol=signal.symbol,
                side=signal.direction,
                quantity=quantity,
                price=signal.price,
                total=total,
                status=status,
                signal_id=signal.id,
                **extra,
            )

        if not settings.enable_real_trading or not settings.has_alpaca_credentials:
            return _record("SIMULATED"), broker

        try:
            if broker is None:
                broker = self._broker_factory(settings)
            order = await broker.place_order(
                OrderRequest(symbol=signal.symbol, qty=quantity, side=signal.direction.lower())
            )
        except Exception as exc:
            logger.warning("Broker order for %s failed: %s", signal.symbol, exc)
            self._log("ERROR", "trade", f"Broker order for {signal.symbol} failed", {"error": str(exc)})
            return _record("FAILED", error=str(exc)), broker

        return _record(order.status, broker_order_id=order.order_id), broker

    # ── Symbol universe ──────────────────────────────────────────────────

    def load_symbols(self, scope: str) -> list[SymbolInfo]:
        """Resolve *scope* to a symbol list.

        ``WATCHLIST`` needs persistence; ``US``/``TR``/``GLOBAL`` read the
        stock catalogue and fall back to the built-in universe when it is
        empty or persistence is absent.

        Raises:
            PipelineError: Unknown scope, failed load, or zero symbols.
        """
        scope = scope.upper()
        if scope not in SCOPES:
            raise PipelineError(f"Unknown scope: {scope}")

        try:
            if scope == "WATCHLIST":
                if self._db is None:
                    raise PipelineError("Watchlist requires persistence")
                symbols = self._db.watchlist.list_symbols(self._user_id)
            else:
                market = None if scope == "GLOBAL" else scope
                symbols = self._db.stocks.list_stocks(market) if self._db is not None else []
                if not symbols:
                    symbols = list(DEFAULT_SYMBOLS[market]) if market else all_default_symbols()
        except PipelineError:
            raise
        except Exception as exc:
            raise PipelineError(f"Could not load symbols for {scope}: {exc}") from exc

        if not symbols:
            raise PipelineError(f"No symbols to analyze for {scope}")
        return symbols

    async def run_scope(
        self,
        scope: str,
        settings: UserSettings,
        cash_balance: float,
        open_symbols: Optional[Iterable[str]] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> PipelineResult:
        """Load the universe for *scope*, then ``run`` it.

        Open positions are read from persistence when *open_symbols* is not
        given.
        """
        symbols = self.load_symbols(scope)
        if open_symbols is None:
            open_symbols = set()
            if self._db is not None:
                try:
                    open_symbols = self._db.trades.get_open_symbols(self._user_id)
                except Exception as exc:
                    logger.warning("Could not load open positions: %s", exc)
        update_pipeline_status(scope=scope.upper())
        return await self.run(symbols, settings, cash_balance, open_symbols, progress)

    # ── Automation loop ──────────────────────────────────────────────────

    def stop(self) -> None:
        """Signal the loop to stop after the current cycle."""
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def run_loop(
        self,
        scope: str,
        settings: UserSettings,
        cash_balance: float,
        interval_seconds: Optional[float] = None,
        max_cycles: int = 0,
    ) -> list[dict]:
        """Run ``run_scope`` periodically until stopped.

        Args:
            scope: Symbol universe, see ``SCOPES``.
            settings: Settings for every cycle.
            cash_balance: Starting simulated cash; carried across cycles.
            interval_seconds: Pause between cycles.  Defaults to
                ``settings.analysis_interval_minutes``.
            max_cycles: Stop after this many cycles (0 = unlimited).

        Returns:
            List of per-cycle summary dicts.
        """
        if interval_seconds is None:
            interval_seconds = settings.analysis_interval_minutes * 60
        self._running = True
        update_pipeline_status(
            running=True,
            started_at=datetime.now(timezone.utc).isoformat(),
        )
        results: list[dict] = []
        cycle = 0

        while self._running:
            cycle += 1
            self._cycle_count += 1
            try:
                result = await self.run_scope(scope, settings, cash_balance)
                cash_balance = result.cash_balance
                summary = {
                    "cycle": cycle,
                    "status": "ok",
                    "signals": len(result.signals),
                    "strong": result.strong_signals,
                    "delivered": result.delivered_signals,
                    "trades": len(result.simulated_trades),
                    "average_score": round(result.average_score, 1),
                    "cash_balance": cash_balance,
                }
                results.append(summary)
                update_pipeline_status(
                    cycle_count=self._cycle_count,
                    last_run_at=datetime.now(timezone.utc).isoformat(),
                    last_result=summary,
                    last_error=None,
                )
                logger.info("Cycle %d: %d strong signal(s)", cycle, result.strong_signals)
                if self._notifications_on(settings):
                    await self._notifier.send_status_update(
                        len(result.signals),
                        result.strong_signals,
                        result.delivered_signals,
                        result.average_score,
                        True,
                    )
            except Exception as exc:
                logger.error("Cycle %d error: %s", cycle, exc)
                results.append({"cycle": cycle, "status": "error", "reason": str(exc)})
                update_pipeline_status(
                    cycle_count=self._cycle_count,
                    last_run_at=datetime.now(timezone.utc).isoformat(),
                    last_error=str(exc),
                )
                self._log("ERROR", "automation", f"Cycle {cycle} failed", {"error": str(exc)})
                if self._notifications_on(settings):
                    await self._notifier.send_status_update(0, 0, 0, 0.0, False, str(exc))

            if max_cycles > 0 and cycle >= max_cycles:
                break

            # Interruptible sleep — checks _running every second
            for _ in range(int(interval_seconds)):
                if not self._running:
                    break
                await asyncio.sleep(1)

        self._running = False
        update_pipeline_status(running=False)
        return results
