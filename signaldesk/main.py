"""SignalDesk — application entry point.

Boots the FastAPI internal server and provides the CLI entry point for
one-shot analysis, the periodic automation loop, and API serving.
"""

import logging

from fastapi import FastAPI

from signaldesk.api.routers import router

app = FastAPI(title="SignalDesk Internal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("signaldesk")


@app.get("/health")
async def health():
    return {"status": "ok"}


def warn_if_live(settings) -> bool:
    """Log a prominent warning when real orders would hit a live account.

    Returns ``True`` if real trading is enabled in LIVE mode.
    """
    if settings.enable_real_trading and settings.alpaca_mode == "LIVE":
        logger.warning("LIVE TRADING ENABLED — real orders will be placed!")
        return True
    return False


def build_pipeline(config, persistence):
    """Wire the market-data client, synthesizer, notifier and repos."""
    from signaldesk.market.client import MarketDataClient
    from signaldesk.notify.telegram import TelegramNotifier
    from signaldesk.pipeline import AutomationPipeline
    from signaldesk.strategy.narrative import create_narrative_provider
    from signaldesk.strategy.synthesizer import SignalSynthesizer

    market_data = MarketDataClient(config)
    notifier = None
    if config.telegram_configured:
        notifier = TelegramNotifier(config.telegram_bot_token, config.telegram_chat_id)
    pipeline = AutomationPipeline(
        market_data=market_data,
        synthesizer=SignalSynthesizer(create_narrative_provider(config)),
        notifier=notifier,
        persistence=persistence,
    )
    return pipeline, market_data


def resolve_settings(config, persistence):
    """Stored settings, with brokerage credentials from the environment as fallback."""
    from dataclasses import replace

    settings = persistence.settings.get("local")
    if not settings.has_alpaca_credentials and config.alpaca_configured:
        settings = replace(
            settings,
            alpaca_api_key=config.alpaca_api_key,
            alpaca_secret_key=config.alpaca_secret_key,
            alpaca_mode=config.alpaca_mode,
        )
    return settings


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse
    import asyncio

    from signaldesk.api.routers import configure_routers
    from signaldesk.config import load_config
    from signaldesk.market.models import all_default_symbols
    from signaldesk.pipeline import SCOPES
    from signaldesk.repos.persistence import Persistence

    parser = argparse.ArgumentParser(description="SignalDesk market analysis and automation")
    parser.add_argument(
        "--scope",
        choices=SCOPES,
        default="WATCHLIST",
        help="Symbol universe to analyze (default: WATCHLIST)",
    )
    parser.add_argument("--once", action="store_true", help="Run a single analysis pass and exit")
    parser.add_argument(
        "--cycles",
        type=int,
        default=0,
        help="Stop the automation loop after N cycles (0 = unlimited)",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Serve the internal API alongside the automation loop",
    )
    parser.add_argument(
        "--cash",
        type=float,
        default=None,
        help="Starting simulated cash (default: simulator_balance setting)",
    )
    args = parser.parse_args()

    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    persistence = Persistence.from_db_path(config.db_path)
    if not persistence.stocks.list_stocks():
        persistence.stocks.upsert_stocks(all_default_symbols())

    settings = resolve_settings(config, persistence)
    warn_if_live(settings)
    cash = args.cash if args.cash is not None else settings.simulator_balance

    pipeline, market_data = build_pipeline(config, persistence)
    configure_routers(persistence=persistence, market_data=market_data)

    if not config.market_data_configured:
        logger.warning("TWELVE_DATA_API_KEY not set — running on mock market data")

    if args.once:
        asyncio.run(_run_once(pipeline, market_data, args.scope, settings, cash))
    elif args.serve:
        asyncio.run(
            _run_with_server(pipeline, args.scope, settings, cash, args.cycles, config.health_port)
        )
    else:
        asyncio.run(pipeline.run_loop(args.scope, settings, cash, max_cycles=args.cycles))


async def _run_once(pipeline, market_data, scope: str, settings, cash: float) -> None:
    from signaldesk.cli.dashboard import print_summary

    def _progress(message: str, percent: int) -> None:
        logger.info("[%3d%%] %s", percent, message)

    result = await pipeline.run_scope(scope, settings, cash, progress=_progress)
    print_summary(result, market_data.data_source)


async def _run_with_server(pipeline, scope: str, settings, cash: float, cycles: int, port: int) -> None:
    """Start the API server and the automation loop concurrently."""
    import asyncio

    import uvicorn

    uvi_config = uvicorn.Config(app, host="0.0.0.0", port=port, log_level="info")
    server = uvicorn.Server(uvi_config)

    logger.info("Internal API available at http://localhost:%d", port)
    results = await asyncio.gather(
        server.serve(),
        pipeline.run_loop(scope, settings, cash, max_cycles=cycles),
        return_exceptions=True,
    )
    logger.info("SignalDesk stopped. Results: %s", results)


if __name__ == "__main__":
    _run_cli()
