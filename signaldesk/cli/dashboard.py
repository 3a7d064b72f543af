"""CLI dashboard — prints pipeline results to the console."""

from signaldesk.models.trades import PipelineResult


def print_summary(result: PipelineResult, data_source: str = "live") -> str:
    """Format and print one pipeline run.

    Args:
        result: The run to summarise.
        data_source: ``"live"`` or ``"mock"``; mock runs are flagged.

    Returns:
        The formatted string (also printed to stdout).
    """
    lines = [
        "──────────────── SignalDesk Run ────────────────",
        f"  Data source:     {data_source}{'  (degraded)' if data_source == 'mock' else ''}",
        f"  Signals:         {len(result.signals)}",
        f"  Strong signals:  {result.strong_signals}",
        f"  Delivered:       {result.delivered_signals}",
        f"  Average score:   {result.average_score:.1f}",
        f"  Sim. trades:     {len(result.simulated_trades)}",
        f"  Real trades:     {len(result.real_trades)}",
        f"  Cash balance:    ${result.cash_balance:,.2f}",
    ]

    if result.signals:
        lines.append("  ── Signals ─────────────────────────────────")
        for signal, score in zip(result.signals, result.scores):
            mark = "✔" if score.passed else " "
            lines.append(
                f"  {mark} {signal.symbol:<10} {signal.direction:<4} "
                f"conf {signal.confidence:5.1f}  score {score.total_score:5.1f}  "
                f"${signal.price:,.2f}"
            )

    if result.simulated_trades:
        lines.append("  ── Trades ──────────────────────────────────")
        for trade, real in zip(result.simulated_trades, result.real_trades):
            lines.append(
                f"  {trade.side:<4} {trade.quantity:>6} {trade.symbol:<10} "
                f"${trade.total:,.2f}  [{real.status}]"
            )

    lines.append("────────────────────────────────────────────────")
    output = "\n".join(lines)
    print(output)
    return output


def print_status(status: dict) -> str:
    """Format and print the automation status dict from the API layer."""
    last = status.get("last_result") or {}
    lines = [
        "──────────────── SignalDesk Status ─────────────",
        f"  Running:         {status.get('running', False)}",
        f"  Scope:           {status.get('scope') or 'N/A'}",
        f"  Cycles:          {status.get('cycle_count', 0)}",
        f"  Last run:        {status.get('last_run_at') or 'never'}",
        f"  Strong signals:  {last.get('strong', 'N/A')}",
        f"  Last error:      {status.get('last_error') or 'none'}",
        "────────────────────────────────────────────────",
    ]
    output = "\n".join(lines)
    print(output)
    return output
