"""
Backtest Metrics Engine - Folds scaled trades into an equity curve and
summary statistics.
"""
from __future__ import annotations

import math
from typing import Iterable, Mapping, Sequence

from loguru import logger

from updown.analytics.accumulators import DrawdownTracker, MonthlyReturnBuilder, TradeTally
from updown.analytics.returns import compute_cagr
from updown.analytics.scaling import DEFAULT_BET_SIZE, scale_trade
from updown.analytics.window import PerformanceWindow, performance_window
from updown.data.rows import is_iso_date, normalize_row, parse_utc_timestamp
from updown.models import (
    AddTrigger,
    BacktestDataset,
    MetricsResult,
    NormalizedTrade,
    ScaledTrade,
    TradeLogEntry,
)

DEFAULT_STARTING_EQUITY = 10000.0


def compute_backtest_metrics(
    label: str,
    rows: Iterable[Mapping[str, str]],
    pnl_column: str,
    starting_equity: float = DEFAULT_STARTING_EQUITY,
    target_bet_size: float = DEFAULT_BET_SIZE,
    *,
    window: PerformanceWindow | None = None,
) -> MetricsResult:
    """
    Compute equity curve, drawdown, trade and monthly statistics for a trade log.

    Rows are ordered by (resolution date, asset), restricted to the
    performance window, rescaled to the target bet size and walked once.
    Rows whose scaled P&L is not finite are left out of the walk but still
    appear in the trade log.

    Args:
        label: Strategy label
        rows: Raw trade-log rows
        pnl_column: Aggregate P&L column used by the scaling fallback
        starting_equity: Equity before the first trade
        target_bet_size: Base stake every trade is rescaled to
        window: Performance window (defaults to 2025-01-01 through today UTC)

    Returns:
        MetricsResult for the bounded, rescaled trade sequence
    """
    window = window or performance_window()
    trades = [normalize_row(row, pnl_column, index) for index, row in enumerate(rows)]
    trades.sort(key=lambda t: (t.resolution_date, t.asset))
    bounded = [
        t for t in trades
        if is_iso_date(t.resolution_date) and window.contains(t.resolution_date)
    ]
    scaled = [(t, scale_trade(t, target_bet_size)) for t in bounded]

    running_equity = starting_equity
    drawdown = DrawdownTracker(peak=starting_equity, peak_date=window.start_iso)
    tally = TradeTally()
    monthly = MonthlyReturnBuilder()
    equity: list[float] = []
    labels: list[str] = []
    drawdown_pct_series: list[float] = []
    add_trigger_pattern: list[AddTrigger] = []

    for trade, scaled_trade in scaled:
        pnl = scaled_trade.pnl_usd
        if not math.isfinite(pnl):
            continue
        add_trigger_pattern.append(
            AddTrigger(add_1230=trade.add_1230.triggered, add_1430=trade.add_1430.triggered)
        )

        monthly.add(trade.resolution_date, running_equity, pnl)
        running_equity += pnl
        drawdown_pct = drawdown.update(running_equity, trade.resolution_date)
        tally.add(pnl)

        labels.append(trade.resolution_date)
        equity.append(running_equity)
        drawdown_pct_series.append(-drawdown_pct)

    ending_equity = equity[-1] if equity else starting_equity
    first_date = bounded[0].resolution_date if bounded else window.start_iso
    last_date = bounded[-1].resolution_date if bounded else window.end_iso

    logger.debug(
        f"{label}: {len(bounded)} rows in window, {tally.trades} contributing trades, "
        f"ending equity {ending_equity:,.2f}"
    )

    return MetricsResult(
        label=label,
        starting_equity=starting_equity,
        bet_size_usd=target_bet_size,
        trades=tally.trades,
        wins=tally.wins,
        losses=tally.losses,
        net_pnl=tally.net_pnl,
        profit_factor=tally.profit_factor,
        win_rate_pct=tally.win_rate_pct,
        max_drawdown_usd=drawdown.max_drawdown_usd,
        max_drawdown_pct=drawdown.max_drawdown_pct,
        max_dd_start_date=drawdown.start_date,
        max_dd_end_date=drawdown.end_date,
        max_dd_duration_days=drawdown.duration_days,
        ending_equity=ending_equity,
        cagr_pct=compute_cagr(first_date, last_date, starting_equity, ending_equity),
        equity=equity,
        labels=labels,
        drawdown_pct_series=drawdown_pct_series,
        monthly_returns=monthly.finish(),
        trade_log=build_trade_log(scaled),
        add_trigger_pattern=add_trigger_pattern,
        period_start=window.start_iso,
        period_end=last_date,
    )


def build_trade_log(scaled: Sequence[tuple[NormalizedTrade, ScaledTrade]]) -> list[TradeLogEntry]:
    """Trade log entries, most recent first."""
    entries = [
        TradeLogEntry(
            date=trade.resolution_date,
            market=describe_market(trade),
            direction=trade.signal or "-",
            bet_size_usd=scaled_trade.total_stake_usd,
            entry_price=scaled_trade.entry_price,
            result=classify_result(trade, scaled_trade.pnl_usd),
            pnl_usd=scaled_trade.pnl_usd,
        )
        for trade, scaled_trade in scaled
    ]
    entries.sort(key=lambda entry: entry.date, reverse=True)
    return entries


def classify_result(trade: NormalizedTrade, pnl: float) -> str:
    if trade.resolved_label and trade.signal:
        return "Win" if trade.resolved_label.lower() == trade.signal.lower() else "Loss"
    if math.isfinite(pnl):
        return "Win" if pnl >= 0 else "Loss"
    return "Open"


def describe_market(trade: NormalizedTrade) -> str:
    asset = trade.asset.upper()
    raw_date = trade.market_end_time_utc or trade.entry_time_utc
    parsed = parse_utc_timestamp(raw_date)
    if parsed is not None:
        pretty_date = f"{parsed:%B} {parsed.day}, {parsed.year}"
    else:
        pretty_date = raw_date[:10]

    if asset and pretty_date:
        return f"{asset} Up or Down on {pretty_date}"
    return trade.slug or f"{asset} {trade.market_id}".strip() or "Unknown"


def filter_rows_by_asset(rows: Sequence[Mapping[str, str]], asset_filter: str) -> list[Mapping[str, str]]:
    selected = (asset_filter or "both").strip().lower()
    if selected == "both":
        return list(rows)
    return [row for row in rows if str(row.get("asset") or "").strip().lower() == selected]


def compute_backtests(
    datasets: Sequence[BacktestDataset],
    starting_equity: float,
    target_bet_size: float,
    asset_filter: str = "both",
    *,
    window: PerformanceWindow | None = None,
) -> list[MetricsResult]:
    return [
        compute_backtest_metrics(
            dataset.label,
            filter_rows_by_asset(dataset.rows, asset_filter),
            dataset.pnl_column,
            starting_equity,
            target_bet_size,
            window=window,
        )
        for dataset in datasets
    ]
