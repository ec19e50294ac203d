"""
Equity-Series Statistics Engine - Re-derives summary statistics from a
sequence of (date, equity) points.

Consecutive point deltas stand in for trade P&L, so the statistics agree
with the backtest engine when fed the equity curve that engine produced.
"""
from __future__ import annotations

from typing import Iterable, Sequence

from updown.analytics.accumulators import DrawdownTracker, MonthlyReturnBuilder, TradeTally
from updown.analytics.returns import compute_cagr
from updown.models import EquityPoint, EquityStats, MonthlyReturn


def clean_points(points: Iterable[EquityPoint | None]) -> list[EquityPoint]:
    """Drop points without a date or with non-finite equity and sort by date."""
    valid = [p for p in points if p is not None and p.is_valid]
    valid.sort(key=lambda p: p.date)
    return valid


def build_monthly_returns_from_points(points: Sequence[EquityPoint]) -> list[MonthlyReturn]:
    monthly = MonthlyReturnBuilder()
    if len(points) < 2:
        return monthly.finish()

    for previous, current in zip(points, points[1:]):
        if not (previous.is_valid and current.is_valid):
            continue
        monthly.add(current.date.isoformat(), previous.equity, current.equity - previous.equity)
    return monthly.finish()


def build_equity_stats(points: Iterable[EquityPoint | None]) -> EquityStats:
    """
    Compute trade, drawdown, CAGR and monthly statistics from equity points.

    Args:
        points: Unordered equity points; invalid entries are ignored

    Returns:
        EquityStats, empty with NaN ratios when fewer than two valid points
    """
    ordered = clean_points(points)
    if len(ordered) < 2:
        return EquityStats()

    start_equity = ordered[0].equity
    drawdown = DrawdownTracker(peak=start_equity, peak_date=ordered[0].date.isoformat())
    tally = TradeTally()

    for previous, current in zip(ordered, ordered[1:]):
        drawdown.update(current.equity, current.date.isoformat())
        tally.add(current.equity - previous.equity)

    period_start = ordered[0].date.isoformat()
    period_end = ordered[-1].date.isoformat()
    ending_equity = ordered[-1].equity

    return EquityStats(
        trades=tally.trades,
        wins=tally.wins,
        losses=tally.losses,
        net_pnl=ending_equity - start_equity,
        max_drawdown_usd=drawdown.max_drawdown_usd,
        max_drawdown_pct=drawdown.max_drawdown_pct,
        max_dd_start_date=drawdown.start_date,
        max_dd_end_date=drawdown.end_date,
        max_dd_duration_days=drawdown.duration_days,
        ending_equity=ending_equity,
        cagr_pct=compute_cagr(period_start, period_end, start_equity, ending_equity),
        win_rate_pct=tally.win_rate_pct,
        profit_factor=tally.profit_factor,
        monthly_returns=build_monthly_returns_from_points(ordered),
        period_start=period_start,
        period_end=period_end,
    )
