"""
Monte-Carlo inputs: simulated percentile paths read from CSV and turned
into dated equity series, daily deltas, fan-chart bands and window stats.
"""
from __future__ import annotations

import math
from datetime import date, timedelta
from typing import Mapping, Sequence

import numpy as np

from updown.analytics.equity_stats import clean_points
from updown.analytics.returns import compute_cagr
from updown.analytics.window import PERFORMANCE_START
from updown.data.rows import to_number
from updown.models import EquityPoint, McFanBands, MonteCarloSummary, PathWindowStats

MC_ANCHOR_DATE = PERFORMANCE_START


def _step_date(anchor: date, step: float) -> date | None:
    """Calendar day of step n (anchor is step 1); None when it falls outside the date range.

    Fractional steps land on the day they fall within, so 1.5 is the anchor day
    and 0.5 the day before.
    """
    try:
        return anchor + timedelta(days=math.floor(step) - 1)
    except (OverflowError, ValueError):
        return None


def mc_series_from_paths(
    rows: Sequence[Mapping[str, str]],
    key: str,
    anchor: date = MC_ANCHOR_DATE,
) -> list[EquityPoint]:
    """Dated equity series from one path column; step n falls on anchor + (n - 1) days."""
    points = []
    for row in rows:
        step = to_number(row.get("trade_number"))
        equity = to_number(row.get(key))
        if not (math.isfinite(step) and math.isfinite(equity)):
            continue
        day = _step_date(anchor, step)
        if day is None:
            continue
        points.append(EquityPoint(date=day, equity=equity))
    return clean_points(points)


def mc_series_from_path_midpoint(
    rows: Sequence[Mapping[str, str]],
    low_key: str,
    high_key: str,
    anchor: date = MC_ANCHOR_DATE,
) -> list[EquityPoint]:
    points = []
    for row in rows:
        step = to_number(row.get("trade_number"))
        low = to_number(row.get(low_key))
        high = to_number(row.get(high_key))
        if not (math.isfinite(step) and math.isfinite(low) and math.isfinite(high)):
            continue
        day = _step_date(anchor, step)
        if day is None:
            continue
        points.append(EquityPoint(date=day, equity=low + (high - low) * 0.5))
    return clean_points(points)


def build_mc_daily_deltas(series: Sequence[EquityPoint]) -> dict[str, float]:
    """Day-over-day equity change keyed by the ISO date of the later point."""
    ordered = clean_points(series)
    deltas: dict[str, float] = {}
    for previous, current in zip(ordered, ordered[1:]):
        delta = current.equity - previous.equity
        if math.isfinite(delta):
            deltas[current.date.isoformat()] = delta
    return deltas


def parse_mc_summary(rows: Sequence[Mapping[str, str]]) -> MonteCarloSummary:
    row = rows[0] if rows else {}
    return MonteCarloSummary(
        median_return_pct=to_number(row.get("median_return_pct")),
        p05_return_pct=to_number(row.get("p05_return_pct")),
        p95_return_pct=to_number(row.get("p95_return_pct")),
        probability_loss_pct=to_number(row.get("probability_loss_pct")),
    )


def build_fan_bands(path_rows: Sequence[Mapping[str, str]]) -> McFanBands:
    """
    Percentile paths for the fan chart.

    The p25, p50 and p75 bands are interpolated linearly between the p5
    and p95 paths; steps where either bound is missing stay NaN.
    """
    p5 = np.array([to_number(r.get("equity_p5_path")) for r in path_rows], dtype=float)
    p95 = np.array([to_number(r.get("equity_p95_path")) for r in path_rows], dtype=float)
    spread = p95 - p5

    return McFanBands(
        trade_numbers=[to_number(r.get("trade_number")) for r in path_rows],
        p1=[to_number(r.get("equity_p1_path")) for r in path_rows],
        p5=p5.tolist(),
        p25=(p5 + 0.25 * spread).tolist(),
        p50=(p5 + 0.5 * spread).tolist(),
        p75=(p5 + 0.75 * spread).tolist(),
        p95=p95.tolist(),
    )


def max_drawdown_pct(values: Sequence[float]) -> float:
    peak = -math.inf
    worst = 0.0
    for value in values:
        if not math.isfinite(value):
            continue
        peak = max(peak, value)
        if peak > 0:
            worst = max(worst, (peak - value) / peak * 100)
    return worst


def compute_path_window_stats(
    percentile_rows: Sequence[Mapping[str, str]],
    path_key: str,
    start: date | None,
    end: date | None,
    anchor: date = MC_ANCHOR_DATE,
) -> PathWindowStats:
    """
    Summarize one percentile path restricted to a date range.

    Args:
        percentile_rows: Rows of the percentile file (``day`` plus percentile columns)
        path_key: Percentile column, e.g. ``p50``
        start: First day included
        end: Last day included
        anchor: Date of day 1

    Returns:
        PathWindowStats with status ``invalid_range`` or ``no_data`` when
        nothing can be computed
    """
    if start is None or end is None or start > end:
        return PathWindowStats(path_key=path_key, status="invalid_range")

    points = []
    for row in percentile_rows:
        day_number = to_number(row.get("day"))
        equity = to_number(row.get(path_key))
        if not (math.isfinite(day_number) and math.isfinite(equity)):
            continue
        day = _step_date(anchor, day_number)
        if day is not None and start <= day <= end:
            points.append(EquityPoint(date=day, equity=equity))

    if not points:
        return PathWindowStats(path_key=path_key, status="no_data")

    start_equity = points[0].equity
    end_equity = points[-1].equity
    cagr_pct = compute_cagr(
        points[0].date.isoformat(), points[-1].date.isoformat(), start_equity, end_equity
    )

    return PathWindowStats(
        path_key=path_key,
        start_equity=start_equity,
        end_equity=end_equity,
        return_pct=(end_equity - start_equity) / start_equity * 100 if start_equity != 0 else math.nan,
        max_drawdown_pct=max_drawdown_pct([p.equity for p in points]),
        cagr_pct=cagr_pct,
        days_used=len(points),
    )
