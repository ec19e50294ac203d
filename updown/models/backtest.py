"""Result models for backtest metrics, equity statistics and scenarios."""
from __future__ import annotations

import datetime as dt
import math
from enum import Enum
from typing import Optional

from pydantic import BaseModel, computed_field

from updown.models.trade import AddTrigger, TradeLogEntry


class Scenario(str, Enum):
    HISTORICAL = "historical"
    MC_P1 = "mc_p1"
    MC_P50 = "mc_p50"
    MC_P95 = "mc_p95"


class EquityPoint(BaseModel):
    model_config = {"frozen": True}

    date: Optional[dt.date] = None
    equity: float

    @property
    def is_valid(self) -> bool:
        return self.date is not None and math.isfinite(self.equity)


class MonthlyReturn(BaseModel):
    month_key: str
    start_equity: float
    pnl: float
    return_pct: float


class EquityStats(BaseModel):
    """Summary statistics re-derived from an equity point series."""

    trades: int = 0
    wins: int = 0
    losses: int = 0
    net_pnl: float = 0.0
    max_drawdown_usd: float = 0.0
    max_drawdown_pct: float = float("nan")
    max_dd_start_date: str = ""
    max_dd_end_date: str = ""
    max_dd_duration_days: float = float("nan")
    ending_equity: float = float("nan")
    cagr_pct: float = float("nan")
    win_rate_pct: float = float("nan")
    profit_factor: float = float("nan")
    monthly_returns: list[MonthlyReturn] = []
    period_start: str = ""
    period_end: str = ""


class MetricsResult(BaseModel):
    """Aggregate output of the backtest engine or the scenario stitcher."""

    label: str
    starting_equity: float
    bet_size_usd: float
    trades: int = 0
    wins: int = 0
    losses: int = 0
    net_pnl: float = 0.0
    profit_factor: float = float("nan")
    win_rate_pct: float = float("nan")
    max_drawdown_usd: float = 0.0
    max_drawdown_pct: float = 0.0
    max_dd_start_date: str = ""
    max_dd_end_date: str = ""
    max_dd_duration_days: float = float("nan")
    ending_equity: float
    cagr_pct: float = float("nan")
    equity: list[float] = []
    labels: list[str] = []
    drawdown_pct_series: list[float] = []
    monthly_returns: list[MonthlyReturn] = []
    trade_log: list[TradeLogEntry] = []
    add_trigger_pattern: list[AddTrigger] = []
    period_start: str = ""
    period_end: str = ""
    top_stats_label: Optional[str] = None

    @computed_field
    @property
    def profitable_months(self) -> int:
        return sum(1 for month in self.monthly_returns if month.return_pct > 0)

    def equity_points(self, include_start: bool = False) -> list[EquityPoint]:
        """Return the equity curve as dated points.

        With ``include_start`` the starting equity is prepended, dated at the
        first labelled point, so that point-to-point deltas line up one-to-one
        with the trades that produced the curve.
        """
        points = [
            EquityPoint(date=dt.date.fromisoformat(label), equity=value)
            for label, value in zip(self.labels, self.equity)
            if _is_iso(label) and math.isfinite(value)
        ]
        points.sort(key=lambda p: p.date)
        if include_start and points:
            points.insert(0, EquityPoint(date=points[0].date, equity=self.starting_equity))
        return points


def _is_iso(label: str) -> bool:
    if len(label) != 10:
        return False
    try:
        dt.date.fromisoformat(label)
    except ValueError:
        return False
    return True


class BacktestDataset(BaseModel):
    """Parsed trade-log rows of one strategy and its selected P&L column."""

    id: str = ""
    label: str
    rows: list[dict[str, str]]
    pnl_column: str
