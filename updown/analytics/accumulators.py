"""
Forward-pass accumulators shared by the backtest engine and the
equity-series statistics engine.

Each accumulator holds the order-dependent state of one concern and is
fed one observation at a time, so both engines walk their inputs in a
single pass with identical semantics.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field

from updown.analytics.window import day_diff, month_key
from updown.models import MonthlyReturn


@dataclass
class DrawdownTracker:
    """Running peak and maximum peak-to-trough drawdown.

    Equity equal to the peak refreshes the peak date. The maximum is only
    replaced by a strictly larger percent, so the first trough to reach a
    given depth keeps the record.
    """

    peak: float
    peak_date: str
    max_drawdown_usd: float = 0.0
    max_drawdown_pct: float = 0.0
    start_date: str = ""
    end_date: str = ""
    duration_days: float = math.nan

    def update(self, equity: float, date_iso: str) -> float:
        """Feed the equity after one step; returns the current drawdown percent."""
        if equity >= self.peak:
            self.peak = equity
            self.peak_date = date_iso or self.peak_date

        drawdown_usd = self.peak - equity
        drawdown_pct = drawdown_usd / self.peak * 100 if self.peak > 0 else 0.0
        if drawdown_pct > self.max_drawdown_pct:
            self.max_drawdown_pct = drawdown_pct
            self.max_drawdown_usd = drawdown_usd
            self.start_date = self.peak_date
            self.end_date = date_iso
            self.duration_days = day_diff(self.start_date, self.end_date)
        return drawdown_pct


@dataclass
class TradeTally:
    wins: int = 0
    losses: int = 0
    gross_profit: float = 0.0
    gross_loss_abs: float = 0.0

    def add(self, pnl: float) -> None:
        if pnl >= 0:
            self.wins += 1
            self.gross_profit += pnl
        else:
            self.losses += 1
            self.gross_loss_abs += abs(pnl)

    @property
    def trades(self) -> int:
        return self.wins + self.losses

    @property
    def net_pnl(self) -> float:
        return self.gross_profit - self.gross_loss_abs

    @property
    def profit_factor(self) -> float:
        return self.gross_profit / self.gross_loss_abs if self.gross_loss_abs > 0 else math.nan

    @property
    def win_rate_pct(self) -> float:
        return self.wins / self.trades * 100 if self.trades > 0 else math.nan


@dataclass
class MonthlyReturnBuilder:
    """Buckets P&L by calendar month of the observation date."""

    current_month: str = ""
    month_start_equity: float = math.nan
    month_pnl: float = 0.0
    months: list[MonthlyReturn] = field(default_factory=list)

    def add(self, date_iso: str, equity_before: float, pnl: float) -> None:
        key = month_key(date_iso)
        if not self.current_month:
            self._open(key, equity_before)
        elif key != self.current_month:
            self._flush()
            self._open(key, equity_before)
        self.month_pnl += pnl

    def finish(self) -> list[MonthlyReturn]:
        if self.current_month:
            self._flush()
            self.current_month = ""
        return self.months

    def _open(self, key: str, equity_before: float) -> None:
        self.current_month = key
        self.month_start_equity = equity_before
        self.month_pnl = 0.0

    def _flush(self) -> None:
        start = self.month_start_equity
        self.months.append(
            MonthlyReturn(
                month_key=self.current_month,
                start_equity=start,
                pnl=self.month_pnl,
                return_pct=self.month_pnl / start * 100 if start != 0 else math.nan,
            )
        )
