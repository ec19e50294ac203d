"""Presentation-facing shapes derived from a MetricsResult."""
from __future__ import annotations

import math
from typing import Optional, Sequence

from pydantic import BaseModel

from updown.analytics.returns import compute_display_return
from updown.models import MetricsResult, MonthlyReturn, TradeLogEntry

TRADE_LOG_PAGE_SIZE = 25
MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


class YearReturns(BaseModel):
    year: str
    months: list[Optional[float]]
    ytd_pct: float


class TradeLogPage(BaseModel):
    page: int
    total_pages: int
    total_rows: int
    rows: list[TradeLogEntry]


class KpiSummary(BaseModel):
    label: str
    return_label: str
    return_pct: float
    max_drawdown_pct: float
    max_drawdown_usd: float
    max_dd_start_date: str
    max_dd_end_date: str
    max_dd_duration_days: float
    trades: int
    wins: int
    win_rate_pct: float
    profitable_months: int
    total_months: int
    profit_factor: float
    starting_equity: float
    ending_equity: float
    net_pnl: float
    net_profit_pct: float


def build_monthly_matrix(monthly_returns: Sequence[MonthlyReturn]) -> list[YearReturns]:
    """
    Arrange monthly buckets into a year-by-month grid.

    Months without trades stay None. YTD is the year's summed P&L over the
    start equity of its first month with data.
    """
    years: dict[str, dict] = {}
    for month in monthly_returns:
        year, _, month_num = month.month_key.partition("-")
        row = years.setdefault(
            year, {"months": [None] * 12, "pnl": 0.0, "start_equity": month.start_equity}
        )
        try:
            index = int(month_num) - 1
        except ValueError:
            index = -1
        if 0 <= index < 12:
            row["months"][index] = month.return_pct
        row["pnl"] += month.pnl

    return [
        YearReturns(
            year=year,
            months=row["months"],
            ytd_pct=row["pnl"] / row["start_equity"] * 100 if row["start_equity"] != 0 else math.nan,
        )
        for year, row in sorted(years.items(), key=lambda item: _year_sort_key(item[0]))
    ]


def _year_sort_key(year: str) -> tuple[int, str]:
    return (int(year), year) if year.isdigit() else (0, year)


def paginate_trade_log(
    trade_log: Sequence[TradeLogEntry],
    page: int = 1,
    page_size: int = TRADE_LOG_PAGE_SIZE,
) -> TradeLogPage:
    total_rows = len(trade_log)
    total_pages = max(math.ceil(total_rows / page_size), 1)
    current = min(max(page, 1), total_pages)
    start = (current - 1) * page_size
    return TradeLogPage(
        page=current,
        total_pages=total_pages,
        total_rows=total_rows,
        rows=list(trade_log[start:start + page_size]),
    )


def build_kpis(result: MetricsResult) -> KpiSummary:
    display = compute_display_return(
        result.period_start,
        result.period_end,
        result.starting_equity,
        result.ending_equity,
    )
    return KpiSummary(
        label=result.label,
        return_label=display.label,
        return_pct=display.value_pct,
        max_drawdown_pct=result.max_drawdown_pct,
        max_drawdown_usd=result.max_drawdown_usd,
        max_dd_start_date=result.max_dd_start_date,
        max_dd_end_date=result.max_dd_end_date,
        max_dd_duration_days=result.max_dd_duration_days,
        trades=result.trades,
        wins=result.wins,
        win_rate_pct=result.win_rate_pct,
        profitable_months=result.profitable_months,
        total_months=len(result.monthly_returns),
        profit_factor=result.profit_factor,
        starting_equity=result.starting_equity,
        ending_equity=result.ending_equity,
        net_pnl=result.net_pnl,
        net_profit_pct=(
            result.net_pnl / result.starting_equity * 100 if result.starting_equity > 0 else math.nan
        ),
    )


def dataset_window(results: Sequence[MetricsResult]) -> tuple[str, str]:
    """Earliest period start and latest period end across results ("-" when unknown)."""
    starts = sorted(r.period_start for r in results if r.period_start)
    ends = sorted(r.period_end for r in results if r.period_end)
    start = starts[0][:10] if starts else "-"
    end = ends[-1][:10] if ends else "-"
    return start, end
