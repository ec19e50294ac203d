from __future__ import annotations

import math
from dataclasses import dataclass

from updown.analytics.window import span_days


@dataclass(frozen=True)
class ReturnDisplay:
    label: str
    value_pct: float


def _compound(growth: float, exponent: float) -> float:
    """growth ** exponent, or inf once the result leaves the float range."""
    try:
        return growth ** exponent
    except OverflowError:
        return math.inf


def compute_cagr(period_start: str, period_end: str, start_equity: float, end_equity: float) -> float:
    """Compound annual growth rate in percent, NaN when growth is not positive."""
    days = span_days(period_start, period_end)
    growth = end_equity / start_equity if start_equity > 0 else math.nan
    if not math.isfinite(growth) or growth <= 0:
        return math.nan
    return (_compound(growth, 365 / days) - 1) * 100


def compute_display_return(
    period_start: str,
    period_end: str,
    start_equity: float,
    end_equity: float,
) -> ReturnDisplay:
    """
    Headline return for display.

    Periods shorter than a year report the simple cumulative change; a year
    or longer reports the compounded annual rate.
    """
    days = span_days(period_start, period_end)
    if not math.isfinite(start_equity) or not math.isfinite(end_equity) or start_equity <= 0:
        return ReturnDisplay(label="Rate of Return", value_pct=math.nan)

    if days < 365:
        cumulative_pct = (end_equity - start_equity) / start_equity * 100
        return ReturnDisplay(label="Cumulative Return", value_pct=cumulative_pct)

    growth = end_equity / start_equity
    if growth <= 0:
        return ReturnDisplay(label="Annualized Return (Compounded)", value_pct=math.nan)
    age_in_years = days / 365
    annualized_pct = (_compound(growth, 1 / age_in_years) - 1) * 100
    return ReturnDisplay(label="Annualized Return (Compounded)", value_pct=annualized_pct)
