from typing import Literal

from pydantic import BaseModel


class MonteCarloSummary(BaseModel):
    median_return_pct: float = float("nan")
    p05_return_pct: float = float("nan")
    p95_return_pct: float = float("nan")
    probability_loss_pct: float = float("nan")


class McFanBands(BaseModel):
    """Percentile equity paths for the Monte-Carlo fan chart."""

    trade_numbers: list[float] = []
    p1: list[float] = []
    p5: list[float] = []
    p25: list[float] = []
    p50: list[float] = []
    p75: list[float] = []
    p95: list[float] = []


class PathWindowStats(BaseModel):
    path_key: str
    start_equity: float = float("nan")
    end_equity: float = float("nan")
    return_pct: float = float("nan")
    max_drawdown_pct: float = float("nan")
    cagr_pct: float = float("nan")
    days_used: int = 0
    status: Literal["ok", "invalid_range", "no_data"] = "ok"
