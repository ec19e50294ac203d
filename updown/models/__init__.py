from updown.models.trade import (
    TradeLeg,
    NormalizedTrade,
    ScalingMethod,
    ScaledTrade,
    AddTrigger,
    TradeLogEntry,
)
from updown.models.backtest import (
    Scenario,
    EquityPoint,
    MonthlyReturn,
    EquityStats,
    MetricsResult,
    BacktestDataset,
)
from updown.models.monte_carlo import MonteCarloSummary, McFanBands, PathWindowStats

__all__ = [
    "TradeLeg",
    "NormalizedTrade",
    "ScalingMethod",
    "ScaledTrade",
    "AddTrigger",
    "TradeLogEntry",
    "Scenario",
    "EquityPoint",
    "MonthlyReturn",
    "EquityStats",
    "MetricsResult",
    "BacktestDataset",
    "MonteCarloSummary",
    "McFanBands",
    "PathWindowStats",
]
