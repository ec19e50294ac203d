from updown.analytics.equity_stats import build_equity_stats
from updown.analytics.metrics import compute_backtest_metrics, compute_backtests
from updown.analytics.scaling import scale_row, scale_trade
from updown.analytics.stitcher import build_scenarios, stitch_backtest_with_mc_backfill
from updown.analytics.window import PerformanceWindow, performance_window

__all__ = [
    "build_equity_stats",
    "compute_backtest_metrics",
    "compute_backtests",
    "scale_row",
    "scale_trade",
    "build_scenarios",
    "stitch_backtest_with_mc_backfill",
    "PerformanceWindow",
    "performance_window",
]
