"""
Scenario Stitcher - Blends a historical backtest with a Monte-Carlo path.

Days before the first historical trade are backfilled with the simulated
path's daily deltas, sized like the strategy's own trades; from the first
historical trade onwards only real trades move the stitched equity.
"""
from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Mapping, Sequence

from loguru import logger

from updown.analytics.accumulators import TradeTally
from updown.analytics.equity_stats import build_equity_stats
from updown.analytics.monte_carlo import (
    build_mc_daily_deltas,
    mc_series_from_path_midpoint,
    mc_series_from_paths,
)
from updown.analytics.window import PerformanceWindow, performance_window
from updown.data.rows import is_iso_date
from updown.models import AddTrigger, EquityPoint, MetricsResult, Scenario, TradeLogEntry

MIN_ENTRY_PRICE = 0.01
MAX_ENTRY_PRICE = 0.99

SCENARIO_LABELS = {
    Scenario.MC_P95: "95% Percentile MC Sim (Optimistic)",
    Scenario.MC_P50: "50% Percentile MC Sim (Middle Ground)",
    Scenario.MC_P1: "1% Percentile MC Sim (Pessimistic)",
}


@dataclass(frozen=True)
class BackfillTemplate:
    bet_size_usd: float
    entry_price: float


def _clamp_price(price: float) -> float:
    return min(max(price, MIN_ENTRY_PRICE), MAX_ENTRY_PRICE)


def build_backfill_template(strategy: MetricsResult, bet_size: float) -> BackfillTemplate:
    """Synthetic trades use the configured bet size and the historical mean entry price."""
    prices = [t.entry_price for t in strategy.trade_log if math.isfinite(t.entry_price)]
    avg_entry_price = sum(prices) / len(prices) if prices else 0.5
    return BackfillTemplate(bet_size_usd=max(bet_size, 1.0), entry_price=_clamp_price(avg_entry_price))


def add_trigger_at(pattern: Sequence[AddTrigger], synthetic_index: int) -> AddTrigger | None:
    """Add-trigger of the n-th synthetic trade, cycling through the historical pattern."""
    if not pattern:
        return None
    return pattern[synthetic_index % len(pattern)]


def synthesize_backfill_trade(
    day_iso: str,
    raw_delta: float,
    trigger: AddTrigger | None,
    template: BackfillTemplate,
    source_label: str,
) -> TradeLogEntry:
    """
    Turn one simulated daily delta into a trade-log entry.

    The delta and bet are scaled by the add-leg stake multiplier and the
    loss is capped at the bet. Winning days imply an entry price of
    bet / (bet + pnl), the price at which the payout equals that pnl.
    """
    multiplier = trigger.stake_multiplier if trigger is not None else 1.0
    bet_size_usd = template.bet_size_usd * multiplier
    delta = max(raw_delta * multiplier, -bet_size_usd)

    if delta >= 0 and bet_size_usd > 0:
        entry_price = _clamp_price(bet_size_usd / (bet_size_usd + delta))
    else:
        entry_price = template.entry_price

    return TradeLogEntry(
        date=day_iso,
        market=f"MC Backfill ({source_label})",
        direction="Up" if delta >= 0 else "Down",
        bet_size_usd=bet_size_usd,
        entry_price=entry_price,
        result="Win" if delta >= 0 else "Loss",
        pnl_usd=delta,
        synthetic=True,
    )


def stitch_backtest_with_mc_backfill(
    strategy: MetricsResult,
    mc_series: Sequence[EquityPoint],
    source_label: str,
    *,
    bet_size: float,
    window: PerformanceWindow | None = None,
) -> MetricsResult:
    """
    Build one blended scenario from a backtest and a simulated equity path.

    Args:
        strategy: Historical backtest result
        mc_series: Simulated equity path, one point per day
        source_label: Scenario label, e.g. "1% Percentile MC Sim (Pessimistic)"
        bet_size: Configured base bet size for synthetic trades
        window: Performance window walked day by day

    Returns:
        MetricsResult over the stitched equity series and combined trade log
    """
    label = f"{strategy.label} + {source_label}"
    if len(mc_series) < 2:
        return strategy.model_copy(update={"label": label, "top_stats_label": source_label})

    window = window or performance_window()
    mc_delta_by_date = build_mc_daily_deltas(mc_series)

    historical_asc = sorted(
        (t for t in strategy.trade_log if is_iso_date(t.date)),
        key=lambda t: t.date,
    )
    first_historical_iso = historical_asc[0].date if historical_asc else None
    historical_by_date: dict[str, list[TradeLogEntry]] = defaultdict(list)
    for trade in historical_asc:
        historical_by_date[trade.date].append(trade)

    template = build_backfill_template(strategy, bet_size)
    stitched_equity = strategy.starting_equity
    stitched_points = [EquityPoint(date=window.start, equity=stitched_equity)]
    combined_events: list[TradeLogEntry] = []
    synthetic_count = 0

    for day in window.iter_days():
        day_iso = day.isoformat()
        historical_trades = historical_by_date.get(day_iso)

        # Real trades win over simulated deltas on any day that has them.
        if historical_trades:
            for trade in historical_trades:
                if not math.isfinite(trade.pnl_usd):
                    continue
                stitched_equity += trade.pnl_usd
                stitched_points.append(EquityPoint(date=day, equity=stitched_equity))
                combined_events.append(trade)
            continue

        # Backfill only before the first real trade.
        if first_historical_iso is None or day_iso >= first_historical_iso:
            continue
        raw_delta = mc_delta_by_date.get(day_iso)
        if raw_delta is None or not math.isfinite(raw_delta):
            continue

        synthetic = synthesize_backfill_trade(
            day_iso,
            raw_delta,
            add_trigger_at(strategy.add_trigger_pattern, synthetic_count),
            template,
            source_label,
        )
        stitched_equity += synthetic.pnl_usd
        stitched_points.append(EquityPoint(date=day, equity=stitched_equity))
        combined_events.append(synthetic)
        synthetic_count += 1

    stats = build_equity_stats(stitched_points)
    combined_log = sorted(combined_events, key=lambda t: t.date, reverse=True)

    tally = TradeTally()
    for trade in combined_log:
        if math.isfinite(trade.pnl_usd):
            tally.add(trade.pnl_usd)
    wins = sum(1 for t in combined_log if t.result == "Win")
    losses = sum(1 for t in combined_log if t.result == "Loss")
    trades = wins + losses

    labels = [p.date.isoformat() for p in stitched_points]
    logger.debug(
        f"{label}: {synthetic_count} backfill days before "
        f"{first_historical_iso or 'n/a'}, {len(combined_log)} combined trades"
    )

    return strategy.model_copy(
        update={
            **dict(stats),
            "trades": trades,
            "wins": wins,
            "losses": losses,
            "net_pnl": stitched_equity - strategy.starting_equity,
            "ending_equity": stitched_equity,
            "win_rate_pct": wins / trades * 100 if trades > 0 else math.nan,
            "profit_factor": tally.profit_factor,
            "labels": labels,
            "equity": [p.equity for p in stitched_points],
            "drawdown_pct_series": underwater_series([p.equity for p in stitched_points]),
            "period_start": labels[0] if labels else strategy.period_start,
            "period_end": labels[-1] if labels else strategy.period_end,
            "label": label,
            "top_stats_label": source_label,
            "trade_log": combined_log,
        }
    )


def underwater_series(equity: Sequence[float]) -> list[float]:
    """Negative percent distance from the running peak at each point."""
    series = []
    peak = -math.inf
    for value in equity:
        peak = max(peak, value)
        series.append(-((peak - value) / peak * 100) if peak > 0 else 0.0)
    return series


def build_scenarios(
    strategy: MetricsResult,
    mc_path_rows: Sequence[Mapping[str, str]],
    *,
    bet_size: float,
    window: PerformanceWindow | None = None,
) -> dict[Scenario, MetricsResult]:
    """Historical result plus the optimistic, middle and pessimistic blends."""
    series = {
        Scenario.MC_P95: mc_series_from_paths(mc_path_rows, "equity_p95_path"),
        Scenario.MC_P50: mc_series_from_path_midpoint(mc_path_rows, "equity_p5_path", "equity_p95_path"),
        Scenario.MC_P1: mc_series_from_paths(mc_path_rows, "equity_p1_path"),
    }
    scenarios = {Scenario.HISTORICAL: strategy}
    for scenario, mc_series in series.items():
        scenarios[scenario] = stitch_backtest_with_mc_backfill(
            strategy,
            mc_series,
            SCENARIO_LABELS[scenario],
            bet_size=bet_size,
            window=window,
        )
    return scenarios
