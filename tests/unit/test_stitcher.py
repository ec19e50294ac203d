from datetime import date, timedelta

import pytest

from updown.analytics.metrics import compute_backtest_metrics
from updown.analytics.stitcher import (
    SCENARIO_LABELS,
    BackfillTemplate,
    add_trigger_at,
    build_backfill_template,
    build_scenarios,
    stitch_backtest_with_mc_backfill,
    synthesize_backfill_trade,
    underwater_series,
)
from updown.analytics.window import PerformanceWindow
from updown.models import AddTrigger, EquityPoint, Scenario


@pytest.fixture
def window():
    return PerformanceWindow(start=date(2025, 1, 1), end=date(2025, 1, 20))


@pytest.fixture
def strategy(make_row, window):
    rows = [
        make_row("2025-01-10", 50.0, entry_price=0.5),
        make_row("2025-01-12", -20.0, entry_price=0.6),
    ]
    return compute_backtest_metrics("Hist", rows, "new_total_pnl_usd", 10000.0, 100.0, window=window)


@pytest.fixture
def mc_series():
    # +10, +20, -500, then +10 per day through 2025-01-15
    equities = [10000.0, 10010.0, 10030.0, 9530.0]
    while len(equities) < 15:
        equities.append(equities[-1] + 10.0)
    return [
        EquityPoint(date=date(2025, 1, 1) + timedelta(days=i), equity=value)
        for i, value in enumerate(equities)
    ]


def test_add_trigger_cycles_through_pattern():
    a = AddTrigger(add_1230=True)
    b = AddTrigger(add_1430=True)
    assert add_trigger_at([a, b], 0) is a
    assert add_trigger_at([a, b], 1) is b
    assert add_trigger_at([a, b], 2) is a
    assert add_trigger_at([], 5) is None


def test_synthetic_trade_clamps_loss_to_bet():
    template = BackfillTemplate(bet_size_usd=100.0, entry_price=0.55)
    trade = synthesize_backfill_trade(
        "2025-01-04", -200.0, AddTrigger(add_1230=True, add_1430=True), template, "MC"
    )
    assert trade.bet_size_usd == pytest.approx(140.0)
    assert trade.pnl_usd == pytest.approx(-140.0)
    assert trade.result == "Loss"
    assert trade.direction == "Down"
    assert trade.entry_price == 0.55
    assert trade.synthetic is True
    assert trade.market == "MC Backfill (MC)"


def test_synthetic_win_implies_entry_price():
    template = BackfillTemplate(bet_size_usd=100.0, entry_price=0.55)
    trade = synthesize_backfill_trade("2025-01-02", 14.0, AddTrigger(add_1230=True), template, "MC")
    assert trade.bet_size_usd == pytest.approx(120.0)
    assert trade.pnl_usd == pytest.approx(16.8)
    assert trade.entry_price == pytest.approx(120.0 / 136.8)
    assert trade.result == "Win"


def test_backfill_template(strategy):
    template = build_backfill_template(strategy, 0.5)
    assert template.bet_size_usd == 1.0
    assert template.entry_price == pytest.approx(0.55)


def test_stitched_series_backfills_before_first_trade(strategy, mc_series, window):
    result = stitch_backtest_with_mc_backfill(strategy, mc_series, "MC", bet_size=100.0, window=window)

    assert result.labels[0] == "2025-01-01"
    assert result.equity[0] == strategy.starting_equity

    synthetic = [t for t in result.trade_log if t.synthetic]
    assert len(synthetic) == 8
    assert all(t.date < "2025-01-10" for t in synthetic)

    day_before = max(i for i, label in enumerate(result.labels) if label == "2025-01-09")
    expected = strategy.starting_equity + sum(t.pnl_usd for t in synthetic)
    assert result.equity[day_before] == pytest.approx(expected)
    assert expected == pytest.approx(10000.0 + 10 + 20 - 100 + 50)


def test_stitched_result_overlays_trade_counts(strategy, mc_series, window):
    result = stitch_backtest_with_mc_backfill(strategy, mc_series, "MC", bet_size=100.0, window=window)

    assert result.label == "Hist + MC"
    assert result.top_stats_label == "MC"
    assert result.trades == 10
    assert result.wins == 8
    assert result.losses == 2
    assert result.profit_factor == pytest.approx(130.0 / 120.0)
    assert result.ending_equity == pytest.approx(9980.0 + 50.0 - 20.0)
    assert result.period_start == "2025-01-01"
    assert result.period_end == "2025-01-12"
    assert [t.date for t in result.trade_log] == sorted((t.date for t in result.trade_log), reverse=True)
    assert len(result.drawdown_pct_series) == len(result.equity)


def test_short_mc_series_returns_relabeled_strategy(strategy, window):
    result = stitch_backtest_with_mc_backfill(
        strategy, [EquityPoint(date=date(2025, 1, 1), equity=1.0)], "MC", bet_size=100.0, window=window
    )
    assert result.label == "Hist + MC"
    assert result.trades == strategy.trades
    assert result.equity == strategy.equity


def test_empty_strategy_gets_no_backfill(mc_series, window):
    empty = compute_backtest_metrics("Empty", [], "new_total_pnl_usd", window=window)
    result = stitch_backtest_with_mc_backfill(empty, mc_series, "MC", bet_size=100.0, window=window)
    assert result.trade_log == []
    assert result.ending_equity == empty.starting_equity


def test_underwater_series():
    assert underwater_series([100.0, 110.0, 99.0, 120.0]) == pytest.approx([0.0, 0.0, -10.0, 0.0])


def test_build_scenarios(strategy, window):
    path_rows = [
        {
            "trade_number": str(step),
            "equity_p1_path": str(10000 - 5 * step),
            "equity_p5_path": str(10000 + step),
            "equity_p95_path": str(10000 + 9 * step),
        }
        for step in range(1, 15)
    ]
    scenarios = build_scenarios(strategy, path_rows, bet_size=100.0, window=window)

    assert set(scenarios) == {Scenario.HISTORICAL, Scenario.MC_P1, Scenario.MC_P50, Scenario.MC_P95}
    assert scenarios[Scenario.HISTORICAL] is strategy
    for scenario in (Scenario.MC_P1, Scenario.MC_P50, Scenario.MC_P95):
        assert scenarios[scenario].top_stats_label == SCENARIO_LABELS[scenario]
    assert scenarios[Scenario.MC_P95].ending_equity > scenarios[Scenario.MC_P1].ending_equity
