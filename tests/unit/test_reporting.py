import math
from datetime import date

import pytest

from updown.analytics.metrics import compute_backtest_metrics
from updown.analytics.reporting import (
    build_kpis,
    build_monthly_matrix,
    dataset_window,
    paginate_trade_log,
)
from updown.analytics.returns import compute_cagr, compute_display_return
from updown.analytics.window import day_diff, performance_window
from updown.models import MonthlyReturn, TradeLogEntry


def _entry(i: int) -> TradeLogEntry:
    return TradeLogEntry(
        date=f"2025-01-{(i % 28) + 1:02d}",
        market=f"Market {i}",
        bet_size_usd=100.0,
        entry_price=0.5,
        result="Win",
        pnl_usd=1.0,
    )


class TestMonthlyMatrix:
    def test_rows_per_year_with_gaps(self):
        matrix = build_monthly_matrix([
            MonthlyReturn(month_key="2025-01", start_equity=10000.0, pnl=100.0, return_pct=1.0),
            MonthlyReturn(month_key="2025-03", start_equity=10100.0, pnl=-50.0, return_pct=-0.495),
            MonthlyReturn(month_key="2026-02", start_equity=10050.0, pnl=201.0, return_pct=2.0),
        ])

        assert [row.year for row in matrix] == ["2025", "2026"]
        assert matrix[0].months[0] == 1.0
        assert matrix[0].months[1] is None
        assert matrix[0].months[2] == -0.495
        assert matrix[0].ytd_pct == pytest.approx(50.0 / 10000.0 * 100)
        assert matrix[1].months[1] == 2.0
        assert matrix[1].ytd_pct == pytest.approx(201.0 / 10050.0 * 100)

    def test_empty(self):
        assert build_monthly_matrix([]) == []


class TestPagination:
    def test_pages_of_twenty_five(self):
        log = [_entry(i) for i in range(60)]
        page = paginate_trade_log(log, 2)
        assert page.total_pages == 3
        assert page.total_rows == 60
        assert page.page == 2
        assert page.rows[0].market == "Market 25"
        assert len(page.rows) == 25

    def test_page_is_clamped(self):
        log = [_entry(i) for i in range(60)]
        assert paginate_trade_log(log, 9).page == 3
        assert len(paginate_trade_log(log, 9).rows) == 10
        assert paginate_trade_log(log, 0).page == 1

    def test_empty_log_has_one_page(self):
        page = paginate_trade_log([], 4)
        assert page.total_pages == 1
        assert page.page == 1
        assert page.rows == []


def test_build_kpis(make_row, window_2025):
    rows = [make_row("2025-01-01", 50.0), make_row("2025-01-15", -20.0)]
    result = compute_backtest_metrics("Test", rows, "new_total_pnl_usd", window=window_2025)
    kpis = build_kpis(result)

    assert kpis.return_label == "Cumulative Return"
    assert kpis.return_pct == pytest.approx(0.3)
    assert kpis.profitable_months == 1
    assert kpis.total_months == 1
    assert kpis.net_profit_pct == pytest.approx(0.3)
    assert kpis.profit_factor == pytest.approx(2.5)
    assert kpis.trades == 2


def test_dataset_window(make_row, window_2025):
    first = compute_backtest_metrics("A", [make_row("2025-02-01", 1.0)], "new_total_pnl_usd", window=window_2025)
    second = compute_backtest_metrics("B", [make_row("2025-03-05", 1.0)], "new_total_pnl_usd", window=window_2025)
    assert dataset_window([first, second]) == ("2025-01-01", "2025-03-05")
    assert dataset_window([]) == ("-", "-")


class TestReturns:
    def test_cagr(self):
        assert compute_cagr("2025-01-01", "2026-01-01", 10000.0, 11000.0) == pytest.approx(10.0)
        assert math.isnan(compute_cagr("2025-01-01", "2026-01-01", 10000.0, -5.0))
        assert math.isnan(compute_cagr("2025-01-01", "2026-01-01", 0.0, 100.0))

    def test_cagr_past_float_range_is_infinite(self):
        assert compute_cagr("2025-01-02", "2025-01-02", 1000.0, 10000.0) == math.inf
        assert compute_cagr("2025-01-01", "2025-01-03", 1.0, 1e6) == math.inf

    def test_display_return_switches_at_one_year(self):
        short = compute_display_return("2025-01-01", "2025-06-01", 10000.0, 10500.0)
        assert short.label == "Cumulative Return"
        assert short.value_pct == pytest.approx(5.0)

        long = compute_display_return("2025-01-01", "2027-01-01", 10000.0, 12100.0)
        assert long.label == "Annualized Return (Compounded)"
        assert long.value_pct == pytest.approx(10.0, rel=1e-3)

    def test_display_return_unusable_equity(self):
        display = compute_display_return("2025-01-01", "2025-06-01", 0.0, 10500.0)
        assert display.label == "Rate of Return"
        assert math.isnan(display.value_pct)

    def test_day_diff(self):
        assert day_diff("2025-01-01", "2025-01-15") == 14
        assert day_diff("2025-01-15", "2025-01-01") == 0
        assert math.isnan(day_diff("", "2025-01-01"))

    def test_performance_window_contains(self):
        window = performance_window(today=date(2025, 3, 1))
        assert window.contains("2025-01-01")
        assert window.contains("2025-03-01")
        assert not window.contains("2024-12-31")
        assert not window.contains("2025-03-02")
        assert len(list(window.iter_days())) == 60
