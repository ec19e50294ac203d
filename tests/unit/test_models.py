"""Tests for Pydantic models."""
import math
from datetime import date

import pytest
from pydantic import ValidationError

from updown.models import (
    AddTrigger,
    EquityPoint,
    MetricsResult,
    MonthlyReturn,
    NormalizedTrade,
    ScaledTrade,
    ScalingMethod,
    Scenario,
    TradeLeg,
    TradeLogEntry,
)


class TestTradeModels:
    def test_leg_defaults_are_nan(self):
        leg = TradeLeg(name="add_1230", triggered=False)
        assert math.isnan(leg.stake_usd)
        assert math.isnan(leg.pnl_usd)

    def test_normalized_trade_legs(self):
        trade = NormalizedTrade(
            base=TradeLeg(name="base", stake_usd=100.0, pnl_usd=5.0),
            add_1230=TradeLeg(name="add_1230", triggered=False),
            add_1430=TradeLeg(name="add_1430", triggered=True),
        )
        assert [leg.name for leg in trade.legs] == ["base", "add_1230", "add_1430"]
        assert trade.add_legs == (trade.add_1230, trade.add_1430)

    def test_scaled_trade_rejects_negative_stake(self):
        with pytest.raises(ValidationError):
            ScaledTrade(pnl_usd=1.0, total_stake_usd=-1.0, entry_price=0.5, method=ScalingMethod.LEG)

    def test_add_trigger_multiplier(self):
        assert AddTrigger().stake_multiplier == 1.0
        assert AddTrigger(add_1230=True, add_1430=True).stake_multiplier == pytest.approx(1.4)

    def test_trade_log_entry_result_values(self):
        with pytest.raises(ValidationError):
            TradeLogEntry(date="2025-01-01", market="m", bet_size_usd=1.0, entry_price=0.5, result="Push", pnl_usd=0.0)


class TestEquityModels:
    def test_equity_point_validity(self):
        assert EquityPoint(date=date(2025, 1, 1), equity=1.0).is_valid
        assert not EquityPoint(date=None, equity=1.0).is_valid
        assert not EquityPoint(date=date(2025, 1, 1), equity=float("nan")).is_valid

    def test_profitable_months_is_serialized(self):
        result = MetricsResult(
            label="x",
            starting_equity=100.0,
            bet_size_usd=1.0,
            ending_equity=101.0,
            monthly_returns=[
                MonthlyReturn(month_key="2025-01", start_equity=100.0, pnl=2.0, return_pct=2.0),
                MonthlyReturn(month_key="2025-02", start_equity=102.0, pnl=-1.0, return_pct=-0.98),
            ],
        )
        assert result.profitable_months == 1
        assert result.model_dump()["profitable_months"] == 1

    def test_equity_points_skip_unusable_labels(self):
        result = MetricsResult(
            label="x",
            starting_equity=100.0,
            bet_size_usd=1.0,
            ending_equity=103.0,
            labels=["2025-01-02", "n/a", "2025-01-01"],
            equity=[103.0, 50.0, 101.0],
        )
        points = result.equity_points(include_start=True)
        assert [p.equity for p in points] == [100.0, 101.0, 103.0]
        assert points[0].date == date(2025, 1, 1)

    def test_scenario_values(self):
        assert Scenario("mc_p95") is Scenario.MC_P95
        assert Scenario.HISTORICAL.value == "historical"
