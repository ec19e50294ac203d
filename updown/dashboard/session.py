"""
Dashboard session state.

Holds the loaded report data and the user's sizing choices, and rebuilds
every derived result from scratch whenever those choices change.
"""
from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel

from config.settings import Settings
from updown.analytics.metrics import compute_backtests
from updown.analytics.monte_carlo import build_fan_bands, compute_path_window_stats, parse_mc_summary
from updown.analytics.reporting import build_kpis, build_monthly_matrix, dataset_window, paginate_trade_log
from updown.analytics.stitcher import SCENARIO_LABELS, build_scenarios
from updown.analytics.window import PerformanceWindow, performance_window
from updown.data.rows import parse_iso_date, to_number
from updown.data.sources.csv_source import DashboardData
from updown.models import MetricsResult, Scenario
from updown.utils.exceptions import InvalidUserInputError

DEFAULT_STARTING_CAPITAL = 10000.0
DEFAULT_BET_SIZE = 100.0
DEFAULT_ASSET_FILTER = "both"
MC_PATH_KEYS = ("p1", "p5", "p25", "p50", "p75", "p95")


class DashboardConfig(BaseModel):
    starting_capital: float = DEFAULT_STARTING_CAPITAL
    bet_size: float = DEFAULT_BET_SIZE
    asset_filter: str = DEFAULT_ASSET_FILTER
    scenario: Scenario = Scenario.HISTORICAL


def parse_positive(field: str, value: Any) -> float:
    number = to_number(value)
    if not math.isfinite(number) or number <= 0:
        raise InvalidUserInputError(field, value, "expected a positive number")
    return number


def parse_asset_filter(value: Any, supported: list[str]) -> str:
    selected = str(value if value is not None else "").strip().lower()
    if selected != "both" and selected not in supported:
        raise InvalidUserInputError("asset_filter", value, f"expected one of both, {', '.join(supported)}")
    return selected


def to_json_safe(value: Any) -> Any:
    """Recursively replace non-finite floats with None and dates with ISO strings."""
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {str(k): to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(v) for v in value]
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Scenario):
        return value.value
    return value


class DashboardSession:
    def __init__(
        self,
        data: DashboardData,
        settings: Settings,
        window: Optional[PerformanceWindow] = None,
    ) -> None:
        self.data = data
        self.settings = settings
        self.window = window or performance_window(settings.analytics.performance_start)
        self.config = DashboardConfig()
        self.backtests: list[MetricsResult] = []
        self.scenarios: dict[Scenario, MetricsResult] = {}

        self.apply_sizing(
            settings.sizing.starting_capital,
            settings.sizing.bet_size,
            settings.sizing.asset_filter,
        )

    def _recover(self, parse, field: str, value: Any, default: Any) -> Any:
        try:
            return parse(value)
        except InvalidUserInputError as e:
            logger.warning(f"{e}; using default {default!r} for {field}")
            return default

    def apply_sizing(
        self,
        starting_capital: Any = None,
        bet_size: Any = None,
        asset_filter: Any = None,
    ) -> DashboardConfig:
        """
        Apply new sizing inputs and recompute every result.

        Invalid inputs fall back to the defaults (10000 capital, 100 bet,
        both assets). The selected scenario is kept.
        """
        supported = self.settings.analytics.supported_assets
        config = DashboardConfig(
            starting_capital=self._recover(
                lambda v: parse_positive("starting_capital", v),
                "starting_capital", starting_capital, DEFAULT_STARTING_CAPITAL,
            ),
            bet_size=self._recover(
                lambda v: parse_positive("bet_size", v),
                "bet_size", bet_size, DEFAULT_BET_SIZE,
            ),
            asset_filter=self._recover(
                lambda v: parse_asset_filter(v, supported),
                "asset_filter", asset_filter, DEFAULT_ASSET_FILTER,
            ),
            scenario=self.config.scenario,
        )

        backtests = compute_backtests(
            self.data.backtests,
            config.starting_capital,
            config.bet_size,
            config.asset_filter,
            window=self.window,
        )
        scenarios = build_scenarios(
            backtests[0],
            self.data.mc_path_rows,
            bet_size=config.bet_size,
            window=self.window,
        ) if backtests else {}

        self.config = config
        self.backtests = backtests
        self.scenarios = scenarios

        logger.info(
            f"Recomputed {len(backtests)} backtest(s): capital {config.starting_capital:,.2f}, "
            f"bet {config.bet_size:,.2f}, assets {config.asset_filter}"
        )
        return config

    def select_scenario(self, name: Any) -> Scenario:
        """Select the result shown by the dashboard; unknown names mean historical."""
        key = str(name or "").strip().lower()
        if key == "backtest":
            key = Scenario.HISTORICAL.value
        try:
            scenario = Scenario(key)
        except ValueError:
            logger.warning(f"Unknown scenario {name!r}, showing historical backtest")
            scenario = Scenario.HISTORICAL

        self.config = self.config.model_copy(update={"scenario": scenario})
        return scenario

    def active_result(self) -> MetricsResult:
        if self.config.scenario in self.scenarios:
            return self.scenarios[self.config.scenario]
        if Scenario.HISTORICAL in self.scenarios:
            return self.scenarios[Scenario.HISTORICAL]
        return self.backtests[0]

    def scenario_options(self) -> list[dict[str, str]]:
        options = [{"id": Scenario.HISTORICAL.value, "label": "Backtest"}]
        options.extend(
            {"id": scenario.value, "label": label} for scenario, label in SCENARIO_LABELS.items()
        )
        return options

    def summary_payload(self, page: int = 1) -> dict[str, Any]:
        """JSON-ready view of the active result."""
        result = self.active_result()
        window_start, window_end = dataset_window(self.backtests)
        trade_page = paginate_trade_log(
            result.trade_log, page, self.settings.analytics.trade_log_page_size
        )

        payload = {
            "generated_at": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC"),
            "config": self.config.model_dump(),
            "scenarios": self.scenario_options(),
            "dataset_window": {"start": window_start, "end": window_end},
            "strategy_label": result.label,
            "top_stats_label": result.top_stats_label or "Backtest",
            "kpis": build_kpis(result).model_dump(),
            "monthly": [year.model_dump() for year in build_monthly_matrix(result.monthly_returns)],
            "trade_log": trade_page.model_dump(),
            "equity": {"labels": result.labels, "values": result.equity},
            "drawdown_pct_series": result.drawdown_pct_series,
        }
        return to_json_safe(payload)

    def monte_carlo_payload(
        self,
        path_key: Any = "p50",
        start: Any = None,
        end: Any = None,
    ) -> dict[str, Any]:
        key = str(path_key or "p50").strip().lower()
        if key not in MC_PATH_KEYS:
            logger.warning(f"Unknown Monte-Carlo path {path_key!r}, using p50")
            key = "p50"

        start_date = self.window.start if start is None else parse_iso_date(str(start))
        end_date = self.window.end if end is None else parse_iso_date(str(end))
        stats = compute_path_window_stats(self.data.mc_percentile_rows, key, start_date, end_date)

        payload = {
            "summary": parse_mc_summary(self.data.mc_stats_rows).model_dump(),
            "fan": build_fan_bands(self.data.mc_path_rows).model_dump(),
            "path_stats": stats.model_dump(),
            "range": {
                "start": start_date.isoformat() if start_date else None,
                "end": end_date.isoformat() if end_date else None,
            },
        }
        return to_json_safe(payload)
