from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StrategySource(BaseModel):
    id: str
    label: str
    file: str
    pnl_columns: list[str] = ["new_total_pnl_usd", "pnl_usd_100", "base_pnl_usd"]


def _default_strategies() -> list[StrategySource]:
    return [
        StrategySource(
            id="time_add20_1230_1430",
            label="Time Add 20% (12:30, 14:30)",
            file="cp12_continuous_backtest_100usd_add20_1230_add20_1430_futgtcp2.trades.csv",
        )
    ]


class SizingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True)

    starting_capital: float = Field(default=10000.0, gt=0, alias="STARTING_CAPITAL")
    bet_size: float = Field(default=100.0, gt=0, alias="BET_SIZE")
    asset_filter: str = Field(default="both", alias="ASSET_FILTER")


class DataSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True)

    reports_dir: Path = Field(default=Path("reports"), alias="REPORTS_DIR")
    reports_base_url: Optional[str] = Field(default=None, alias="REPORTS_BASE_URL")
    strategies: list[StrategySource] = Field(default_factory=_default_strategies)
    mc_stats_file: str = "mc_1y_time_add20_stats.csv"
    mc_paths_file: str = "mc_trade_by_trade_p1_p5_p95_paths.csv"
    mc_percentiles_file: str = "mc_1y_time_add20_equity_percentiles.csv"
    fetch_timeout: float = 30.0

    def resolve(self, file_name: str) -> str:
        """Location of a report file: a URL when a base URL is set, else a local path."""
        if self.reports_base_url:
            return f"{self.reports_base_url.rstrip('/')}/{file_name}"
        return str(self.reports_dir / file_name)


class AnalyticsSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True)

    performance_start: date = Field(default=date(2025, 1, 1), alias="PERFORMANCE_START")
    trade_log_page_size: int = 25
    supported_assets: list[str] = ["spx", "ndx"]


class DashboardSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DASHBOARD_")

    host: str = "127.0.0.1"
    port: int = 8787


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: Path = Field(default=Path("logs"), alias="LOG_DIR")

    sizing: SizingSettings = Field(default_factory=SizingSettings)
    data: DataSettings = Field(default_factory=DataSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    dashboard: DashboardSettings = Field(default_factory=DashboardSettings)


@lru_cache
def get_settings() -> Settings:
    return Settings()
