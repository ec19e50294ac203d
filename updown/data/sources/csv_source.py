import asyncio
from pathlib import Path
from typing import Any, Optional, Sequence

import httpx
from loguru import logger
from pydantic import BaseModel

from config.settings import DataSettings, Settings, StrategySource
from updown.data.rows import RawRow, parse_csv
from updown.models import BacktestDataset
from updown.utils.exceptions import DataSourceUnavailableError, StartupFailureError


class CsvSource:
    """Reads report CSVs from a URL or the local filesystem."""

    def __init__(self, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None) -> None:
        self.client = client or httpx.AsyncClient(timeout=timeout)
        logger.debug("CsvSource initialized")

    @staticmethod
    def is_remote(location: str) -> bool:
        return location.startswith(("http://", "https://"))

    async def fetch_text(self, location: str) -> str:
        if self.is_remote(location):
            return await self._fetch_remote(location)
        return await self._read_local(location)

    async def fetch_rows(self, location: str) -> list[RawRow]:
        text = await self.fetch_text(location)
        rows = parse_csv(text)
        logger.debug(f"Loaded {len(rows)} rows from {location}")
        return rows

    async def _fetch_remote(self, url: str) -> str:
        try:
            response = await self.client.get(url, headers={"Cache-Control": "no-store"})
            response.raise_for_status()
            return response.text
        except httpx.HTTPStatusError as e:
            raise DataSourceUnavailableError(
                f"HTTP {e.response.status_code}", source="csv", location=url
            ) from e
        except (httpx.RequestError, httpx.TimeoutException) as e:
            raise DataSourceUnavailableError(str(e), source="csv", location=url) from e

    async def _read_local(self, location: str) -> str:
        path = Path(location)
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except OSError as e:
            raise DataSourceUnavailableError(str(e), source="csv", location=location) from e

    async def close(self) -> None:
        await self.client.aclose()
        logger.debug("CsvSource closed")

    async def __aenter__(self) -> "CsvSource":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


class DashboardData(BaseModel):
    backtests: list[BacktestDataset]
    mc_stats_rows: list[dict[str, str]] = []
    mc_path_rows: list[dict[str, str]] = []
    mc_percentile_rows: list[dict[str, str]] = []


def select_pnl_column(rows: Sequence[RawRow], candidates: Sequence[str]) -> Optional[str]:
    """First candidate P&L column present in the header, or None."""
    if not rows:
        return None
    header = rows[0].keys()
    return next((column for column in candidates if column in header), None)


async def _load_strategy(
    source: CsvSource, data: DataSettings, strategy: StrategySource
) -> Optional[BacktestDataset]:
    location = data.resolve(strategy.file)
    try:
        rows = await source.fetch_rows(location)
    except DataSourceUnavailableError as e:
        logger.warning(f"Skipping strategy {strategy.label}: {e}")
        return None

    if not rows:
        logger.warning(f"Skipping strategy {strategy.label}: {location} has no rows")
        return None

    pnl_column = select_pnl_column(rows, strategy.pnl_columns)
    if pnl_column is None:
        logger.warning(
            f"Skipping strategy {strategy.label}: none of {strategy.pnl_columns} in header"
        )
        return None

    return BacktestDataset(id=strategy.id, label=strategy.label, rows=rows, pnl_column=pnl_column)


async def load_backtest_datasets(source: CsvSource, data: DataSettings) -> list[BacktestDataset]:
    loaded = await asyncio.gather(
        *(_load_strategy(source, data, strategy) for strategy in data.strategies)
    )
    return [dataset for dataset in loaded if dataset is not None]


async def _load_optional_rows(source: CsvSource, data: DataSettings, file_name: str) -> list[RawRow]:
    try:
        return await source.fetch_rows(data.resolve(file_name))
    except DataSourceUnavailableError as e:
        logger.warning(f"Monte-Carlo file unavailable, continuing without it: {e}")
        return []


async def load_dashboard_data(
    settings: Settings, client: Optional[httpx.AsyncClient] = None
) -> DashboardData:
    """
    Fetch every report file the dashboard needs.

    Args:
        settings: Application settings (file names and locations)
        client: Optional preconfigured HTTP client

    Returns:
        DashboardData with the loaded backtests and Monte-Carlo rows

    Raises:
        StartupFailureError: No backtest dataset could be loaded
    """
    data = settings.data
    async with CsvSource(timeout=data.fetch_timeout, client=client) as source:
        backtests, stats_rows, path_rows, percentile_rows = await asyncio.gather(
            load_backtest_datasets(source, data),
            _load_optional_rows(source, data, data.mc_stats_file),
            _load_optional_rows(source, data, data.mc_paths_file),
            _load_optional_rows(source, data, data.mc_percentiles_file),
        )

    if not backtests:
        raise StartupFailureError(
            "No backtest data available. Check that the report CSV files exist and "
            "contain a P&L column.",
            reason="no_backtest_data",
        )

    logger.info(
        f"Loaded {len(backtests)} backtest dataset(s), {len(path_rows)} Monte-Carlo path rows"
    )
    return DashboardData(
        backtests=backtests,
        mc_stats_rows=stats_rows,
        mc_path_rows=path_rows,
        mc_percentile_rows=percentile_rows,
    )
