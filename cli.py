import asyncio
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from config.settings import Settings, get_settings
from updown.analytics.monte_carlo import compute_path_window_stats, parse_mc_summary
from updown.analytics.reporting import (
    MONTH_NAMES,
    build_kpis,
    build_monthly_matrix,
    dataset_window,
    paginate_trade_log,
)
from updown.dashboard.session import MC_PATH_KEYS, DashboardSession
from updown.dashboard.web import run_web_dashboard
from updown.data.rows import parse_iso_date
from updown.data.sources.csv_source import CsvSource, DashboardData, load_dashboard_data
from updown.utils.exceptions import ConfigError, StartupFailureError
from updown.utils.logging import setup_logging

app = typer.Typer(no_args_is_help=True)


def _fmt_usd(value: float) -> str:
    return f"${value:,.2f}" if math.isfinite(value) else "-"


def _fmt_pct(value: Optional[float], digits: int = 2) -> str:
    if value is None or not math.isfinite(value):
        return "-"
    return f"{value:.{digits}f}%"


def _fmt_num(value: float, digits: int = 2) -> str:
    return f"{value:.{digits}f}" if math.isfinite(value) else "-"


def _bootstrap() -> Settings:
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_dir)
    return settings


def _load_data(settings: Settings) -> DashboardData:
    return asyncio.run(load_dashboard_data(settings))


@app.command()
def report(
    scenario: str = typer.Option("historical", help="historical, mc_p95, mc_p50 or mc_p1"),
    capital: Optional[str] = typer.Option(None, help="Starting capital (defaults to STARTING_CAPITAL)"),
    bet_size: Optional[str] = typer.Option(None, help="Base bet size (defaults to BET_SIZE)"),
    asset: Optional[str] = typer.Option(None, help="both, spx or ndx (defaults to ASSET_FILTER)"),
    page: int = typer.Option(1, help="Trade log page"),
) -> None:
    """Print KPIs, monthly returns and the trade log for a scenario."""
    try:
        settings = _bootstrap()
        session = DashboardSession(_load_data(settings), settings)
        if any(option is not None for option in (capital, bet_size, asset)):
            session.apply_sizing(
                capital if capital is not None else settings.sizing.starting_capital,
                bet_size if bet_size is not None else settings.sizing.bet_size,
                asset if asset is not None else settings.sizing.asset_filter,
            )
        session.select_scenario(scenario)
        result = session.active_result()
        kpis = build_kpis(result)
        start, end = dataset_window(session.backtests)

        console = Console()
        console.print(f"[bold]{result.label}[/bold]")
        console.print(f"Dataset window: {start} to {end}")

        kpi_table = Table(title="Key Metrics")
        kpi_table.add_column("Metric")
        kpi_table.add_column("Value", justify="right")
        kpi_table.add_row(kpis.return_label, _fmt_pct(kpis.return_pct, 1))
        kpi_table.add_row(
            "Max Drawdown",
            f"-{_fmt_pct(kpis.max_drawdown_pct)} ({_fmt_usd(kpis.max_drawdown_usd)})",
        )
        kpi_table.add_row("Drawdown Period", f"{kpis.max_dd_start_date or '-'} to {kpis.max_dd_end_date or '-'}")
        kpi_table.add_row("Trades", str(kpis.trades))
        kpi_table.add_row("Win Rate", f"{_fmt_pct(kpis.win_rate_pct, 1)} ({kpis.wins}/{kpis.trades})")
        kpi_table.add_row("Profitable Months", f"{kpis.profitable_months}/{kpis.total_months}")
        kpi_table.add_row("Profit Factor", _fmt_num(kpis.profit_factor))
        kpi_table.add_row("Initial Capital", _fmt_usd(kpis.starting_equity))
        kpi_table.add_row("Ending Equity", _fmt_usd(kpis.ending_equity))
        kpi_table.add_row("Net Profit", f"{_fmt_usd(kpis.net_pnl)} ({_fmt_pct(kpis.net_profit_pct, 1)})")
        console.print(kpi_table)

        monthly_table = Table(title="Monthly Returns")
        monthly_table.add_column("Year")
        for name in MONTH_NAMES:
            monthly_table.add_column(name, justify="right")
        monthly_table.add_column("YTD", justify="right")
        for year in build_monthly_matrix(result.monthly_returns):
            monthly_table.add_row(
                year.year, *(_fmt_pct(m, 1) for m in year.months), _fmt_pct(year.ytd_pct, 1)
            )
        console.print(monthly_table)

        trade_page = paginate_trade_log(result.trade_log, page, settings.analytics.trade_log_page_size)
        trades_table = Table(title=f"Trade Log (page {trade_page.page}/{trade_page.total_pages})")
        for column in ("Date", "Market", "Direction", "Bet Size", "Entry", "Result", "P&L"):
            trades_table.add_column(column)
        for trade in trade_page.rows:
            trades_table.add_row(
                trade.date or "-",
                trade.market,
                trade.direction,
                _fmt_usd(trade.bet_size_usd),
                _fmt_num(trade.entry_price, 3),
                trade.result,
                _fmt_usd(trade.pnl_usd),
            )
        console.print(trades_table)

    except StartupFailureError as e:
        typer.echo(f"Startup failed: {e}", err=True)
        raise typer.Exit(code=e.exit_code)
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        logger.exception("Report command failed")
        raise typer.Exit(code=1)


@app.command("mc-stats")
def mc_stats(
    path: str = typer.Option("p50", help="Percentile path: p1, p5, p25, p50, p75 or p95"),
    start: Optional[str] = typer.Option(None, help="First day (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, help="Last day (YYYY-MM-DD)"),
) -> None:
    """Show the Monte-Carlo summary and stats for one percentile path."""
    try:
        settings = _bootstrap()
        if path not in MC_PATH_KEYS:
            typer.echo(f"Unknown path {path!r}, expected one of {', '.join(MC_PATH_KEYS)}", err=True)
            raise typer.Exit(code=2)

        data = _load_data(settings)
        start_date = parse_iso_date(start) if start else settings.analytics.performance_start
        end_date = parse_iso_date(end) if end else datetime.now(timezone.utc).date()

        summary = parse_mc_summary(data.mc_stats_rows)
        stats = compute_path_window_stats(data.mc_percentile_rows, path, start_date, end_date)

        console = Console()
        summary_table = Table(title="Monte-Carlo Summary (1 year)")
        summary_table.add_column("Metric")
        summary_table.add_column("Value", justify="right")
        summary_table.add_row("Median Return", _fmt_pct(summary.median_return_pct, 1))
        summary_table.add_row("5th Percentile Return", _fmt_pct(summary.p05_return_pct, 1))
        summary_table.add_row("95th Percentile Return", _fmt_pct(summary.p95_return_pct, 1))
        summary_table.add_row("Probability of Loss", _fmt_pct(summary.probability_loss_pct, 1))
        console.print(summary_table)

        path_table = Table(title=f"Path {path}: {start or start_date} to {end or end_date}")
        path_table.add_column("Metric")
        path_table.add_column("Value", justify="right")
        if stats.status == "invalid_range":
            path_table.add_row("Return", "Invalid date range")
        elif stats.status == "no_data":
            path_table.add_row("Return", "No data")
            path_table.add_row("Days Used", "0")
        else:
            path_table.add_row("Start Equity", _fmt_usd(stats.start_equity))
            path_table.add_row("End Equity", _fmt_usd(stats.end_equity))
            path_table.add_row("Return", _fmt_pct(stats.return_pct))
            path_table.add_row("Max Drawdown", _fmt_pct(stats.max_drawdown_pct))
            path_table.add_row("CAGR", _fmt_pct(stats.cagr_pct))
            path_table.add_row("Days Used", str(stats.days_used))
        console.print(path_table)

    except StartupFailureError as e:
        typer.echo(f"Startup failed: {e}", err=True)
        raise typer.Exit(code=e.exit_code)
    except typer.Exit:
        raise
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        logger.exception("mc-stats command failed")
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind host (defaults to DASHBOARD_HOST)"),
    port: Optional[int] = typer.Option(None, help="Bind port (defaults to DASHBOARD_PORT)"),
    no_browser: bool = typer.Option(False, "--no-browser", help="Do not open a browser window"),
) -> None:
    """Run the local web dashboard."""
    try:
        settings = _bootstrap()
        session = DashboardSession(_load_data(settings), settings)
        run_web_dashboard(
            session,
            host=host or settings.dashboard.host,
            port=port or settings.dashboard.port,
            open_browser=not no_browser,
        )
    except StartupFailureError as e:
        typer.echo(f"Startup failed: {e}", err=True)
        raise typer.Exit(code=e.exit_code)
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        logger.exception("Serve command failed")
        raise typer.Exit(code=1)


@app.command()
def status() -> None:
    """Show configuration and report file availability."""
    try:
        settings = _bootstrap()
        data = settings.data

        typer.echo("updown-perf Status")
        typer.echo("=" * 50)
        typer.echo(f"Starting capital: ${settings.sizing.starting_capital:,.2f}")
        typer.echo(f"Bet size: ${settings.sizing.bet_size:,.2f}")
        typer.echo(f"Asset filter: {settings.sizing.asset_filter}")
        typer.echo(f"Performance start: {settings.analytics.performance_start.isoformat()}")
        typer.echo("")

        files = [strategy.file for strategy in data.strategies]
        files += [data.mc_stats_file, data.mc_paths_file, data.mc_percentiles_file]

        if data.reports_base_url:
            typer.echo(f"Reports URL: {data.reports_base_url}")
            for file_name in files:
                typer.echo(f"  {data.resolve(file_name)}: REMOTE")
        else:
            if not data.reports_dir.exists():
                typer.echo("Reports directory: MISSING")
                raise ConfigError(f"Reports directory {data.reports_dir} does not exist")
            typer.echo(f"Reports directory: {data.reports_dir}")
            for file_name in files:
                location = data.resolve(file_name)
                state = "EXISTS" if Path(location).exists() else "NOT FOUND"
                typer.echo(f"  {file_name}: {state}")

        remote = CsvSource.is_remote(data.resolve(files[0]))
        typer.echo("")
        typer.echo(f"Fetch mode: {'http' if remote else 'local'}")
        logger.info("Status check completed")

    except ConfigError as e:
        typer.echo(f"{e}", err=True)
        raise typer.Exit(code=1)
    except Exception as e:
        typer.echo(f"Status check failed: {e}", err=True)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
