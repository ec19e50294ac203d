from datetime import date

import pytest

from updown.analytics.window import PerformanceWindow


def build_row(day: str, pnl: float, stake: float = 100.0, asset: str = "spx", entry_price: float = 0.5, **extra) -> dict[str, str]:
    """Trade-log row resolving on ``day`` with a single base leg."""
    row = {
        "market_end_time_utc": f"{day}T21:00:00Z",
        "entry_time_utc": f"{day}T14:30:00Z",
        "asset": asset,
        "market_id": f"{asset}-{day}",
        "base_stake_usd": str(stake),
        "base_pnl_usd": str(pnl),
        "new_total_stake_usd": str(stake),
        "new_total_pnl_usd": str(pnl),
        "entry_price": str(entry_price),
    }
    row.update({key: str(value) for key, value in extra.items()})
    return row


def rows_to_csv(rows: list[dict[str, str]]) -> str:
    headers: list[str] = []
    for row in rows:
        headers.extend(key for key in row if key not in headers)
    lines = [",".join(headers)]
    lines.extend(",".join(row.get(key, "") for key in headers) for row in rows)
    return "\n".join(lines) + "\n"


@pytest.fixture
def make_row():
    return build_row


@pytest.fixture
def to_csv():
    return rows_to_csv


@pytest.fixture
def window_2025() -> PerformanceWindow:
    return PerformanceWindow(start=date(2025, 1, 1), end=date(2025, 12, 31))
