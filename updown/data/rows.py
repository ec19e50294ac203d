"""
Row normalization for CSV trade logs.

Every helper here is total: malformed or missing fields turn into a NaN or
empty-string sentinel instead of raising, so callers can skip the
contribution of a bad field without guarding each access.
"""
from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from typing import Any, Mapping

from updown.models import NormalizedTrade, TradeLeg

RawRow = dict[str, str]

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_LINE_SPLIT_RE = re.compile(r"\r?\n")
_TRUTHY = {"true", "1", "yes"}


def parse_csv(text: str) -> list[RawRow]:
    """
    Parse comma-delimited text with a header line.

    No quoting or escaping is supported. Rows shorter than the header are
    padded with empty strings.

    Args:
        text: Raw CSV file contents

    Returns:
        One dict per data line, keyed by header name
    """
    lines = _LINE_SPLIT_RE.split(text.strip())
    if len(lines) < 2:
        return []

    headers = lines[0].split(",")
    rows: list[RawRow] = []
    for line in lines[1:]:
        values = line.split(",")
        rows.append(
            {key: values[index] if index < len(values) else "" for index, key in enumerate(headers)}
        )
    return rows


def to_number(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        parsed = float(value)
    else:
        text = str(value).strip()
        if not text:
            return math.nan
        try:
            parsed = float(text)
        except ValueError:
            return math.nan
    return parsed if math.isfinite(parsed) else math.nan


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value if value is not None else "").strip().lower() in _TRUTHY


def first_present(row: Mapping[str, str], *keys: str) -> str | None:
    """Value of the first key that exists in the row, even if it is empty."""
    for key in keys:
        if key in row:
            return row[key]
    return None


def resolution_iso(row: Mapping[str, str]) -> str:
    raw = row.get("market_end_time_utc") or row.get("entry_time_utc") or ""
    return str(raw)[:10]


def is_iso_date(text: str) -> bool:
    if not _ISO_DATE_RE.match(text or ""):
        return False
    try:
        date.fromisoformat(text)
    except ValueError:
        return False
    return True


def parse_iso_date(text: str) -> date | None:
    candidate = str(text or "")[:10]
    return date.fromisoformat(candidate) if is_iso_date(candidate) else None


def parse_utc_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    raw = str(value).strip()
    if not raw:
        return None
    normalized = raw if "T" in raw else raw.replace(" ", "T", 1)
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def normalize_row(row: Mapping[str, str], pnl_column: str, index: int = 0) -> NormalizedTrade:
    """
    Convert a raw trade-log row into a typed trade.

    Args:
        row: Header-keyed CSV row
        pnl_column: Aggregate P&L column selected for the dataset
        index: Position of the row in its source file

    Returns:
        NormalizedTrade with NaN sentinels for unusable numeric fields
    """
    base = TradeLeg(
        name="base",
        triggered=True,
        stake_usd=to_number(first_present(row, "base_stake_usd", "stake_usd")),
        pnl_usd=to_number(row.get("base_pnl_usd")),
        entry_price=to_number(row.get("entry_price")),
    )
    add_1230 = _add_leg(row, "add_1230", "add20_1230")
    add_1430 = _add_leg(row, "add_1430", "add20_1430")

    return NormalizedTrade(
        row_index=index,
        resolution_date=resolution_iso(row),
        entry_time_utc=str(row.get("entry_time_utc") or ""),
        market_end_time_utc=str(row.get("market_end_time_utc") or ""),
        asset=str(row.get("asset") or "").strip(),
        market_id=str(row.get("market_id") or "").strip(),
        slug=str(row.get("slug") or "").strip(),
        signal=str(row.get("signal") or "").strip(),
        resolved_label=str(row.get("resolved_label") or "").strip(),
        base=base,
        add_1230=add_1230,
        add_1430=add_1430,
        aggregate_pnl_usd=to_number(row.get(pnl_column)),
        recorded_total_stake_usd=to_number(
            first_present(row, "new_total_stake_usd", "base_stake_usd", "stake_usd")
        ),
    )


def _add_leg(row: Mapping[str, str], name: str, prefix: str) -> TradeLeg:
    return TradeLeg(
        name=name,
        triggered=to_bool(row.get(f"{prefix}_triggered")),
        stake_usd=to_number(row.get(f"{prefix}_stake_usd")),
        pnl_usd=to_number(row.get(f"{prefix}_pnl_usd")),
        entry_price=to_number(row.get(f"{prefix}_entry_price")),
    )
