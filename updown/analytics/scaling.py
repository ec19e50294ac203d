"""
Position Scaler - Rescales recorded trades to a target bet size.
"""
from __future__ import annotations

import math
from typing import Mapping

from loguru import logger

from updown.data.rows import normalize_row
from updown.models import NormalizedTrade, ScaledTrade, ScalingMethod, TradeLeg
from updown.models.trade import ADD_FRACTION

DEFAULT_BET_SIZE = 100.0


def _usable(value: float) -> bool:
    return math.isfinite(value)


def leg_target_stake(leg: TradeLeg, target_bet_size: float) -> float:
    """Stake the leg would carry at the target bet size (0 when not triggered)."""
    if leg.name == "base":
        return target_bet_size
    return target_bet_size * ADD_FRACTION if leg.triggered else 0.0


def scale_trade(
    trade: NormalizedTrade,
    target_bet_size: float,
    default_bet_size: float = DEFAULT_BET_SIZE,
) -> ScaledTrade:
    """
    Rescale a trade's P&L and stake to a target bet size.

    Each leg with a usable recorded stake and P&L is scaled by the ratio of
    its target stake to its recorded stake. When no leg qualifies, the
    aggregate P&L column is scaled by target / recorded total stake, or
    target / default bet size when the recorded stake is unusable.

    Args:
        trade: Normalized trade from the trade log
        target_bet_size: Target base stake in USD (> 0)
        default_bet_size: Stake assumed for rows without a recorded stake

    Returns:
        ScaledTrade tagged with the scaling method that produced its P&L
    """
    scaled_pnl = 0.0
    legs_used = []

    for leg in trade.legs:
        if not leg.triggered:
            continue
        if not (_usable(leg.pnl_usd) and _usable(leg.stake_usd) and leg.stake_usd > 0):
            continue
        scaled_pnl += leg.pnl_usd * (leg_target_stake(leg, target_bet_size) / leg.stake_usd)
        legs_used.append(leg.name)

    target_total_stake = sum(leg_target_stake(leg, target_bet_size) for leg in trade.legs)
    entry_price = _blended_entry_price(trade, target_bet_size)

    if legs_used:
        return ScaledTrade(
            pnl_usd=scaled_pnl,
            total_stake_usd=target_total_stake,
            entry_price=entry_price,
            method=ScalingMethod.LEG,
            legs_used=legs_used,
        )

    # Whole-position fallback; assumes the default bet size when no stake was recorded.
    recorded_stake = trade.recorded_total_stake_usd
    if _usable(recorded_stake) and recorded_stake > 0:
        scale = target_bet_size / recorded_stake
        stake_source = "recorded_stake"
    else:
        scale = target_bet_size / default_bet_size
        stake_source = "default_bet_size"

    aggregate_pnl = trade.aggregate_pnl_usd
    fallback_pnl = aggregate_pnl * scale if _usable(aggregate_pnl) else math.nan
    logger.debug(
        f"Row {trade.row_index} scaled by position fallback "
        f"(scale={scale:.4f}, source={stake_source})"
    )

    return ScaledTrade(
        pnl_usd=fallback_pnl,
        total_stake_usd=target_total_stake,
        entry_price=entry_price,
        method=ScalingMethod.POSITION_FALLBACK,
        fallback_scale=scale,
        fallback_stake_source=stake_source,
    )


def scale_row(
    row: Mapping[str, str],
    pnl_column: str,
    target_bet_size: float,
    index: int = 0,
) -> ScaledTrade:
    return scale_trade(normalize_row(row, pnl_column, index), target_bet_size)


def _blended_entry_price(trade: NormalizedTrade, target_bet_size: float) -> float:
    weighted_price_sum = 0.0
    weighted_stake_sum = 0.0
    for leg in trade.legs:
        stake = leg_target_stake(leg, target_bet_size)
        if stake > 0 and _usable(leg.entry_price):
            weighted_price_sum += leg.entry_price * stake
            weighted_stake_sum += stake

    if weighted_stake_sum > 0:
        return weighted_price_sum / weighted_stake_sum
    return trade.base.entry_price
