from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field


ADD_FRACTION = 0.2

LegName = Literal["base", "add_1230", "add_1430"]


class TradeLeg(BaseModel):
    model_config = {"from_attributes": True}

    name: LegName
    triggered: bool = True
    stake_usd: float = float("nan")
    pnl_usd: float = float("nan")
    entry_price: float = float("nan")


class NormalizedTrade(BaseModel):
    """One executed position parsed from a trade-log row."""

    model_config = {"from_attributes": True}

    row_index: int = 0
    resolution_date: str = ""
    entry_time_utc: str = ""
    market_end_time_utc: str = ""
    asset: str = ""
    market_id: str = ""
    slug: str = ""
    signal: str = ""
    resolved_label: str = ""
    base: TradeLeg
    add_1230: TradeLeg
    add_1430: TradeLeg
    aggregate_pnl_usd: float = float("nan")
    recorded_total_stake_usd: float = float("nan")

    @property
    def add_legs(self) -> tuple[TradeLeg, TradeLeg]:
        return self.add_1230, self.add_1430

    @property
    def legs(self) -> tuple[TradeLeg, TradeLeg, TradeLeg]:
        return self.base, self.add_1230, self.add_1430


class ScalingMethod(str, Enum):
    LEG = "leg_scaling"
    POSITION_FALLBACK = "position_fallback"


class ScaledTrade(BaseModel):
    model_config = {"from_attributes": True}

    pnl_usd: float
    total_stake_usd: float = Field(ge=0.0)
    entry_price: float
    method: ScalingMethod
    legs_used: list[LegName] = []
    fallback_scale: Optional[float] = None
    fallback_stake_source: Optional[Literal["recorded_stake", "default_bet_size"]] = None


class AddTrigger(BaseModel):
    model_config = {"frozen": True}

    add_1230: bool = False
    add_1430: bool = False

    @property
    def stake_multiplier(self) -> float:
        return 1.0 + (ADD_FRACTION if self.add_1230 else 0.0) + (ADD_FRACTION if self.add_1430 else 0.0)


class TradeLogEntry(BaseModel):
    model_config = {"from_attributes": True}

    date: str
    market: str
    direction: str = "-"
    bet_size_usd: float
    entry_price: float
    result: Literal["Win", "Loss", "Open"]
    pnl_usd: float
    synthetic: bool = False
