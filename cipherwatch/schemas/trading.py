"""
Trading path schemas.

Trades and a market observation in, TradingInsight out. Insights explain
what happened; they never carry predictions.
"""

from datetime import datetime
from enum import StrEnum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from cipherwatch.schemas.activity import Baseline
from cipherwatch.schemas.common import UtcDatetime
from cipherwatch.schemas.deviation import DeviationSet
from cipherwatch.schemas.levels import PressureLevel


class MovementType(StrEnum):
    NORMAL = "normal"
    GRADUAL_TREND = "gradual_trend"
    SESSION_ANOMALY = "session_anomaly"
    SUDDEN_SPIKE = "sudden_spike"
    VOLATILITY_REGIME_CHANGE = "volatility_regime_change"


class DataSourceType(StrEnum):
    TRADING_PLATFORM = "trading_platform"
    MARKET_DATA_FEED = "market_data_feed"
    MANUAL_ENTRY = "manual_entry"
    DEMO = "demo"
    API = "api"


# ── Inputs ─────────────────────────────────────────────────────────────


class Trade(BaseModel):
    model_config = ConfigDict(frozen=True)

    trade_id: str = Field(..., min_length=1)
    trader_id: str = Field(..., min_length=1)
    instrument: str = Field(..., min_length=1)
    timestamp: UtcDatetime
    position_size: float = Field(..., gt=0, allow_inf_nan=False)
    pnl: float = Field(default=0.0, allow_inf_nan=False)
    market_condition: Optional[MovementType] = None

    @property
    def is_loss(self) -> bool:
        return self.pnl < 0


class OHLC(BaseModel):
    open: float
    high: float
    low: float
    close: float


class MarketObservation(BaseModel):
    percent_change: float = Field(default=0.0, allow_inf_nan=False)
    volatility: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    ohlc: Optional[OHLC] = None
    news_catalysts: list[str] = Field(default_factory=list)
    observed_at: UtcDatetime


# ── Engine outputs ─────────────────────────────────────────────────────


class MarketContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    instrument: str
    movement_type: MovementType
    percent_change: float
    magnitude: float = Field(..., ge=0)
    session: str
    historical_context: str
    known_catalysts: list[str] = Field(default_factory=list)
    ohlc: Optional[OHLC] = None
    volatility: Optional[float] = None


class PressureFactors(BaseModel):
    """Five behavioural pressure factors, each normalized to [0, 1]."""
    model_config = ConfigDict(frozen=True)

    trade_frequency_spike: float = Field(default=0.0, ge=0, le=1)
    position_size_deviation: float = Field(default=0.0, ge=0, le=1)
    loss_clustering: float = Field(default=0.0, ge=0, le=1)
    unusual_hours: float = Field(default=0.0, ge=0, le=1)
    short_intervals: float = Field(default=0.0, ge=0, le=1)


PRESSURE_FACTOR_NAMES: tuple[str, ...] = tuple(PressureFactors.model_fields)


class PressureScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: float = Field(..., ge=0, le=100)
    level: PressureLevel
    factors: PressureFactors
    contributing_factors: list[str] = Field(default_factory=list)
    weights_used: dict[str, float] = Field(default_factory=dict)
    thresholds_used: dict[str, float] = Field(default_factory=dict)


class PatternMatch(BaseModel):
    """A past losing trade whose fingerprint resembles the current trade."""
    model_config = ConfigDict(frozen=True)

    trade_id: str
    instrument: str
    traded_at: datetime
    similarity: float = Field(..., ge=0, le=1)
    pnl: float
    features: list[Optional[float]]
    current_features: list[Optional[float]]

    def describe(self) -> str:
        return (
            f"You're repeating pattern {self.trade_id} from "
            f"{self.traded_at.date().isoformat()} ({self.instrument}, "
            f"{self.similarity:.0%} similar, that trade closed at {self.pnl:.2f})"
        )


class BehaviourContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    pressure_score: PressureScore
    deviations: DeviationSet
    baseline: Baseline
    historical_summary: Optional[str] = None


class TradingInsight(BaseModel):
    model_config = ConfigDict(frozen=True)

    insight_id: str
    trader_id: str
    instrument: str
    trade_id: str
    market_context: MarketContext
    behaviour_context: BehaviourContext
    pressure_level: PressureLevel
    deterministic_score: float = Field(..., ge=0, le=100)
    pattern_matches: list[PatternMatch] = Field(default_factory=list)
    narrative: str
    narrative_source: Literal["provider", "template"]
    data_source_type: DataSourceType = DataSourceType.API
    input_hash: str
    created_at: datetime
