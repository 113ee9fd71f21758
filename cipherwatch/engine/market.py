"""
Market Context Engine.

Explains what the market did around a trade: movement type, magnitude and
trading session. Explanations only, never predictions.
"""

from typing import Optional

from cipherwatch.schemas.trading import MarketContext, MarketObservation, MovementType


# ── Configuration ─────────────────────────────────────────────────────────

REGIME_CHANGE_PCT = 5.0
REGIME_CHANGE_VOLATILITY = 0.02
SUDDEN_SPIKE_PCT = 3.0
TREND_PCT = 1.0

# Session overlap hours (UTC), inclusive
OVERLAP_HOURS = set(range(8, 17))

HISTORICAL_CONTEXT: dict[MovementType, str] = {
    MovementType.SUDDEN_SPIKE: (
        "Price movement of {magnitude:.2f}% represents a significant intraday shift, "
        "typically seen during major news events or liquidity gaps."
    ),
    MovementType.VOLATILITY_REGIME_CHANGE: (
        "Elevated volatility suggests a shift in market regime, potentially driven by "
        "macroeconomic factors or structural market changes."
    ),
    MovementType.SESSION_ANOMALY: (
        "Movement during session overlap periods often reflects increased liquidity "
        "and cross-market flows."
    ),
    MovementType.GRADUAL_TREND: (
        "Gradual price movement indicates sustained directional bias, consistent with "
        "trend-following behavior."
    ),
    MovementType.NORMAL: (
        "Price movement within normal range, consistent with typical market microstructure."
    ),
}


def trading_session(hour: int) -> str:
    if 0 <= hour < 8:
        return "Asia session"
    if 8 <= hour < 13:
        return "London session"
    if 13 <= hour < 22:
        return "NY session"
    return "Overlap period"


class MarketContextEngine:
    """Classifies market observations."""

    def movement_type(self, percent_change: float, volatility: Optional[float], hour: int) -> MovementType:
        change = abs(percent_change)
        if change > REGIME_CHANGE_PCT and (volatility or 0.0) > REGIME_CHANGE_VOLATILITY:
            return MovementType.VOLATILITY_REGIME_CHANGE
        if change > SUDDEN_SPIKE_PCT:
            return MovementType.SUDDEN_SPIKE
        if change > TREND_PCT:
            if hour in OVERLAP_HOURS:
                return MovementType.SESSION_ANOMALY
            return MovementType.GRADUAL_TREND
        return MovementType.NORMAL

    def analyze(self, instrument: str, observation: MarketObservation) -> MarketContext:
        hour = observation.observed_at.hour
        movement = self.movement_type(observation.percent_change, observation.volatility, hour)
        magnitude = abs(observation.percent_change)
        return MarketContext(
            instrument=instrument,
            movement_type=movement,
            percent_change=observation.percent_change,
            magnitude=magnitude,
            session=trading_session(hour),
            historical_context=HISTORICAL_CONTEXT[movement].format(magnitude=magnitude),
            known_catalysts=list(observation.news_catalysts),
            ohlc=observation.ohlc,
            volatility=observation.volatility,
        )
