"""
Score Aggregator.

Fraud path:   final = clamp(base_score(alert_type) × Π axis multipliers, 0, 100)
Trading path: score = clamp(Σ factor_i × weight_i × 100 / weight_target, 0, 100)

The raw (unclamped) fraud product is kept for the audit record. Both
computations are pure and reproducible for identical inputs.
"""

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

import structlog

from cipherwatch.engine.thresholds import ThresholdTable, default_threshold_table
from cipherwatch.schemas.deviation import DeviationSet
from cipherwatch.schemas.fraud import AlertType
from cipherwatch.schemas.trading import PRESSURE_FACTOR_NAMES, PressureFactors

logger = structlog.get_logger(__name__)


def clamp_score(value: float) -> float:
    if not math.isfinite(value):
        raise ValueError(f"score must be finite, got {value!r}")
    return max(0.0, min(100.0, value))


@dataclass(frozen=True)
class FraudScore:
    """Output of the fraud aggregation, fully traceable to its inputs."""
    base_score: float
    deviation_multiplier: float          # Π axis multipliers, >= 1.0
    raw_score: float                     # base × multiplier, unclamped
    final_score: float                   # clamped to [0, 100]
    multipliers: dict[str, float] = field(default_factory=dict)
    triggered_deviations: tuple[str, ...] = ()


@dataclass(frozen=True)
class FactorContribution:
    name: str
    value: float
    weight: float
    weighted_contribution: float         # value × weight × 100 / target


@dataclass(frozen=True)
class PressureAggregate:
    score: float
    contributions: tuple[FactorContribution, ...]
    contributing_factors: tuple[str, ...]
    weights_used: dict[str, float] = field(default_factory=dict)

    @property
    def dominant_factor(self) -> Optional[FactorContribution]:
        if not self.contributions:
            return None
        return max(self.contributions, key=lambda c: c.weighted_contribution)


class FraudScoreAggregator:
    def __init__(self, table: Optional[ThresholdTable] = None):
        self.table = table or default_threshold_table()

    def base_score(self, alert_type: AlertType, triggered_rules: Sequence[str] = ()) -> float:
        scores = self.table.base_score
        base = scores.get(AlertType(alert_type).value, scores["default"])
        return min(100.0, base + self.table.rule_bonus * len(triggered_rules))

    def aggregate(
        self,
        alert_type: AlertType,
        deviations: DeviationSet,
        triggered_rules: Sequence[str] = (),
    ) -> FraudScore:
        base = self.base_score(alert_type, triggered_rules)
        multipliers = deviations.multipliers()
        product = math.prod(multipliers.values())
        raw = base * product
        result = FraudScore(
            base_score=base,
            deviation_multiplier=round(product, 6),
            raw_score=round(raw, 6),
            final_score=round(clamp_score(raw), 4),
            multipliers=multipliers,
            triggered_deviations=tuple(deviations.triggered()),
        )
        logger.debug(
            "fraud_score_aggregated",
            alert_type=str(alert_type),
            base_score=base,
            multiplier=result.deviation_multiplier,
            final_score=result.final_score,
        )
        return result


class PressureScoreAggregator:
    def __init__(self, table: Optional[ThresholdTable] = None):
        self.table = table or default_threshold_table()

    def aggregate(self, factors: PressureFactors) -> PressureAggregate:
        weights = self.table.factor_weights
        scale = 100.0 / self.table.factor_weight_target
        contributions = []
        total = 0.0
        for name in PRESSURE_FACTOR_NAMES:
            value = getattr(factors, name)
            weighted = value * weights[name] * scale
            total += weighted
            contributions.append(FactorContribution(
                name=name,
                value=value,
                weight=weights[name],
                weighted_contribution=round(weighted, 4),
            ))

        threshold = self.table.contributing_factor_threshold
        return PressureAggregate(
            score=round(clamp_score(total), 2),
            contributions=tuple(contributions),
            contributing_factors=tuple(c.name for c in contributions if c.value > threshold),
            weights_used=dict(weights),
        )
