"""
Score Aggregator Tests.
"""

from datetime import datetime, timezone

import pytest

from cipherwatch.engine.deviation import DeviationDetector, ObservedEvent
from cipherwatch.engine.scoring import (
    FraudScoreAggregator,
    PressureScoreAggregator,
    clamp_score,
)
from cipherwatch.engine.thresholds import ThresholdTable
from cipherwatch.schemas.activity import Baseline
from cipherwatch.schemas.fraud import AlertType
from cipherwatch.schemas.trading import PressureFactors

NOW = datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)

BASELINE = Baseline(
    avg_transaction_amount=100.0,
    avg_transactions_per_day=1.0,
    typical_transaction_hours=list(range(24)),
    common_locations=["London, UK"],
    known_devices=["dev-1"],
    device_consistency=1.0,
    account_maturity=200,
)


def _deviations(**event_overrides):
    event = dict(timestamp=NOW, amount=100.0, location="London, UK", device_fingerprint="dev-1")
    event.update(event_overrides)
    return DeviationDetector().detect(BASELINE, ObservedEvent(**event))


class TestFraudScore:
    def setup_method(self):
        self.aggregator = FraudScoreAggregator()

    @pytest.mark.parametrize("alert_type,base", [
        (AlertType.IDENTITY_FRAUD, 60.0),
        (AlertType.ACCOUNT_TAKEOVER, 70.0),
        (AlertType.MONEY_LAUNDERING, 80.0),
        (AlertType.AFFILIATE_FRAUD, 50.0),
        (AlertType.SUSPICIOUS_TRADING, 65.0),
    ])
    def test_base_scores(self, alert_type, base):
        assert self.aggregator.base_score(alert_type) == base

    def test_no_deviation_keeps_base(self):
        result = self.aggregator.aggregate(AlertType.AFFILIATE_FRAUD, _deviations())
        assert result.deviation_multiplier == 1.0
        assert result.final_score == 50.0
        assert result.triggered_deviations == ()

    def test_product_of_multipliers(self):
        result = self.aggregator.aggregate(
            AlertType.AFFILIATE_FRAUD,
            _deviations(location="Lagos, NG", device_fingerprint="dev-2"),
        )
        assert result.deviation_multiplier == pytest.approx(2.7)
        assert result.raw_score == pytest.approx(135.0)
        assert result.final_score == 100.0
        assert result.triggered_deviations == ("location", "device", "velocity")

    def test_raw_score_kept_unclamped(self):
        result = self.aggregator.aggregate(AlertType.MONEY_LAUNDERING, _deviations(amount=4500.0))
        assert result.raw_score == pytest.approx(400.0)
        assert result.final_score == 100.0

    def test_rule_bonus(self):
        table = ThresholdTable(rule_bonus=5.0)
        aggregator = FraudScoreAggregator(table)
        assert aggregator.base_score(AlertType.IDENTITY_FRAUD, ["r1", "r2", "r3"]) == 75.0
        assert aggregator.base_score(AlertType.MONEY_LAUNDERING, ["r"] * 10) == 100.0

    def test_default_rule_bonus_ignores_rules(self):
        assert self.aggregator.base_score(AlertType.IDENTITY_FRAUD, ["r1", "r2"]) == 60.0


class TestPressureScore:
    def setup_method(self):
        self.aggregator = PressureScoreAggregator()

    def test_weighted_sum(self):
        factors = PressureFactors(
            trade_frequency_spike=0.4,
            position_size_deviation=0.1,
            loss_clustering=0.6,
            unusual_hours=0.0,
            short_intervals=0.0,
        )
        result = self.aggregator.aggregate(factors)
        assert result.score == pytest.approx(22.0)
        assert result.contributing_factors == ("trade_frequency_spike", "loss_clustering")
        assert result.dominant_factor.name == "loss_clustering"

    def test_bounds(self):
        assert self.aggregator.aggregate(PressureFactors()).score == 0.0
        full = PressureFactors(
            trade_frequency_spike=1, position_size_deviation=1, loss_clustering=1,
            unusual_hours=1, short_intervals=1,
        )
        assert self.aggregator.aggregate(full).score == pytest.approx(100.0)

    def test_weight_target_scaling(self):
        table = ThresholdTable(
            factor_weights={
                "trade_frequency_spike": 0.1,
                "position_size_deviation": 0.1,
                "loss_clustering": 0.1,
                "unusual_hours": 0.1,
                "short_intervals": 0.1,
            },
            factor_weight_target=0.5,
        )
        full = PressureFactors(
            trade_frequency_spike=1, position_size_deviation=1, loss_clustering=1,
            unusual_hours=1, short_intervals=1,
        )
        assert PressureScoreAggregator(table).aggregate(full).score == pytest.approx(100.0)

    def test_overweight_table_clamped(self):
        table = ThresholdTable(factor_weights={
            "trade_frequency_spike": 1.0,
            "position_size_deviation": 1.0,
            "loss_clustering": 1.0,
            "unusual_hours": 1.0,
            "short_intervals": 1.0,
        })
        full = PressureFactors(
            trade_frequency_spike=1, position_size_deviation=1, loss_clustering=1,
            unusual_hours=1, short_intervals=1,
        )
        assert PressureScoreAggregator(table).aggregate(full).score == 100.0


class TestClamp:
    def test_clamps(self):
        assert clamp_score(-5) == 0.0
        assert clamp_score(250) == 100.0

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
    def test_rejects_non_finite(self, bad):
        with pytest.raises(ValueError):
            clamp_score(bad)
