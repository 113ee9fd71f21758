"""
Deviation Detector.

Compares one observed event against a subject's baseline along five axes
(amount, frequency, temporal, location, device). Each axis yields a
magnitude and a multiplier >= 1.0. Cross-axis flags (new account, velocity)
are computed afterwards from the completed set, so no axis depends on
another.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

import structlog

from cipherwatch.engine.thresholds import ThresholdTable, default_threshold_table
from cipherwatch.schemas.activity import Baseline, UserActivity, location_key
from cipherwatch.schemas.common import ensure_utc
from cipherwatch.schemas.deviation import (
    AmountDeviation,
    DeviationSet,
    DeviceDeviation,
    FrequencyDeviation,
    LocationDeviation,
    TemporalDeviation,
)
from cipherwatch.schemas.fraud import Alert
from cipherwatch.schemas.trading import Trade

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ObservedEvent:
    """Path-independent view of the event under evaluation."""
    timestamp: datetime
    amount: Optional[float] = None
    location: Optional[str] = None       # "City, Country"
    device_fingerprint: Optional[str] = None
    window_count: int = 1                # events in trailing window, this one included


def count_in_window(timestamps: Iterable[datetime], at: datetime, window_hours: int) -> int:
    """Number of timestamps in (at - window, at]."""
    start = at - timedelta(hours=window_hours)
    return sum(1 for ts in timestamps if start < ts <= at)


def observe_alert(
    alert: Alert,
    activity: UserActivity,
    window_hours: int,
    excluded_statuses: Iterable[str] = (),
) -> ObservedEvent:
    """Normalize a fraud alert; the window count adds the alert itself."""
    excluded = {s.lower() for s in excluded_statuses}
    prior = [
        t.timestamp for t in activity.transaction_history
        if t.status.strip().lower() not in excluded
    ]
    location = alert.raw_data.location
    return ObservedEvent(
        timestamp=alert.timestamp,
        amount=alert.raw_data.transaction_amount,
        location=location.label if location else None,
        device_fingerprint=alert.raw_data.device_fingerprint or None,
        window_count=count_in_window(prior, alert.timestamp, window_hours) + 1,
    )


def observe_trade(trade: Trade, history: Iterable[Trade], window_hours: int) -> ObservedEvent:
    """Normalize a trade; location and device axes never trigger for trades."""
    prior = [t.timestamp for t in history if t.trade_id != trade.trade_id]
    return ObservedEvent(
        timestamp=trade.timestamp,
        amount=trade.position_size,
        window_count=count_in_window(prior, trade.timestamp, window_hours) + 1,
    )


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


class DeviationDetector:
    """Computes DeviationSets under a threshold table."""

    def __init__(self, table: Optional[ThresholdTable] = None):
        self.table = table or default_threshold_table()

    def detect(self, baseline: Baseline, event: ObservedEvent) -> DeviationSet:
        deviations = DeviationSet(
            amount=self._amount(baseline, event),
            frequency=self._frequency(baseline, event),
            temporal=self._temporal(baseline, event),
            location=self._location(baseline, event),
            device=self._device(baseline, event),
        )
        deviations = self.apply_flags(baseline, deviations)
        logger.debug(
            "deviations_detected",
            multipliers=deviations.multipliers(),
            new_account=deviations.new_account_flag,
            velocity=deviations.velocity_flag,
        )
        return deviations

    def apply_flags(self, baseline: Baseline, deviations: DeviationSet) -> DeviationSet:
        """Post-pass over a completed set: new-account and velocity flags."""
        cfg = self.table.deviation
        return deviations.model_copy(update={
            "new_account_flag": baseline.account_maturity < cfg.new_account_days,
            "velocity_flag": len(deviations.unusual_axes()) >= cfg.velocity_min_axes,
        })

    # ── Axes ──────────────────────────────────────────────────────────

    def _ratio_multiplier(self, deviation: float, ceiling: float) -> float:
        return round(_clamp(1.0 + max(0.0, deviation), 1.0, ceiling), 6)

    def _amount(self, baseline: Baseline, event: ObservedEvent) -> AmountDeviation:
        cfg = self.table.deviation
        avg = baseline.avg_transaction_amount
        if event.amount is None:
            return AmountDeviation(deviation=0.0, multiplier=1.0, current=None, baseline=avg)

        deviation = round((event.amount - avg) / max(avg, cfg.epsilon), 6)
        return AmountDeviation(
            deviation=deviation,
            multiplier=self._ratio_multiplier(deviation, self.table.multipliers.amount_ceiling),
            current=event.amount,
            baseline=avg,
            is_unusual=deviation >= cfg.amount_unusual_deviation,
        )

    def _frequency(self, baseline: Baseline, event: ObservedEvent) -> FrequencyDeviation:
        cfg = self.table.deviation
        expected = baseline.avg_transactions_per_day * cfg.frequency_window_hours / 24
        deviation = round((event.window_count - expected) / max(expected, cfg.epsilon), 6)
        return FrequencyDeviation(
            deviation=deviation,
            multiplier=self._ratio_multiplier(deviation, self.table.multipliers.frequency_ceiling),
            window_count=event.window_count,
            expected_count=round(expected, 6),
            window_hours=cfg.frequency_window_hours,
            is_unusual=deviation >= cfg.frequency_unusual_deviation,
        )

    def _temporal(self, baseline: Baseline, event: ObservedEvent) -> TemporalDeviation:
        hour = ensure_utc(event.timestamp).hour
        unusual = hour not in baseline.typical_transaction_hours
        return TemporalDeviation(
            deviation=1.0 if unusual else 0.0,
            multiplier=self.table.multipliers.unusual_time if unusual else 1.0,
            current_hour=hour,
            typical_hours=list(baseline.typical_transaction_hours),
            is_unusual_time=unusual,
        )

    def _location(self, baseline: Baseline, event: ObservedEvent) -> LocationDeviation:
        if event.location is None:
            return LocationDeviation(deviation=0.0, common=list(baseline.common_locations))
        known = {location_key(label) for label in baseline.common_locations}
        new = location_key(event.location) not in known
        return LocationDeviation(
            deviation=1.0 if new else 0.0,
            multiplier=self.table.multipliers.new_location if new else 1.0,
            current=event.location,
            common=list(baseline.common_locations),
            is_new_location=new,
        )

    def _device(self, baseline: Baseline, event: ObservedEvent) -> DeviceDeviation:
        if event.device_fingerprint is None:
            return DeviceDeviation(deviation=0.0)
        new = event.device_fingerprint not in set(baseline.known_devices)
        return DeviceDeviation(
            deviation=1.0 if new else 0.0,
            multiplier=self.table.multipliers.new_device if new else 1.0,
            current=event.device_fingerprint,
            is_new_device=new,
        )
