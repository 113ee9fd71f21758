"""
Behavioural pressure factors.

Turns a trader's recent trades and the DeviationSet of the latest trade
into five factors in [0, 1]:

  trade_frequency_spike   = (frequency multiplier - 1) / (ceiling - 1)
  position_size_deviation = (amount multiplier - 1) / (ceiling - 1)
  loss_clustering         = losing trades / trades in the trailing window
  unusual_hours           = 1 if the trade hour is atypical else 0
  short_intervals         = share of in-window gaps below the short interval
"""

from datetime import datetime, timedelta
from typing import Optional, Sequence

from cipherwatch.engine.thresholds import ThresholdTable, default_threshold_table
from cipherwatch.schemas.deviation import DeviationSet
from cipherwatch.schemas.trading import PressureFactors, Trade


def _normalize_multiplier(multiplier: float, ceiling: float) -> float:
    if ceiling <= 1.0:
        return 1.0 if multiplier > 1.0 else 0.0
    return max(0.0, min(1.0, (multiplier - 1.0) / (ceiling - 1.0)))


class PressureFactorExtractor:
    def __init__(self, table: Optional[ThresholdTable] = None):
        self.table = table or default_threshold_table()

    def window_trades(self, trades: Sequence[Trade], now: datetime) -> list[Trade]:
        start = now - timedelta(hours=self.table.deviation.frequency_window_hours)
        return sorted(
            (t for t in trades if start < t.timestamp <= now),
            key=lambda t: (t.timestamp, t.trade_id),
        )

    def extract(self, trades: Sequence[Trade], deviations: DeviationSet, now: datetime) -> PressureFactors:
        multipliers = self.table.multipliers
        recent = self.window_trades(trades, now)

        losses = sum(1 for t in recent if t.is_loss)
        loss_clustering = losses / len(recent) if recent else 0.0

        gaps = [
            (b.timestamp - a.timestamp).total_seconds() / 60
            for a, b in zip(recent, recent[1:])
        ]
        short = sum(1 for g in gaps if g < self.table.deviation.short_interval_minutes)
        short_intervals = short / len(gaps) if gaps else 0.0

        return PressureFactors(
            trade_frequency_spike=round(
                _normalize_multiplier(deviations.frequency.multiplier, multipliers.frequency_ceiling), 4
            ),
            position_size_deviation=round(
                _normalize_multiplier(deviations.amount.multiplier, multipliers.amount_ceiling), 4
            ),
            loss_clustering=round(loss_clustering, 4),
            unusual_hours=1.0 if deviations.temporal.is_unusual_time else 0.0,
            short_intervals=round(short_intervals, 4),
        )
