"""
Pattern Matcher.

Fingerprints each trade as a small feature vector and compares the current
trade against the trader's past losing trades:

  market_condition  movement-type ordinal / 4
  position_size     min(size / reference, cap) / cap
  time_of_day       (hour // 6) / 3
  trade_spacing     min(minutes since previous trade, cap) / cap

similarity = 1 - sqrt(Σ w_i (a_i - b_i)² / Σ w_i), so identical vectors
score exactly 1.0 and the farthest possible pair scores 0.0.

A trade without a recorded market condition has no market feature (None).
A feature missing on either side is left out of the sum, weight included.
"""

import math
from typing import Optional, Sequence

import structlog

from cipherwatch.engine.thresholds import ThresholdTable, default_threshold_table
from cipherwatch.schemas.trading import MovementType, PatternMatch, Trade

logger = structlog.get_logger(__name__)

FEATURE_NAMES = ("market_condition", "position_size", "time_of_day", "trade_spacing")
_MOVEMENT_ORDER = list(MovementType)


class PatternMatcher:
    def __init__(self, table: Optional[ThresholdTable] = None):
        self.table = table or default_threshold_table()

    def features(
        self, trade: Trade, previous: Optional[Trade], reference_size: float
    ) -> list[Optional[float]]:
        cfg = self.table.pattern_matching
        market: Optional[float] = None
        if trade.market_condition is not None:
            market = round(_MOVEMENT_ORDER.index(trade.market_condition) / (len(_MOVEMENT_ORDER) - 1), 6)

        reference = reference_size if reference_size > 0 else trade.position_size
        size = min(trade.position_size / reference, cfg.position_size_cap) / cfg.position_size_cap

        bucket = (trade.timestamp.hour // 6) / 3

        if previous is None:
            spacing = 1.0
        else:
            minutes = max(0.0, (trade.timestamp - previous.timestamp).total_seconds() / 60)
            spacing = min(minutes, cfg.spacing_cap_minutes) / cfg.spacing_cap_minutes

        return [market, round(size, 6), round(bucket, 6), round(spacing, 6)]

    def similarity(self, a: Sequence[Optional[float]], b: Sequence[Optional[float]]) -> float:
        weights = self.table.pattern_matching.feature_weights
        pairs = [
            (weights[name], x, y)
            for name, x, y in zip(FEATURE_NAMES, a, b)
            if x is not None and y is not None
        ]
        total = sum(w for w, _, _ in pairs)
        if total <= 0:
            return 0.0
        distance = sum(w * (x - y) ** 2 for w, x, y in pairs) / total
        return round(max(0.0, 1.0 - math.sqrt(distance)), 6)

    def match(self, history: Sequence[Trade], current: Trade, reference_size: float) -> list[PatternMatch]:
        """
        Past losing trades resembling ``current``, best first.

        Ties on similarity go to the most recent trade, then trade id.
        """
        cfg = self.table.pattern_matching
        ordered = sorted(
            [t for t in history if t.trade_id != current.trade_id and t.timestamp <= current.timestamp],
            key=lambda t: (t.timestamp, t.trade_id),
        )
        current_features = self.features(current, ordered[-1] if ordered else None, reference_size)

        matches: list[PatternMatch] = []
        for i, trade in enumerate(ordered):
            if not trade.is_loss:
                continue
            vector = self.features(trade, ordered[i - 1] if i > 0 else None, reference_size)
            score = self.similarity(vector, current_features)
            if score < cfg.min_similarity:
                continue
            matches.append(PatternMatch(
                trade_id=trade.trade_id,
                instrument=trade.instrument,
                traded_at=trade.timestamp,
                similarity=score,
                pnl=trade.pnl,
                features=vector,
                current_features=current_features,
            ))

        matches.sort(key=lambda m: m.trade_id)
        matches.sort(key=lambda m: (m.similarity, m.traded_at), reverse=True)
        if matches:
            logger.debug("pattern_matches_found", count=len(matches), best=matches[0].similarity)
        return matches[: cfg.max_matches]
