"""
Classifier.

Maps scores to levels through the active threshold table. Bands are
half-open: a score equal to a threshold lands in the higher band. Allowed
actions are a function of severity level alone.
"""

from typing import Optional

from cipherwatch.engine.scoring import clamp_score
from cipherwatch.engine.thresholds import ThresholdTable, default_threshold_table
from cipherwatch.schemas.levels import PressureLevel, SeverityLevel


class SeverityClassifier:
    def __init__(self, table: Optional[ThresholdTable] = None):
        self.table = table or default_threshold_table()

    @property
    def thresholds(self) -> dict[str, float]:
        t = self.table.severity_thresholds
        return {"medium": t.medium, "high": t.high, "critical": t.critical}

    def classify(self, score: float) -> SeverityLevel:
        score = clamp_score(score)
        t = self.table.severity_thresholds
        if score >= t.critical:
            return SeverityLevel.CRITICAL
        if score >= t.high:
            return SeverityLevel.HIGH
        if score >= t.medium:
            return SeverityLevel.MEDIUM
        return SeverityLevel.LOW

    def allowed_actions(self, level: SeverityLevel) -> list[str]:
        """Ordered action list for a level. Returns a copy."""
        return list(self.table.allowed_actions[SeverityLevel(level)])


class PressureClassifier:
    def __init__(self, table: Optional[ThresholdTable] = None):
        self.table = table or default_threshold_table()

    @property
    def thresholds(self) -> dict[str, float]:
        t = self.table.pressure_thresholds
        return {"elevated": t.elevated, "high_pressure": t.high_pressure}

    def classify(self, score: float) -> PressureLevel:
        score = clamp_score(score)
        t = self.table.pressure_thresholds
        if score >= t.high_pressure:
            return PressureLevel.HIGH_PRESSURE
        if score >= t.elevated:
            return PressureLevel.ELEVATED
        return PressureLevel.STABLE
