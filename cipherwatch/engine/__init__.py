"""Pure scoring engine: baseline, deviation, patterns, scoring, classification."""

from cipherwatch.engine.baseline import BaselineBuilder
from cipherwatch.engine.cache import BaselineCache
from cipherwatch.engine.classifier import PressureClassifier, SeverityClassifier
from cipherwatch.engine.deviation import DeviationDetector, ObservedEvent
from cipherwatch.engine.market import MarketContextEngine
from cipherwatch.engine.patterns import PatternMatcher
from cipherwatch.engine.pressure import PressureFactorExtractor
from cipherwatch.engine.scoring import FraudScoreAggregator, PressureScoreAggregator
from cipherwatch.engine.thresholds import ThresholdTable, default_threshold_table, load_threshold_table

__all__ = [
    "BaselineBuilder",
    "BaselineCache",
    "DeviationDetector",
    "FraudScoreAggregator",
    "MarketContextEngine",
    "ObservedEvent",
    "PatternMatcher",
    "PressureClassifier",
    "PressureFactorExtractor",
    "PressureScoreAggregator",
    "SeverityClassifier",
    "ThresholdTable",
    "default_threshold_table",
    "load_threshold_table",
]
