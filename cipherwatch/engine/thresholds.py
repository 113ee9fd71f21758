"""
Threshold Table.

Every constant the engine uses (base scores, multipliers, band thresholds,
factor weights, action lists) lives in one versioned table. The table is
loaded once at construction and is read-only afterwards; unknown keys are
rejected so a typo cannot silently fall back to a default.
"""

import json
from pathlib import Path
from typing import Optional, Union

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from cipherwatch.exceptions import ConfigurationError
from cipherwatch.schemas.fraud import AlertType
from cipherwatch.schemas.levels import SeverityLevel
from cipherwatch.schemas.trading import PRESSURE_FACTOR_NAMES

logger = structlog.get_logger(__name__)


# ── Configuration ─────────────────────────────────────────────────────────

DEFAULT_BASE_SCORES: dict[str, float] = {
    AlertType.IDENTITY_FRAUD.value: 60.0,
    AlertType.ACCOUNT_TAKEOVER.value: 70.0,
    AlertType.MONEY_LAUNDERING.value: 80.0,
    AlertType.AFFILIATE_FRAUD.value: 50.0,
    AlertType.SUSPICIOUS_TRADING.value: 65.0,
    "default": 50.0,
}

DEFAULT_ALLOWED_ACTIONS: dict[SeverityLevel, list[str]] = {
    SeverityLevel.LOW: ["monitor"],
    SeverityLevel.MEDIUM: ["monitor", "request_verification", "limit_transactions"],
    SeverityLevel.HIGH: [
        "monitor",
        "request_verification",
        "limit_transactions",
        "restrict_account",
        "escalate",
    ],
    SeverityLevel.CRITICAL: ["freeze_account", "escalate", "notify_compliance"],
}

DEFAULT_EXCLUDED_STATUSES = ["failed", "declined", "cancelled", "reversed", "pending"]


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class MultiplierConfig(_Section):
    amount_ceiling: float = Field(default=5.0, ge=1.0)
    frequency_ceiling: float = Field(default=5.0, ge=1.0)
    unusual_time: float = Field(default=1.5, ge=1.0)
    new_location: float = Field(default=1.8, ge=1.0)
    new_device: float = Field(default=1.5, ge=1.0)


class DeviationConfig(_Section):
    epsilon: float = Field(default=1e-9, gt=0)
    frequency_window_hours: int = Field(default=24, gt=0)
    amount_unusual_deviation: float = Field(default=1.0, gt=0)
    frequency_unusual_deviation: float = Field(default=1.0, gt=0)
    new_account_days: int = Field(default=30, ge=0)
    velocity_min_axes: int = Field(default=2, ge=1, le=5)
    short_interval_minutes: float = Field(default=15.0, gt=0)


class DefaultBaselineConfig(_Section):
    avg_transaction_amount: float = Field(default=100.0, ge=0)
    avg_transactions_per_day: float = Field(default=1.0, ge=0)


class BaselineConfig(_Section):
    min_hour_samples: int = Field(default=5, ge=1)
    typical_hours_mass: float = Field(default=0.8, gt=0, le=1)
    account_maturity_cap_days: int = Field(default=365, ge=1)
    excluded_statuses: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDED_STATUSES))
    default: DefaultBaselineConfig = Field(default_factory=DefaultBaselineConfig)

    @field_validator("excluded_statuses")
    @classmethod
    def _lowercase(cls, v: list[str]) -> list[str]:
        return [s.strip().lower() for s in v]


class SeverityThresholds(_Section):
    medium: float = 40.0
    high: float = 60.0
    critical: float = 80.0

    @model_validator(mode="after")
    def _ascending(self) -> "SeverityThresholds":
        if not 0 < self.medium < self.high < self.critical <= 100:
            raise ValueError("severity thresholds must satisfy 0 < medium < high < critical <= 100")
        return self


class PressureThresholds(_Section):
    elevated: float = 40.0
    high_pressure: float = 70.0

    @model_validator(mode="after")
    def _ascending(self) -> "PressureThresholds":
        if not 0 < self.elevated < self.high_pressure <= 100:
            raise ValueError("pressure thresholds must satisfy 0 < elevated < high_pressure <= 100")
        return self


class PatternMatchingConfig(_Section):
    min_similarity: float = Field(default=0.75, ge=0, le=1)
    max_matches: int = Field(default=5, ge=1)
    position_size_cap: float = Field(default=5.0, gt=0)
    spacing_cap_minutes: float = Field(default=240.0, gt=0)
    feature_weights: dict[str, float] = Field(
        default_factory=lambda: {
            "market_condition": 1.0,
            "position_size": 1.0,
            "time_of_day": 1.0,
            "trade_spacing": 1.0,
        }
    )

    @field_validator("feature_weights")
    @classmethod
    def _known_features(cls, v: dict[str, float]) -> dict[str, float]:
        expected = {"market_condition", "position_size", "time_of_day", "trade_spacing"}
        if set(v) != expected:
            raise ValueError(f"feature_weights must define exactly {sorted(expected)}")
        if any(w < 0 for w in v.values()) or sum(v.values()) <= 0:
            raise ValueError("feature weights must be non-negative with a positive sum")
        return v


class ThresholdTable(_Section):
    """Named, versioned table of every scoring constant."""

    version: str = "default"
    base_score: dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_BASE_SCORES))
    rule_bonus: float = Field(default=0.0, ge=0)
    multipliers: MultiplierConfig = Field(default_factory=MultiplierConfig)
    deviation: DeviationConfig = Field(default_factory=DeviationConfig)
    baseline: BaselineConfig = Field(default_factory=BaselineConfig)
    severity_thresholds: SeverityThresholds = Field(default_factory=SeverityThresholds)
    pressure_thresholds: PressureThresholds = Field(default_factory=PressureThresholds)
    factor_weights: dict[str, float] = Field(
        default_factory=lambda: {name: 0.2 for name in PRESSURE_FACTOR_NAMES}
    )
    factor_weight_target: float = Field(default=1.0, gt=0)
    contributing_factor_threshold: float = Field(default=0.3, ge=0, le=1)
    pattern_matching: PatternMatchingConfig = Field(default_factory=PatternMatchingConfig)
    allowed_actions: dict[SeverityLevel, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_ALLOWED_ACTIONS.items()}
    )

    @field_validator("base_score")
    @classmethod
    def _base_scores(cls, v: dict[str, float]) -> dict[str, float]:
        known = {t.value for t in AlertType} | {"default"}
        unknown = set(v) - known
        if unknown:
            raise ValueError(f"unknown alert types in base_score: {sorted(unknown)}")
        if "default" not in v:
            raise ValueError("base_score must define a 'default' entry")
        if any(not 0 <= s <= 100 for s in v.values()):
            raise ValueError("base scores must lie in [0, 100]")
        return v

    @field_validator("factor_weights")
    @classmethod
    def _factor_weights(cls, v: dict[str, float]) -> dict[str, float]:
        if set(v) != set(PRESSURE_FACTOR_NAMES):
            raise ValueError(f"factor_weights must define exactly {list(PRESSURE_FACTOR_NAMES)}")
        if any(w < 0 for w in v.values()):
            raise ValueError("factor weights must be non-negative")
        return v

    @field_validator("allowed_actions")
    @classmethod
    def _all_levels(cls, v: dict[SeverityLevel, list[str]]) -> dict[SeverityLevel, list[str]]:
        missing = [level.value for level in SeverityLevel if level not in v]
        if missing:
            raise ValueError(f"allowed_actions missing levels: {missing}")
        return v


def default_threshold_table() -> ThresholdTable:
    return ThresholdTable()


def load_threshold_table(path: Optional[Union[str, Path]] = None) -> ThresholdTable:
    """
    Load a threshold table from a YAML or JSON file.

    No path → built-in defaults. Any read, parse or validation failure
    raises ConfigurationError.
    """
    if path is None:
        return default_threshold_table()

    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read threshold table: {e}", source=str(path), cause=e) from e

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Threshold table is not valid: {e}", source=str(path), cause=e) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError("Threshold table must be a mapping", source=str(path))

    try:
        table = ThresholdTable.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Threshold table rejected: {e}", source=str(path), cause=e) from e

    logger.info("threshold_table_loaded", path=str(path), version=table.version)
    return table
