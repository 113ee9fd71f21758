"""
Fraud path schemas.

Alert in, Investigation out. Investigations are immutable; a
re-investigation produces a new record with a new id.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from cipherwatch.schemas.activity import Baseline, Location, UserActivity
from cipherwatch.schemas.common import UtcDatetime
from cipherwatch.schemas.deviation import DeviationSet
from cipherwatch.schemas.levels import SeverityLevel


# ── Enums ──────────────────────────────────────────────────────────────


class AlertType(StrEnum):
    IDENTITY_FRAUD = "identity_fraud"
    ACCOUNT_TAKEOVER = "account_takeover"
    MONEY_LAUNDERING = "money_laundering"
    AFFILIATE_FRAUD = "affiliate_fraud"
    SUSPICIOUS_TRADING = "suspicious_trading"


class TimelineCategory(StrEnum):
    ALERT = "alert"
    DEVIATION = "deviation"
    CLASSIFICATION = "classification"
    ACTION = "action"


# ── Alert ──────────────────────────────────────────────────────────────


class AlertData(BaseModel):
    """Observed event payload. Unknown keys are kept for the record."""
    model_config = ConfigDict(extra="allow", frozen=True)

    transaction_amount: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    location: Optional[Location] = None
    device_fingerprint: Optional[str] = None
    ip_address: Optional[str] = None


class Alert(BaseModel):
    model_config = ConfigDict(frozen=True)

    alert_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    alert_type: AlertType
    timestamp: UtcDatetime
    triggered_rules: list[str] = Field(default_factory=list)
    raw_data: AlertData = Field(default_factory=AlertData)


# ── Investigation ──────────────────────────────────────────────────────


class TimelineEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    event: str
    category: TimelineCategory
    details: Optional[str] = None


class SeverityJustification(BaseModel):
    """Exactly how the final score and level were reached."""
    model_config = ConfigDict(frozen=True)

    base_score: float
    deviation_multiplier: float = Field(..., ge=1.0)
    raw_score: float
    final_score: float = Field(..., ge=0, le=100)
    severity_level: SeverityLevel
    multipliers: dict[str, float] = Field(default_factory=dict)
    thresholds_used: dict[str, float] = Field(default_factory=dict)
    triggered_deviations: list[str] = Field(default_factory=list)


class AuditTrail(BaseModel):
    """Denormalized justification plus who/when and a hash of the inputs."""
    model_config = ConfigDict(frozen=True)

    alert_id: str
    user_id: str
    severity_assigned: SeverityLevel
    base_score: float
    deviation_multiplier: float
    raw_score: float
    final_score: float
    thresholds_applied: dict[str, float]
    triggered_deviations: list[str]
    baseline_source: Literal["history", "default"]
    threshold_table_version: str
    input_hash: str
    assessed_by: str
    timestamp: datetime


class Investigation(BaseModel):
    model_config = ConfigDict(frozen=True)

    investigation_id: str
    alert: Alert
    user_activity: UserActivity
    baseline: Baseline
    deviations: DeviationSet
    severity: SeverityLevel
    timeline: list[TimelineEvent]
    narrative: str
    narrative_source: Literal["provider", "template"]
    allowed_actions: list[str]
    justification: SeverityJustification
    audit_trail: AuditTrail
    pattern_signature: list[str] = Field(default_factory=list)
    detection_summary: str = ""
    generated_at: datetime


class ActionAck(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    investigation_id: str
    action_type: str
    audit_entry_id: str
    recorded_at: datetime
    details: dict[str, Any] = Field(default_factory=dict)
