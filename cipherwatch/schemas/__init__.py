"""Pydantic schemas for events, engine outputs and persisted records."""

from cipherwatch.schemas.activity import Baseline, Location, LoginLocation, Transaction, UserActivity
from cipherwatch.schemas.audit import AuditAction, AuditEntry
from cipherwatch.schemas.deviation import DeviationSet
from cipherwatch.schemas.fraud import (
    ActionAck,
    Alert,
    AlertData,
    AlertType,
    AuditTrail,
    Investigation,
    SeverityJustification,
    TimelineCategory,
    TimelineEvent,
)
from cipherwatch.schemas.levels import PressureLevel, SeverityLevel
from cipherwatch.schemas.requests import (
    EvaluateAlertRequest,
    ListInsightsRequest,
    RecordActionRequest,
    TradingScanRequest,
)
from cipherwatch.schemas.trading import (
    MarketContext,
    MarketObservation,
    MovementType,
    PatternMatch,
    PressureFactors,
    PressureScore,
    Trade,
    TradingInsight,
)

__all__ = [
    "ActionAck",
    "Alert",
    "AlertData",
    "AlertType",
    "AuditAction",
    "AuditEntry",
    "AuditTrail",
    "Baseline",
    "DeviationSet",
    "EvaluateAlertRequest",
    "Investigation",
    "ListInsightsRequest",
    "Location",
    "LoginLocation",
    "MarketContext",
    "MarketObservation",
    "MovementType",
    "PatternMatch",
    "PressureFactors",
    "PressureLevel",
    "PressureScore",
    "RecordActionRequest",
    "SeverityJustification",
    "SeverityLevel",
    "TimelineCategory",
    "TimelineEvent",
    "Trade",
    "TradingInsight",
    "TradingScanRequest",
    "Transaction",
    "UserActivity",
]
