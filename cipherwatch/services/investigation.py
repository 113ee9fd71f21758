"""
Investigation Assembler.

Alert + activity → baseline → deviations → fraud score → severity →
timeline, narrative and audit trail → one persisted, immutable
Investigation.

The whole record is built in memory and written with a single create, so
a failure or cancellation before that write leaves nothing behind.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import structlog

from cipherwatch.engine.classifier import SeverityClassifier
from cipherwatch.engine.deterministic import compute_input_hash
from cipherwatch.engine.deviation import DeviationDetector, observe_alert
from cipherwatch.engine.scoring import FraudScore, FraudScoreAggregator
from cipherwatch.engine.thresholds import ThresholdTable
from cipherwatch.narrative.base import InvestigationNarrativeRequest
from cipherwatch.narrative.service import NarrativeService
from cipherwatch.schemas.activity import Baseline, UserActivity
from cipherwatch.schemas.audit import AuditAction
from cipherwatch.schemas.common import utc_now
from cipherwatch.schemas.deviation import DeviationSet
from cipherwatch.schemas.fraud import (
    ActionAck,
    Alert,
    AuditTrail,
    Investigation,
    SeverityJustification,
    TimelineCategory,
    TimelineEvent,
)
from cipherwatch.schemas.levels import SeverityLevel
from cipherwatch.schemas.requests import RecordActionRequest
from cipherwatch.services.audit import AuditLogger
from cipherwatch.services.baselines import BaselineResolver
from cipherwatch.storage.repositories import InvestigationRepository

logger = structlog.get_logger(__name__)


# ── Record helpers ────────────────────────────────────────────────────────


def deviation_details(deviations: DeviationSet) -> dict[str, dict]:
    """Context of every triggered axis, keyed by axis name."""
    details: dict[str, dict] = {}
    for name, axis in deviations.axes().items():
        if axis.triggered:
            details[name] = axis.model_dump(mode="json", exclude={"typical_hours", "common"})
    return details


def describe_axis(name: str, deviations: DeviationSet) -> str:
    if name == "amount":
        a = deviations.amount
        return f"{a.current:.2f} vs baseline {a.baseline:.2f} (multiplier {a.multiplier:.2f}x)"
    if name == "frequency":
        f = deviations.frequency
        return (
            f"{f.window_count} events in {f.window_hours}h vs {f.expected_count:.2f} expected "
            f"(multiplier {f.multiplier:.2f}x)"
        )
    if name == "temporal":
        return f"hour {deviations.temporal.current_hour:02d} UTC outside typical hours"
    if name == "location":
        return f"{deviations.location.current} not among known locations"
    if name == "device":
        return f"fingerprint {deviations.device.current} not seen before"
    return name


def build_timeline(alert: Alert, deviations: DeviationSet, level: SeverityLevel, score: FraudScore) -> list[TimelineEvent]:
    """Alert entry, then one entry per triggered deviation or flag, then the classification."""
    timeline = [
        TimelineEvent(
            timestamp=alert.timestamp,
            event=f"Alert triggered: {alert.alert_type.value}",
            category=TimelineCategory.ALERT,
            details=", ".join(alert.triggered_rules) or None,
        )
    ]
    for name, axis in deviations.axes().items():
        if axis.triggered:
            timeline.append(TimelineEvent(
                timestamp=alert.timestamp,
                event=f"Deviation detected: {name}",
                category=TimelineCategory.DEVIATION,
                details=describe_axis(name, deviations),
            ))
    if deviations.new_account_flag:
        timeline.append(TimelineEvent(
            timestamp=alert.timestamp,
            event="Flag raised: new_account",
            category=TimelineCategory.DEVIATION,
        ))
    if deviations.velocity_flag:
        timeline.append(TimelineEvent(
            timestamp=alert.timestamp,
            event="Flag raised: velocity",
            category=TimelineCategory.DEVIATION,
            details=", ".join(deviations.unusual_axes()),
        ))
    timeline.append(TimelineEvent(
        timestamp=alert.timestamp,
        event=f"Severity classified: {level.value}",
        category=TimelineCategory.CLASSIFICATION,
        details=f"score {score.final_score:.2f}",
    ))
    return timeline


def summarize_pattern(deviations: DeviationSet, new_account_days: int) -> list[str]:
    patterns: list[str] = []
    if deviations.amount.triggered:
        patterns.append("Transaction amount spiked vs. baseline")
    if deviations.location.triggered:
        patterns.append("New geographic cluster detected")
    if deviations.device.triggered:
        patterns.append("New device fingerprint in play")
    if deviations.temporal.triggered:
        patterns.append("Activity outside typical hours")
    if deviations.new_account_flag:
        patterns.append(f"Relatively new account (<{new_account_days} days)")
    if deviations.velocity_flag or deviations.frequency.triggered:
        patterns.append("Velocity spikes show burst behavior")
    if not patterns:
        patterns.append("Pattern matches baseline behavior")
    return patterns


def build_detection_summary(
    alert: Alert,
    level: SeverityLevel,
    justification: SeverityJustification,
    patterns: list[str],
) -> str:
    triggered = ", ".join(justification.triggered_deviations) or "None"
    return (
        f"Alert {alert.alert_id} ({alert.alert_type.value}) classified as {level.value.upper()} "
        f"with score {justification.final_score:.2f} and multiplier "
        f"{justification.deviation_multiplier:.2f}. Patterns: {'; '.join(patterns)}. "
        f"Triggered deviations: {triggered}."
    )


# ── Assembler ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FraudEvaluation:
    """Pure scoring result for one alert, before narrative and persistence."""
    baseline: Baseline
    deviations: DeviationSet
    score: FraudScore
    level: SeverityLevel
    allowed_actions: list[str]
    justification: SeverityJustification


class InvestigationAssembler:
    def __init__(
        self,
        table: ThresholdTable,
        resolver: BaselineResolver,
        investigations: InvestigationRepository,
        audit: AuditLogger,
        narratives: NarrativeService,
        assessed_by: str = "cipherwatch-engine",
        clock: Callable[[], datetime] = utc_now,
    ):
        self.table = table
        self.resolver = resolver
        self.investigations = investigations
        self.audit = audit
        self.narratives = narratives
        self.assessed_by = assessed_by
        self._clock = clock
        self.detector = DeviationDetector(table)
        self.scorer = FraudScoreAggregator(table)
        self.classifier = SeverityClassifier(table)

    def evaluate(self, alert: Alert, activity: UserActivity) -> FraudEvaluation:
        """Deterministic part of an investigation. Same inputs → same result."""
        baseline = self.resolver.resolve(activity, alert.timestamp)
        event = observe_alert(
            alert,
            activity,
            self.table.deviation.frequency_window_hours,
            self.table.baseline.excluded_statuses,
        )
        deviations = self.detector.detect(baseline, event)
        score = self.scorer.aggregate(alert.alert_type, deviations, alert.triggered_rules)
        level = self.classifier.classify(score.final_score)
        justification = SeverityJustification(
            base_score=score.base_score,
            deviation_multiplier=score.deviation_multiplier,
            raw_score=score.raw_score,
            final_score=score.final_score,
            severity_level=level,
            multipliers=dict(score.multipliers),
            thresholds_used=self.classifier.thresholds,
            triggered_deviations=list(score.triggered_deviations),
        )
        return FraudEvaluation(
            baseline=baseline,
            deviations=deviations,
            score=score,
            level=level,
            allowed_actions=self.classifier.allowed_actions(level),
            justification=justification,
        )

    async def assemble(
        self,
        alert: Alert,
        activity: UserActivity,
        assessed_by: Optional[str] = None,
    ) -> Investigation:
        """
        Score, narrate and store one investigation.

        The record is written once, complete, or not at all. Its
        INVESTIGATION_CREATED audit entry is appended after that write; if the
        append fails the stored record stands, the failure is logged with the
        investigation id and the error propagates.
        """
        investigation_id = f"inv_{uuid.uuid4().hex}"
        assessed_by = assessed_by or self.assessed_by

        with structlog.contextvars.bound_contextvars(
            evaluation_id=investigation_id, subject_id=alert.user_id
        ):
            result = self.evaluate(alert, activity)
            timeline = build_timeline(alert, result.deviations, result.level, result.score)
            patterns = summarize_pattern(result.deviations, self.table.deviation.new_account_days)

            narrative, narrative_source = await self.narratives.narrate(InvestigationNarrativeRequest(
                alert_id=alert.alert_id,
                alert_type=alert.alert_type.value,
                user_id=alert.user_id,
                occurred_at=alert.timestamp,
                severity=result.level,
                base_score=result.score.base_score,
                deviation_multiplier=result.score.deviation_multiplier,
                final_score=result.score.final_score,
                triggered_deviations=result.justification.triggered_deviations,
                deviation_details=deviation_details(result.deviations),
                timeline=[e.event for e in timeline],
                allowed_actions=result.allowed_actions,
            ))

            now = self._clock()
            audit_trail = AuditTrail(
                alert_id=alert.alert_id,
                user_id=alert.user_id,
                severity_assigned=result.level,
                base_score=result.score.base_score,
                deviation_multiplier=result.score.deviation_multiplier,
                raw_score=result.score.raw_score,
                final_score=result.score.final_score,
                thresholds_applied=result.justification.thresholds_used,
                triggered_deviations=result.justification.triggered_deviations,
                baseline_source=result.baseline.source,
                threshold_table_version=self.table.version,
                input_hash=compute_input_hash(alert, activity, self.table),
                assessed_by=assessed_by,
                timestamp=now,
            )

            investigation = Investigation(
                investigation_id=investigation_id,
                alert=alert,
                user_activity=activity,
                baseline=result.baseline,
                deviations=result.deviations,
                severity=result.level,
                timeline=timeline,
                narrative=narrative,
                narrative_source=narrative_source,
                allowed_actions=result.allowed_actions,
                justification=result.justification,
                audit_trail=audit_trail,
                pattern_signature=patterns,
                detection_summary=build_detection_summary(alert, result.level, result.justification, patterns),
                generated_at=now,
            )

            await self.investigations.add(investigation)
            try:
                await self.audit.log(
                    AuditAction.INVESTIGATION_CREATED,
                    resource_type="investigation",
                    resource_id=investigation_id,
                    actor=assessed_by,
                    details={
                        "alert_id": alert.alert_id,
                        "severity": result.level.value,
                        "final_score": result.score.final_score,
                        "deviation_multiplier": result.score.deviation_multiplier,
                        "allowed_actions": result.allowed_actions,
                        "triggered_deviations": result.justification.triggered_deviations,
                        "input_hash": audit_trail.input_hash,
                    },
                )
            except Exception:
                logger.error("investigation_audit_failed", investigation_id=investigation_id, exc_info=True)
                raise
            logger.info(
                "investigation_created",
                alert_id=alert.alert_id,
                severity=result.level.value,
                final_score=result.score.final_score,
                narrative_source=narrative_source,
            )
            return investigation

    async def record_action(self, request: RecordActionRequest) -> ActionAck:
        """Log an analyst action. The investigation itself is never modified."""
        investigation = await self.investigations.require(request.investigation_id)
        entry = await self.audit.log(
            AuditAction.INVESTIGATION_ACTION,
            resource_type="investigation",
            resource_id=investigation.investigation_id,
            actor=request.analyst_id,
            details={
                "action_type": request.action_type,
                "action_details": request.action_details,
                "severity": investigation.severity.value,
                "permitted": request.action_type in investigation.allowed_actions,
            },
        )
        return ActionAck(
            investigation_id=investigation.investigation_id,
            action_type=request.action_type,
            audit_entry_id=entry.entry_id,
            recorded_at=entry.timestamp,
            details=request.action_details,
        )
