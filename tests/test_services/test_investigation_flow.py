"""
Investigation Flow Tests.

End-to-end through CipherWatchEngine.evaluate_alert with the in-memory store
and the template narrative.
"""

import asyncio

import httpx
import pytest

from cipherwatch.exceptions import InsufficientHistory, InvalidEvent, PersistenceError, RecordNotFound
from cipherwatch.narrative.anthropic import AnthropicNarrativeProvider
from cipherwatch.narrative.base import NarrativeProvider
from cipherwatch.narrative.service import NarrativeService
from cipherwatch.schemas.audit import AuditAction
from cipherwatch.schemas.fraud import TimelineCategory
from cipherwatch.schemas.levels import SeverityLevel
from cipherwatch.service import CipherWatchEngine
from cipherwatch.storage.memory import InMemoryKeyValueStore

from factories import FIXED_NOW, activity_payload, alert_payload, evaluate_payload


class TestEvaluateAlert:
    @pytest.mark.asyncio
    async def test_baseline_behaviour_scores_base_only(self, engine):
        inv = await engine.evaluate_alert(evaluate_payload())

        assert inv.severity == SeverityLevel.MEDIUM
        assert inv.justification.base_score == 50.0
        assert inv.justification.deviation_multiplier == 1.0
        assert inv.justification.final_score == 50.0
        assert inv.justification.triggered_deviations == []
        assert inv.allowed_actions == ["monitor", "request_verification", "limit_transactions"]
        assert inv.pattern_signature == ["Pattern matches baseline behavior"]
        assert inv.baseline.avg_transaction_amount == 100.0
        assert inv.baseline.avg_transactions_per_day == 1.0
        assert inv.baseline.typical_transaction_hours == [14]

    @pytest.mark.asyncio
    async def test_timeline_order(self, engine):
        inv = await engine.evaluate_alert(evaluate_payload())
        assert [e.category for e in inv.timeline] == [TimelineCategory.ALERT, TimelineCategory.CLASSIFICATION]
        assert inv.timeline[-1].event == "Severity classified: medium"

    @pytest.mark.asyncio
    async def test_account_takeover_is_critical(self, engine):
        inv = await engine.evaluate_alert(evaluate_payload(
            alert_type="account_takeover",
            amount=4500.0,
            at=FIXED_NOW.replace(hour=3),
            city="Lagos",
            country="NG",
            device="dev-9",
        ))

        assert inv.severity == SeverityLevel.CRITICAL
        assert inv.justification.final_score == 100.0
        assert inv.justification.raw_score > 100.0
        for name in ("amount", "temporal", "location", "device", "velocity"):
            assert name in inv.justification.triggered_deviations
        assert inv.justification.multipliers["amount"] == 5.0
        assert inv.justification.multipliers["location"] == 1.8
        assert inv.allowed_actions == ["freeze_account", "escalate", "notify_compliance"]

        events = [e.event for e in inv.timeline]
        assert events[0] == "Alert triggered: account_takeover"
        assert events.index("Deviation detected: amount") < events.index("Deviation detected: location")
        assert events[-2] == "Flag raised: velocity"
        assert events[-1] == "Severity classified: critical"
        assert "New geographic cluster detected" in inv.pattern_signature

    @pytest.mark.asyncio
    async def test_location_match_ignores_case(self, engine):
        inv = await engine.evaluate_alert(evaluate_payload(city="  london ", country="uk"))
        assert not inv.deviations.location.is_new_location

    @pytest.mark.asyncio
    async def test_default_baseline_for_new_subject(self, engine):
        payload = {
            "alert": alert_payload(alert_type="identity_fraud", amount=4500.0, city=None, device=None),
            "user_activity": activity_payload(with_history=False),
        }
        inv = await engine.evaluate_alert(payload)

        assert inv.baseline.source == "default"
        assert inv.audit_trail.baseline_source == "default"
        assert inv.justification.deviation_multiplier == 5.0
        assert inv.justification.raw_score == 300.0
        assert inv.justification.final_score == 100.0
        assert inv.justification.triggered_deviations == ["amount", "new_account"]
        assert inv.severity == SeverityLevel.CRITICAL

    @pytest.mark.asyncio
    async def test_pending_only_history_takes_default(self, engine):
        activity = activity_payload(days=6)
        for tx in activity["transaction_history"]:
            tx["amount"] = 50.0
            tx["status"] = "pending"
        inv = await engine.evaluate_alert({"alert": alert_payload(amount=50.0), "user_activity": activity})

        assert inv.baseline.source == "default"
        assert inv.justification.deviation_multiplier == 1.0
        assert inv.justification.triggered_deviations == []
        assert inv.severity == SeverityLevel.MEDIUM


class TestAuditTrail:
    @pytest.mark.asyncio
    async def test_audit_trail_fields(self, engine, table):
        inv = await engine.evaluate_alert(evaluate_payload())
        trail = inv.audit_trail

        assert trail.alert_id == "alert-1"
        assert trail.severity_assigned == inv.severity
        assert trail.final_score == inv.justification.final_score
        assert trail.thresholds_applied == {"medium": 40.0, "high": 60.0, "critical": 80.0}
        assert trail.threshold_table_version == table.version
        assert trail.assessed_by == "cipherwatch-engine"
        assert trail.timestamp == FIXED_NOW
        assert trail.input_hash.startswith("sha256:")

    @pytest.mark.asyncio
    async def test_assessed_by_override(self, engine):
        payload = evaluate_payload()
        payload["assessed_by"] = "analyst-42"
        inv = await engine.evaluate_alert(payload)
        assert inv.audit_trail.assessed_by == "analyst-42"

    @pytest.mark.asyncio
    async def test_reevaluation_is_reproducible(self, engine):
        first = await engine.evaluate_alert(evaluate_payload())
        second = await engine.evaluate_alert(evaluate_payload())

        assert first.investigation_id != second.investigation_id
        assert first.audit_trail.input_hash == second.audit_trail.input_hash
        assert first.justification == second.justification
        assert first.narrative == second.narrative

    @pytest.mark.asyncio
    async def test_different_input_changes_hash(self, engine):
        first = await engine.evaluate_alert(evaluate_payload())
        second = await engine.evaluate_alert(evaluate_payload(amount=101.0))
        assert first.audit_trail.input_hash != second.audit_trail.input_hash

    @pytest.mark.asyncio
    async def test_creation_logged(self, engine):
        inv = await engine.evaluate_alert(evaluate_payload())
        entries = await engine.list_audit_entries(inv.investigation_id)
        assert [e.action for e in entries] == [AuditAction.INVESTIGATION_CREATED]
        assert entries[0].details["severity"] == "medium"
        assert entries[0].details["input_hash"] == inv.audit_trail.input_hash


class TestPersistence:
    @pytest.mark.asyncio
    async def test_stored_record_round_trips(self, engine):
        inv = await engine.evaluate_alert(evaluate_payload())
        stored = await engine.get_investigation(inv.investigation_id)
        assert stored.model_dump(mode="json") == inv.model_dump(mode="json")

    @pytest.mark.asyncio
    async def test_unknown_investigation(self, engine):
        with pytest.raises(RecordNotFound):
            await engine.get_investigation("inv_missing")


class _AuditDownStore(InMemoryKeyValueStore):
    async def put_new(self, key, value):
        if key.startswith("audit:"):
            raise PersistenceError("audit store unavailable")
        await super().put_new(key, value)


class TestAuditWriteFailure:
    @pytest.mark.asyncio
    async def test_record_kept_and_error_raised(self, table, test_settings):
        store = _AuditDownStore()
        engine = CipherWatchEngine(
            table=table,
            store=store,
            narratives=NarrativeService(),
            config=test_settings,
            clock=lambda: FIXED_NOW,
        )
        with pytest.raises(PersistenceError):
            await engine.evaluate_alert(evaluate_payload())

        stored = await engine.investigations.list_all()
        assert len(stored) == 1
        assert stored[0].alert.alert_id == "alert-1"


class TestRecordAction:
    @pytest.mark.asyncio
    async def test_action_logged_without_touching_record(self, engine):
        inv = await engine.evaluate_alert(evaluate_payload())
        ack = await engine.record_action({
            "investigation_id": inv.investigation_id,
            "action_type": "monitor",
            "action_details": {"note": "watching"},
            "analyst_id": "analyst-1",
        })

        assert ack.investigation_id == inv.investigation_id
        assert ack.audit_entry_id.startswith("audit_")
        stored = await engine.get_investigation(inv.investigation_id)
        assert stored.model_dump(mode="json") == inv.model_dump(mode="json")

        entries = await engine.list_audit_entries(inv.investigation_id)
        assert {e.action for e in entries} == {
            AuditAction.INVESTIGATION_CREATED,
            AuditAction.INVESTIGATION_ACTION,
        }
        action = next(e for e in entries if e.action == AuditAction.INVESTIGATION_ACTION)
        assert action.actor == "analyst-1"
        assert action.details["permitted"] is True

    @pytest.mark.asyncio
    async def test_action_outside_allowed_set_flagged(self, engine):
        inv = await engine.evaluate_alert(evaluate_payload())
        await engine.record_action({"investigation_id": inv.investigation_id, "action_type": "freeze_account"})
        entries = await engine.list_audit_entries(inv.investigation_id)
        action = next(e for e in entries if e.action == AuditAction.INVESTIGATION_ACTION)
        assert action.details["permitted"] is False

    @pytest.mark.asyncio
    async def test_action_on_unknown_investigation(self, engine):
        with pytest.raises(RecordNotFound):
            await engine.record_action({"investigation_id": "inv_missing", "action_type": "monitor"})


class TestRejections:
    @pytest.mark.asyncio
    async def test_negative_amount(self, engine):
        with pytest.raises(InvalidEvent) as exc:
            await engine.evaluate_alert(evaluate_payload(amount=-5.0))
        assert exc.value.field == "alert.raw_data.transaction_amount"

        entries = await engine.list_audit_entries("alert-1")
        assert [e.action for e in entries] == [AuditAction.EVALUATION_REJECTED]
        assert entries[0].details["error_code"] == "E1001"
        assert await engine.investigations.list_all() == []

    @pytest.mark.asyncio
    async def test_subject_mismatch(self, engine):
        payload = evaluate_payload(user_id="someone-else")
        with pytest.raises(InvalidEvent):
            await engine.evaluate_alert(payload)

    @pytest.mark.asyncio
    async def test_unknown_alert_type(self, engine):
        with pytest.raises(InvalidEvent) as exc:
            await engine.evaluate_alert(evaluate_payload(alert_type="card_skimming"))
        assert exc.value.field == "alert.alert_type"

    @pytest.mark.asyncio
    async def test_naive_timestamp_taken_as_utc(self, engine):
        payload = evaluate_payload()
        payload["alert"]["timestamp"] = "2026-03-10T14:00:00"
        inv = await engine.evaluate_alert(payload)
        assert inv.alert.timestamp == FIXED_NOW
        assert inv.severity == SeverityLevel.MEDIUM

    @pytest.mark.asyncio
    async def test_no_history_without_default(self, strict_engine):
        payload = {
            "alert": alert_payload(amount=50.0),
            "user_activity": activity_payload(with_history=False),
        }
        with pytest.raises(InsufficientHistory):
            await strict_engine.evaluate_alert(payload)

        entries = await strict_engine.list_audit_entries("alert-1")
        assert [e.action for e in entries] == [AuditAction.EVALUATION_REJECTED]
        assert entries[0].details["error_code"] == "E2001"
        assert await strict_engine.investigations.list_all() == []

    @pytest.mark.asyncio
    async def test_pending_only_history_without_default(self, strict_engine):
        activity = activity_payload(days=6)
        for tx in activity["transaction_history"]:
            tx["status"] = "pending"
        with pytest.raises(InsufficientHistory):
            await strict_engine.evaluate_alert({"alert": alert_payload(amount=50.0), "user_activity": activity})
        assert await strict_engine.investigations.list_all() == []


class _BlockingProvider(NarrativeProvider):
    name = "blocking"

    def __init__(self):
        self.started = asyncio.Event()

    async def generate(self, request):
        self.started.set()
        await asyncio.Event().wait()


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_evaluation_leaves_nothing(self, table, store, test_settings):
        provider = _BlockingProvider()
        engine = CipherWatchEngine(
            table=table,
            store=store,
            narratives=NarrativeService(provider=provider, timeout_seconds=30),
            config=test_settings,
            clock=lambda: FIXED_NOW,
        )
        task = asyncio.create_task(engine.evaluate_alert(evaluate_payload()))
        await provider.started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(store) == 0


class TestNarrativeFallback:
    @pytest.mark.asyncio
    async def test_misshapen_provider_response_uses_template(self, table, store, test_settings):
        client = httpx.AsyncClient(transport=httpx.MockTransport(
            lambda request: httpx.Response(200, json={"content": "oops"})
        ))
        provider = AnthropicNarrativeProvider(api_key="sk-test", model="test-model", client=client)
        engine = CipherWatchEngine(
            table=table,
            store=store,
            narratives=NarrativeService(provider=provider, timeout_seconds=5),
            config=test_settings,
            clock=lambda: FIXED_NOW,
        )
        inv = await engine.evaluate_alert(evaluate_payload())

        assert inv.narrative_source == "template"
        assert "alert-1" in inv.narrative
        assert (await engine.get_investigation(inv.investigation_id)).narrative == inv.narrative
