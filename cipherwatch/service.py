"""
CipherWatch engine facade.

The entry points external collaborators call. Each accepts either the JSON
payload as a dict or the matching request model and returns pydantic
records. Input validation failures surface as InvalidEvent; evaluations that
are rejected leave an audit entry and never produce a placeholder record.
"""

from datetime import datetime
from typing import Any, Callable, Optional, Type, TypeVar, Union

import structlog
from pydantic import BaseModel, ValidationError

from cipherwatch.config import Settings, settings as default_settings
from cipherwatch.engine.baseline import BaselineBuilder
from cipherwatch.engine.cache import BaselineCache
from cipherwatch.engine.thresholds import ThresholdTable, load_threshold_table
from cipherwatch.exceptions import CipherWatchError, InsufficientHistory, InvalidEvent
from cipherwatch.narrative.service import NarrativeService, build_narrative_service
from cipherwatch.schemas.audit import AuditAction, AuditEntry
from cipherwatch.schemas.common import utc_now
from cipherwatch.schemas.fraud import ActionAck, Investigation
from cipherwatch.schemas.requests import (
    EvaluateAlertRequest,
    ListInsightsRequest,
    RecordActionRequest,
    TradingScanRequest,
)
from cipherwatch.schemas.trading import TradingInsight
from cipherwatch.services.audit import AuditLogger
from cipherwatch.services.baselines import BaselineResolver
from cipherwatch.services.insight import InsightAssembler
from cipherwatch.services.investigation import InvestigationAssembler
from cipherwatch.storage.base import KeyValueStore
from cipherwatch.storage.memory import InMemoryKeyValueStore
from cipherwatch.storage.repositories import AuditRepository, InsightRepository, InvestigationRepository

logger = structlog.get_logger(__name__)

RequestT = TypeVar("RequestT", bound=BaseModel)
Payload = Union[dict[str, Any], BaseModel, None]


def parse_request(model: Type[RequestT], payload: Payload) -> RequestT:
    """Validate a payload into ``model``; the first failing field is reported."""
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    try:
        return model.model_validate(payload or {})
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        raise InvalidEvent(
            f"Invalid {model.__name__}: {first['msg']}",
            field=field,
            value=first.get("input"),
            cause=e,
        ) from e


def _payload_id(payload: Payload, *path: str) -> str:
    """Best-effort identifier from a raw payload, for rejection audit entries."""
    node: Any = payload.model_dump() if isinstance(payload, BaseModel) else payload
    for key in path:
        if not isinstance(node, dict):
            return "unknown"
        node = node.get(key)
    return str(node) if node else "unknown"


class CipherWatchEngine:
    """Wires the scoring engine, narrative service and store together."""

    def __init__(
        self,
        table: Optional[ThresholdTable] = None,
        store: Optional[KeyValueStore] = None,
        narratives: Optional[NarrativeService] = None,
        config: Optional[Settings] = None,
        baseline_cache: Optional[BaselineCache] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        config = config or default_settings
        self.config = config
        self.table = table or load_threshold_table(config.thresholds_path)
        self.store = store or InMemoryKeyValueStore()

        if baseline_cache is None and config.baseline_cache_enabled:
            baseline_cache = BaselineCache(ttl_seconds=config.baseline_cache_ttl_seconds)
        self.baseline_cache = baseline_cache

        self.narratives = narratives or build_narrative_service(config)
        self.investigations = InvestigationRepository(self.store)
        self.insights = InsightRepository(self.store)
        self.audit = AuditLogger(AuditRepository(self.store), clock=clock)

        resolver = BaselineResolver(
            BaselineBuilder(self.table),
            cache=self.baseline_cache,
            default_enabled=config.default_baseline_enabled,
        )
        self.investigation_assembler = InvestigationAssembler(
            self.table,
            resolver,
            self.investigations,
            self.audit,
            self.narratives,
            assessed_by=config.assessed_by,
            clock=clock,
        )
        self.insight_assembler = InsightAssembler(
            self.table,
            resolver,
            self.insights,
            self.audit,
            self.narratives,
            history_limit=config.insight_history_limit,
            clock=clock,
        )
        logger.info(
            "engine_initialized",
            threshold_table=self.table.version,
            narrative_provider=self.narratives.provider.name,
            baseline_cache=self.baseline_cache is not None,
        )

    # ── Fraud path ────────────────────────────────────────────────────────

    async def evaluate_alert(self, payload: Payload) -> Investigation:
        try:
            request = parse_request(EvaluateAlertRequest, payload)
            return await self.investigation_assembler.assemble(
                request.alert, request.user_activity, request.assessed_by
            )
        except (InvalidEvent, InsufficientHistory) as e:
            await self._reject("alert", _payload_id(payload, "alert", "alert_id"), e)
            raise

    async def record_action(self, payload: Payload) -> ActionAck:
        request = parse_request(RecordActionRequest, payload)
        return await self.investigation_assembler.record_action(request)

    async def get_investigation(self, investigation_id: str) -> Investigation:
        return await self.investigations.require(investigation_id)

    # ── Trading path ──────────────────────────────────────────────────────

    async def run_trading_scan(self, payload: Payload) -> TradingInsight:
        try:
            request = parse_request(TradingScanRequest, payload)
            return await self.insight_assembler.assemble(request)
        except (InvalidEvent, InsufficientHistory) as e:
            await self._reject("trading_scan", _payload_id(payload, "trader_id"), e)
            raise

    async def list_insights(self, payload: Payload = None) -> list[TradingInsight]:
        request = parse_request(ListInsightsRequest, payload)
        return await self.insight_assembler.list_insights(request)

    # ── Audit ─────────────────────────────────────────────────────────────

    async def list_audit_entries(self, resource_id: str) -> list[AuditEntry]:
        return await self.audit.entries_for(resource_id)

    async def _reject(self, resource_type: str, resource_id: str, error: CipherWatchError) -> None:
        logger.warning(
            "evaluation_rejected",
            resource_type=resource_type,
            resource_id=resource_id,
            error_code=error.error_code.value,
            reason=error.message,
        )
        await self.audit.log(
            AuditAction.EVALUATION_REJECTED,
            resource_type=resource_type,
            resource_id=resource_id,
            details=error.to_dict(),
        )
