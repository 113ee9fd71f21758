"""
Typed repositories over the key-value store.

Records are immutable once written: repositories expose create and read,
never update or delete.
"""

from typing import Generic, Optional, Type, TypeVar

from pydantic import BaseModel

from cipherwatch.exceptions import RecordNotFound
from cipherwatch.schemas.audit import AuditEntry
from cipherwatch.schemas.fraud import Investigation
from cipherwatch.schemas.trading import TradingInsight
from cipherwatch.storage.base import KeyValueStore

ModelT = TypeVar("ModelT", bound=BaseModel)


class BaseRepository(Generic[ModelT]):
    """Create-once / read operations for one record type under a key prefix."""

    prefix: str = ""
    resource_type: str = "record"

    def __init__(self, store: KeyValueStore, model: Type[ModelT]):
        self.store = store
        self.model = model

    def key(self, record_id: str) -> str:
        return f"{self.prefix}{record_id}"

    async def create(self, record_id: str, record: ModelT) -> ModelT:
        await self.store.put_new(self.key(record_id), record.model_dump(mode="json"))
        return record

    async def get_by_id(self, record_id: str) -> Optional[ModelT]:
        data = await self.store.get(self.key(record_id))
        return self.model.model_validate(data) if data is not None else None

    async def require(self, record_id: str) -> ModelT:
        record = await self.get_by_id(record_id)
        if record is None:
            raise RecordNotFound(self.resource_type, record_id)
        return record

    async def list_all(self) -> list[ModelT]:
        return [self.model.model_validate(value) for _, value in await self.store.scan(self.prefix)]


class InvestigationRepository(BaseRepository[Investigation]):
    prefix = "investigation:"
    resource_type = "investigation"

    def __init__(self, store: KeyValueStore):
        super().__init__(store, Investigation)

    async def add(self, investigation: Investigation) -> Investigation:
        return await self.create(investigation.investigation_id, investigation)


class InsightRepository(BaseRepository[TradingInsight]):
    prefix = "insight:"
    resource_type = "trading_insight"

    def __init__(self, store: KeyValueStore):
        super().__init__(store, TradingInsight)

    async def add(self, insight: TradingInsight) -> TradingInsight:
        return await self.create(insight.insight_id, insight)

    async def list_recent(self, limit: int, trader_id: Optional[str] = None) -> list[TradingInsight]:
        """Most recent first; ties broken by insight id for a stable order."""
        insights = await self.list_all()
        if trader_id is not None:
            insights = [i for i in insights if i.trader_id == trader_id]
        insights.sort(key=lambda i: i.insight_id)
        insights.sort(key=lambda i: i.created_at, reverse=True)
        return insights[:limit]


class AuditRepository(BaseRepository[AuditEntry]):
    prefix = "audit:"
    resource_type = "audit_entry"

    def __init__(self, store: KeyValueStore):
        super().__init__(store, AuditEntry)

    async def append(self, entry: AuditEntry) -> AuditEntry:
        return await self.create(entry.entry_id, entry)

    async def for_resource(self, resource_id: str) -> list[AuditEntry]:
        entries = [e for e in await self.list_all() if e.resource_id == resource_id]
        entries.sort(key=lambda e: (e.timestamp, e.entry_id))
        return entries
