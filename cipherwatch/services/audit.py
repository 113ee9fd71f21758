"""Append-only audit logging."""

import uuid
from datetime import datetime
from typing import Any, Callable, Optional

import structlog

from cipherwatch.schemas.audit import AuditAction, AuditEntry
from cipherwatch.schemas.common import utc_now
from cipherwatch.storage.repositories import AuditRepository

logger = structlog.get_logger(__name__)


class AuditLogger:
    def __init__(self, repository: AuditRepository, clock: Callable[[], datetime] = utc_now):
        self.repository = repository
        self._clock = clock

    async def log(
        self,
        action: AuditAction,
        resource_type: str,
        resource_id: str,
        actor: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            entry_id=f"audit_{uuid.uuid4().hex}",
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            actor=actor,
            details=details or {},
            timestamp=self._clock(),
        )
        await self.repository.append(entry)
        logger.info(
            "audit_logged",
            action=action.value,
            resource_type=resource_type,
            resource_id=resource_id,
            actor=actor,
        )
        return entry

    async def entries_for(self, resource_id: str) -> list[AuditEntry]:
        return await self.repository.for_resource(resource_id)
