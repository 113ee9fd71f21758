"""Append-only audit log entries."""

from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class AuditAction(StrEnum):
    INVESTIGATION_CREATED = "investigation_created"
    INVESTIGATION_ACTION = "investigation_action"
    TRADING_INSIGHT_CREATED = "trading_insight_created"
    EVALUATION_REJECTED = "evaluation_rejected"


class AuditEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    entry_id: str
    action: AuditAction
    resource_type: str
    resource_id: str
    actor: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime
