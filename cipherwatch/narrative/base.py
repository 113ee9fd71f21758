"""
Narrative capability.

The engine prepares the evidence; a provider turns it into prose. Providers
raise NarrativeUnavailable on failure and the caller decides on fallback.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from cipherwatch.schemas.activity import Baseline
from cipherwatch.schemas.levels import SeverityLevel
from cipherwatch.schemas.trading import MarketContext, PressureScore


class NarrativeRequest(BaseModel):
    model_config = ConfigDict(frozen=True)


class InvestigationNarrativeRequest(NarrativeRequest):
    alert_id: str
    alert_type: str
    user_id: str
    occurred_at: datetime
    severity: SeverityLevel
    base_score: float
    deviation_multiplier: float
    final_score: float
    triggered_deviations: list[str] = Field(default_factory=list)
    deviation_details: dict[str, dict[str, Any]] = Field(default_factory=dict)
    timeline: list[str] = Field(default_factory=list)
    allowed_actions: list[str] = Field(default_factory=list)


class TradingNarrativeRequest(NarrativeRequest):
    trader_id: str
    instrument: str
    market: MarketContext
    pressure: PressureScore
    baseline: Baseline
    deterministic_score: float
    triggered_deviations: list[str] = Field(default_factory=list)
    pattern_descriptions: list[str] = Field(default_factory=list)
    historical_summary: Optional[str] = None


class NarrativeProvider(ABC):
    """Turns a prepared NarrativeRequest into text."""

    name: str = "provider"

    @abstractmethod
    async def generate(self, request: NarrativeRequest) -> str:
        """Return narrative text or raise NarrativeUnavailable."""
