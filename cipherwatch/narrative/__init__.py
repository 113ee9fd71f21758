"""Narrative generation: provider interface, template and Anthropic providers."""

from cipherwatch.narrative.anthropic import AnthropicNarrativeProvider
from cipherwatch.narrative.base import (
    InvestigationNarrativeRequest,
    NarrativeProvider,
    NarrativeRequest,
    TradingNarrativeRequest,
)
from cipherwatch.narrative.service import NarrativeService, build_narrative_service
from cipherwatch.narrative.template import TemplateNarrativeProvider

__all__ = [
    "AnthropicNarrativeProvider",
    "InvestigationNarrativeRequest",
    "NarrativeProvider",
    "NarrativeRequest",
    "NarrativeService",
    "TemplateNarrativeProvider",
    "TradingNarrativeRequest",
    "build_narrative_service",
]
