"""
Narrative service.

Calls the configured provider under a timeout. On NarrativeUnavailable,
timeout or any other provider error the template narrative is used instead
and the fallback is logged; the evaluation itself never fails because of
the narrative. Cancellation of the caller propagates untouched.
"""

import asyncio
from typing import Literal, Optional

import structlog

from cipherwatch.config import Settings, settings as default_settings
from cipherwatch.exceptions import NarrativeUnavailable
from cipherwatch.narrative.anthropic import AnthropicNarrativeProvider
from cipherwatch.narrative.base import NarrativeProvider, NarrativeRequest
from cipherwatch.narrative.template import TemplateNarrativeProvider

logger = structlog.get_logger(__name__)

NarrativeSource = Literal["provider", "template"]


class NarrativeService:
    def __init__(
        self,
        provider: Optional[NarrativeProvider] = None,
        timeout_seconds: float = 10.0,
        fallback: Optional[TemplateNarrativeProvider] = None,
    ):
        self.fallback = fallback or TemplateNarrativeProvider()
        self.provider = provider or self.fallback
        self.timeout_seconds = timeout_seconds

    async def narrate(self, request: NarrativeRequest) -> tuple[str, NarrativeSource]:
        """Return (text, source). Source is "template" whenever the fallback was used."""
        if self.provider is self.fallback:
            return self.fallback.compose(request), "template"

        try:
            text = await asyncio.wait_for(self.provider.generate(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "narrative_fallback",
                provider=self.provider.name,
                reason="timeout",
                timeout_seconds=self.timeout_seconds,
            )
            return self.fallback.compose(request), "template"
        except NarrativeUnavailable as e:
            logger.warning(
                "narrative_fallback",
                provider=self.provider.name,
                reason=e.message,
                error_code=e.error_code.value,
            )
            return self.fallback.compose(request), "template"
        except Exception as e:
            logger.warning(
                "narrative_fallback",
                provider=self.provider.name,
                reason="provider_error",
                error=repr(e),
                exc_info=True,
            )
            return self.fallback.compose(request), "template"

        if not isinstance(text, str) or not text.strip():
            logger.warning("narrative_fallback", provider=self.provider.name, reason="empty")
            return self.fallback.compose(request), "template"
        return text, "provider"


def build_narrative_service(config: Optional[Settings] = None) -> NarrativeService:
    """Select the provider named in settings."""
    config = config or default_settings
    provider: Optional[NarrativeProvider] = None
    if config.narrative_provider == "anthropic":
        provider = AnthropicNarrativeProvider(
            api_key=config.anthropic_api_key,
            model=config.narrative_model,
            max_tokens=config.narrative_max_tokens,
        )
    return NarrativeService(provider=provider, timeout_seconds=config.narrative_timeout_seconds)
