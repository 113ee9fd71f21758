"""
Anthropic narrative provider.

Non-streaming call to the Claude Messages API. Every failure mode (missing
key, transport error, non-200, empty body) raises NarrativeUnavailable.
"""

from typing import Optional

import httpx
import structlog

from cipherwatch.exceptions import NarrativeUnavailable
from cipherwatch.narrative.base import (
    InvestigationNarrativeRequest,
    NarrativeProvider,
    NarrativeRequest,
    TradingNarrativeRequest,
)

logger = structlog.get_logger(__name__)

# Anthropic API constants
ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

INVESTIGATION_SYSTEM_PROMPT = """You are a fraud investigation copilot.
Explain why an alert was classified at its severity level.

RULES:
1. Be factual and precise. No speculation.
2. Reference the score, the multiplier and each triggered deviation.
3. Explain what changed from the user's historical baseline.
4. End with the actions permitted at this severity level."""

TRADING_SYSTEM_PROMPT = """You are a trading behaviour analyst.

CONSTRAINTS:
1. NEVER provide predictions, price forecasts or buy/sell signals.
2. NEVER recommend entering or exiting trades.
3. Explain what happened in the market and which behavioural patterns were observed.
4. Start with: "The market just did X, and based on your trading history, you tend to Y."
5. Plain English, 150-220 words."""


def build_prompt(request: NarrativeRequest) -> tuple[str, str]:
    """Return (system, user) prompts for a request."""
    if isinstance(request, InvestigationNarrativeRequest):
        deviation_lines = "\n".join(
            f"- {axis}: {detail}" for axis, detail in request.deviation_details.items()
        ) or "No significant deviations detected."
        timeline = "\n".join(f"- {line}" for line in request.timeline)
        user = f"""ALERT SUMMARY:
- ID: {request.alert_id}
- Type: {request.alert_type}
- User: {request.user_id}
- Occurred: {request.occurred_at.isoformat()}

ENGINE CLASSIFICATION: {request.severity.value.upper()}
- Base Score: {request.base_score:.2f}
- Deviation Multiplier: {request.deviation_multiplier:.2f}x
- Final Score: {request.final_score:.2f}

TRIGGERED DEVIATIONS:
{deviation_lines}

TIMELINE:
{timeline}

PERMITTED ACTIONS: {", ".join(request.allowed_actions)}

Write a professional investigation narrative (180-220 words) for the audit log."""
        return INVESTIGATION_SYSTEM_PROMPT, user

    if isinstance(request, TradingNarrativeRequest):
        factors = request.pressure.factors.model_dump()
        factor_lines = "\n".join(f"  * {name}: {value:.2f}" for name, value in factors.items())
        patterns = "\n".join(f"- {d}" for d in request.pattern_descriptions) or "- none"
        catalysts = ", ".join(request.market.known_catalysts) or "none"
        user = f"""MARKET CONTEXT:
- Instrument: {request.instrument}
- Movement: {request.market.movement_type.value} ({request.market.magnitude:.2f}%)
- Session: {request.market.session}
- Context: {request.market.historical_context}
- Known catalysts: {catalysts}

TRADER BASELINE:
- Average position size: {request.baseline.avg_transaction_amount:.2f}
- Average trades per day: {request.baseline.avg_transactions_per_day:.2f}
- Typical hours (UTC): {", ".join(str(h) for h in request.baseline.typical_transaction_hours)}

BEHAVIOURAL PRESSURE: {request.pressure.level.value.upper()} ({request.pressure.score:.0f}/100)
{factor_lines}

DEVIATIONS: {", ".join(request.triggered_deviations) or "none"}

SIMILAR PAST LOSING TRADES:
{patterns}

HISTORY: {request.historical_summary or "no prior insights"}"""
        return TRADING_SYSTEM_PROMPT, user

    raise TypeError(f"Unsupported narrative request: {type(request).__name__}")


class AnthropicNarrativeProvider(NarrativeProvider):
    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str = "claude-haiku-4-5-20251001",
        max_tokens: int = 600,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self._client = client
        if not self.api_key:
            logger.warning("anthropic_api_key_missing", msg="narratives will use the template")

    async def generate(self, request: NarrativeRequest) -> str:
        if not self.api_key:
            raise NarrativeUnavailable("Anthropic API key not configured", provider=self.name)

        system, user = build_prompt(request)
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": system,
            "messages": [{"role": "user", "content": user}],
        }

        try:
            if self._client is not None:
                response = await self._client.post(ANTHROPIC_API_URL, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=30.0) as client:
                    response = await client.post(ANTHROPIC_API_URL, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise NarrativeUnavailable("Anthropic request timed out", provider=self.name, timed_out=True, cause=e) from e
        except httpx.HTTPError as e:
            raise NarrativeUnavailable(f"Anthropic request failed: {e}", provider=self.name, cause=e) from e

        if response.status_code != 200:
            logger.error("llm_api_error", status=response.status_code, body=response.text[:500])
            raise NarrativeUnavailable(
                f"Anthropic returned HTTP {response.status_code}", provider=self.name
            )

        try:
            data = response.json()
        except ValueError as e:
            raise NarrativeUnavailable("Anthropic returned malformed JSON", provider=self.name, cause=e) from e
        try:
            text = "".join(
                block.get("text", "")
                for block in data.get("content", [])
                if block.get("type") == "text"
            ).strip()
        except (AttributeError, TypeError, KeyError) as e:
            logger.error("llm_response_malformed", body=response.text[:500])
            raise NarrativeUnavailable(
                "Anthropic returned an unexpected response shape", provider=self.name, cause=e
            ) from e
        if not text:
            raise NarrativeUnavailable("Anthropic returned an empty narrative", provider=self.name)
        return text
