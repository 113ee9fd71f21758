"""
Template narrative provider.

Deterministic prose built only from the structured evidence. Used directly
when no external provider is configured and as the fallback when one fails.
"""

from cipherwatch.narrative.base import (
    InvestigationNarrativeRequest,
    NarrativeProvider,
    NarrativeRequest,
    TradingNarrativeRequest,
)
from cipherwatch.schemas.levels import PressureLevel
from cipherwatch.schemas.trading import MovementType

NO_ADVICE_NOTE = (
    "This analysis reflects observed patterns and market context. "
    "No trading predictions or recommendations are provided."
)


def _join(items: list[str], empty: str = "none") -> str:
    return ", ".join(items) if items else empty


class TemplateNarrativeProvider(NarrativeProvider):
    name = "template"

    async def generate(self, request: NarrativeRequest) -> str:
        return self.compose(request)

    def compose(self, request: NarrativeRequest) -> str:
        if isinstance(request, InvestigationNarrativeRequest):
            return self._investigation(request)
        if isinstance(request, TradingNarrativeRequest):
            return self._trading(request)
        raise TypeError(f"Unsupported narrative request: {type(request).__name__}")

    def _investigation(self, r: InvestigationNarrativeRequest) -> str:
        lines = [
            f"Alert {r.alert_id} ({r.alert_type}) for user {r.user_id} was classified "
            f"{r.severity.value.upper()}.",
            f"A base score of {r.base_score:.0f} with a deviation multiplier of "
            f"{r.deviation_multiplier:.2f}x gives a final score of {r.final_score:.2f}.",
            f"Triggered deviations: {_join(r.triggered_deviations)}.",
        ]
        for axis, detail in r.deviation_details.items():
            rendered = ", ".join(f"{k}={v}" for k, v in detail.items())
            lines.append(f"- {axis}: {rendered}")
        lines.append(f"Permitted actions at this level: {_join(r.allowed_actions)}.")
        return "\n".join(lines)

    def _trading(self, r: TradingNarrativeRequest) -> str:
        market, pressure = r.market, r.pressure
        factors = pressure.factors

        if market.movement_type == MovementType.SUDDEN_SPIKE:
            market_action = f"experienced a sudden {market.magnitude:.2f}% spike"
        elif market.movement_type == MovementType.VOLATILITY_REGIME_CHANGE:
            market_action = f"entered a high volatility regime with {market.magnitude:.2f}% movement"
        else:
            movement = market.movement_type.value.replace("_", " ")
            market_action = f"showed {movement} movement of {market.magnitude:.2f}%"

        if factors.trade_frequency_spike > 0.5:
            behaviour = "increase your trading frequency significantly"
        elif factors.loss_clustering > 0.5:
            behaviour = "experience clustered losses"
        elif factors.position_size_deviation > 0.5:
            behaviour = "deviate from your typical position sizes"
        else:
            behaviour = "maintain relatively stable trading patterns"

        paragraphs = [
            f"The market just {market_action} in {r.instrument}, and based on your trading "
            f"history, you tend to {behaviour} in these situations. {market.historical_context}",
            f"Behavioral analysis indicates {pressure.level.value} pressure "
            f"(score: {pressure.score:.0f}/100). Contributing factors: "
            f"{_join(pressure.contributing_factors)}. Deviations from baseline: "
            f"{_join(r.triggered_deviations)}. Your typical position size is "
            f"{r.baseline.avg_transaction_amount:.2f} at about "
            f"{r.baseline.avg_transactions_per_day:.1f} trades per day.",
        ]
        if r.pattern_descriptions:
            paragraphs.append(" ".join(d.rstrip(".") + "." for d in r.pattern_descriptions[:3]))
        if r.historical_summary:
            paragraphs.append(r.historical_summary)
        if pressure.level == PressureLevel.HIGH_PRESSURE:
            paragraphs.append(
                "Given the elevated pressure patterns observed, consider stepping back to "
                "review recent decisions with a clear head."
            )
        elif pressure.level == PressureLevel.STABLE:
            paragraphs.append("Your trading patterns are consistent with your usual discipline.")
        paragraphs.append(NO_ADVICE_NOTE)
        return "\n\n".join(paragraphs)
