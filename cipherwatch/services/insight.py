"""
Insight Assembler.

Trading scan → market context + behavioural baseline → deviations →
pressure factors and score → pattern matches against past losing trades →
narrative → one persisted TradingInsight.

The latest trade of the scan is the event under evaluation; earlier trades
form the trader's history.
"""

import uuid
from datetime import datetime
from typing import Callable, Sequence

import structlog

from cipherwatch.engine.classifier import PressureClassifier
from cipherwatch.engine.deterministic import compute_input_hash
from cipherwatch.engine.deviation import DeviationDetector, observe_trade
from cipherwatch.engine.market import MarketContextEngine
from cipherwatch.engine.patterns import PatternMatcher
from cipherwatch.engine.pressure import PressureFactorExtractor
from cipherwatch.engine.scoring import FraudScoreAggregator, PressureScoreAggregator
from cipherwatch.engine.thresholds import ThresholdTable
from cipherwatch.narrative.base import TradingNarrativeRequest
from cipherwatch.narrative.service import NarrativeService
from cipherwatch.schemas.activity import Transaction, UserActivity
from cipherwatch.schemas.audit import AuditAction
from cipherwatch.schemas.common import utc_now
from cipherwatch.schemas.fraud import AlertType
from cipherwatch.schemas.levels import PressureLevel
from cipherwatch.schemas.requests import ListInsightsRequest, TradingScanRequest
from cipherwatch.schemas.trading import (
    BehaviourContext,
    MarketContext,
    PressureScore,
    Trade,
    TradingInsight,
)
from cipherwatch.services.audit import AuditLogger
from cipherwatch.services.baselines import BaselineResolver
from cipherwatch.storage.repositories import InsightRepository

logger = structlog.get_logger(__name__)


def trades_as_activity(trader_id: str, trades: Sequence[Trade], account_age_days: int) -> UserActivity:
    """Trade history expressed as activity: position size is the amount."""
    return UserActivity(
        user_id=trader_id,
        transaction_history=[
            Transaction(timestamp=t.timestamp, amount=t.position_size, type="trade", status="completed")
            for t in trades
        ],
        account_age_days=account_age_days,
    )


def summarize_history(prior: Sequence[TradingInsight], market: MarketContext) -> str:
    """How this trader behaved in earlier insights under similar market conditions."""
    if not prior:
        return "No historical patterns available yet."

    similar = [
        i for i in prior
        if i.instrument == market.instrument and (
            i.market_context.movement_type == market.movement_type
            or abs(i.market_context.magnitude - market.magnitude) < 1.0
        )
    ]
    if not similar:
        return "This is a new market condition for this trader."

    avg_pressure = sum(i.behaviour_context.pressure_score.score for i in similar) / len(similar)
    high_pressure = sum(1 for i in similar if i.pressure_level == PressureLevel.HIGH_PRESSURE)
    frequent = sum(
        1 for i in similar if i.behaviour_context.pressure_score.factors.trade_frequency_spike > 0.5
    )

    patterns: list[str] = []
    if high_pressure > len(similar) * 0.6:
        patterns.append("typically shows elevated pressure")
    if frequent > len(similar) * 0.5:
        patterns.append("often increases trading frequency")
    if avg_pressure > 60:
        patterns.append("tends to experience higher stress levels")
    elif avg_pressure < 40:
        patterns.append("usually maintains a calm, disciplined approach")

    if not patterns:
        return "Historical patterns show varied responses in similar conditions."
    return f"In similar market conditions, this trader {', '.join(patterns)}."


class InsightAssembler:
    def __init__(
        self,
        table: ThresholdTable,
        resolver: BaselineResolver,
        insights: InsightRepository,
        audit: AuditLogger,
        narratives: NarrativeService,
        history_limit: int = 10,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.table = table
        self.resolver = resolver
        self.insights = insights
        self.audit = audit
        self.narratives = narratives
        self.history_limit = history_limit
        self._clock = clock
        self.market = MarketContextEngine()
        self.detector = DeviationDetector(table)
        self.extractor = PressureFactorExtractor(table)
        self.pressure_scorer = PressureScoreAggregator(table)
        self.fraud_scorer = FraudScoreAggregator(table)
        self.classifier = PressureClassifier(table)
        self.matcher = PatternMatcher(table)

    async def assemble(self, scan: TradingScanRequest) -> TradingInsight:
        insight_id = f"ins_{uuid.uuid4().hex}"
        trades = sorted(scan.trades, key=lambda t: (t.timestamp, t.trade_id))
        current, history = trades[-1], trades[:-1]

        with structlog.contextvars.bound_contextvars(
            evaluation_id=insight_id, subject_id=scan.trader_id
        ):
            account_age = scan.account_age_days
            if account_age is None:
                account_age = (current.timestamp - trades[0].timestamp).days

            activity = trades_as_activity(scan.trader_id, history, account_age)
            baseline = self.resolver.resolve(activity, current.timestamp)
            market = self.market.analyze(scan.instrument, scan.market)

            event = observe_trade(current, history, self.table.deviation.frequency_window_hours)
            deviations = self.detector.detect(baseline, event)

            factors = self.extractor.extract(trades, deviations, current.timestamp)
            aggregate = self.pressure_scorer.aggregate(factors)
            level = self.classifier.classify(aggregate.score)
            pressure = PressureScore(
                score=aggregate.score,
                level=level,
                factors=factors,
                contributing_factors=list(aggregate.contributing_factors),
                weights_used=aggregate.weights_used,
                thresholds_used=self.classifier.thresholds,
            )

            deterministic = self.fraud_scorer.aggregate(AlertType.SUSPICIOUS_TRADING, deviations)

            if current.market_condition is None:
                current = current.model_copy(update={"market_condition": market.movement_type})
            matches = self.matcher.match(history, current, baseline.avg_transaction_amount)

            prior = await self.insights.list_recent(self.history_limit, trader_id=scan.trader_id)
            historical_summary = summarize_history(prior, market)

            narrative, narrative_source = await self.narratives.narrate(TradingNarrativeRequest(
                trader_id=scan.trader_id,
                instrument=scan.instrument,
                market=market,
                pressure=pressure,
                baseline=baseline,
                deterministic_score=deterministic.final_score,
                triggered_deviations=deviations.triggered(),
                pattern_descriptions=[m.describe() for m in matches],
                historical_summary=historical_summary,
            ))

            insight = TradingInsight(
                insight_id=insight_id,
                trader_id=scan.trader_id,
                instrument=scan.instrument,
                trade_id=current.trade_id,
                market_context=market,
                behaviour_context=BehaviourContext(
                    pressure_score=pressure,
                    deviations=deviations,
                    baseline=baseline,
                    historical_summary=historical_summary,
                ),
                pressure_level=level,
                deterministic_score=deterministic.final_score,
                pattern_matches=matches,
                narrative=narrative,
                narrative_source=narrative_source,
                data_source_type=scan.data_source_type,
                input_hash=compute_input_hash(scan.trades, scan.market, scan.account_age_days, self.table),
                created_at=self._clock(),
            )

            await self.insights.add(insight)
            await self.audit.log(
                AuditAction.TRADING_INSIGHT_CREATED,
                resource_type="trading_insight",
                resource_id=insight_id,
                actor=scan.trader_id,
                details={
                    "instrument": scan.instrument,
                    "trade_id": current.trade_id,
                    "pressure_level": level.value,
                    "pressure_score": pressure.score,
                    "deterministic_score": deterministic.final_score,
                    "pattern_matches": [m.trade_id for m in matches],
                },
            )
            logger.info(
                "trading_insight_created",
                instrument=scan.instrument,
                pressure_level=level.value,
                pressure_score=pressure.score,
                matches=len(matches),
            )
            return insight

    async def list_insights(self, request: ListInsightsRequest) -> list[TradingInsight]:
        return await self.insights.list_recent(request.limit, trader_id=request.trader_id)
