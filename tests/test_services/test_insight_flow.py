"""
Trading Insight Flow Tests.

End-to-end through CipherWatchEngine.run_trading_scan and list_insights.
"""

from datetime import timedelta

import pytest

from cipherwatch.config import Settings
from cipherwatch.exceptions import InsufficientHistory, InvalidEvent
from cipherwatch.narrative.service import NarrativeService
from cipherwatch.narrative.template import NO_ADVICE_NOTE
from cipherwatch.schemas.audit import AuditAction
from cipherwatch.schemas.levels import PressureLevel
from cipherwatch.schemas.trading import MovementType
from cipherwatch.service import CipherWatchEngine

from factories import TRADE_NOW, calm_scan, daily_trades, pressured_scan, scan_payload, trade


class TestCalmScan:
    @pytest.mark.asyncio
    async def test_stable_pressure(self, engine):
        insight = await engine.run_trading_scan(calm_scan())
        pressure = insight.behaviour_context.pressure_score

        assert insight.trade_id == "now"
        assert insight.pressure_level == PressureLevel.STABLE
        assert pressure.score == 0.0
        assert pressure.contributing_factors == []
        assert insight.deterministic_score == 65.0

    @pytest.mark.asyncio
    async def test_market_context(self, engine):
        insight = await engine.run_trading_scan(calm_scan())
        market = insight.market_context
        assert market.movement_type == MovementType.SUDDEN_SPIKE
        assert market.magnitude == pytest.approx(4.2)
        assert market.session == "NY session"
        assert market.known_catalysts == ["ECB minutes"]

    @pytest.mark.asyncio
    async def test_repeated_losing_pattern_found(self, engine):
        insight = await engine.run_trading_scan(calm_scan())
        assert [m.trade_id for m in insight.pattern_matches] == ["d-3"]
        assert insight.pattern_matches[0].similarity == 1.0
        assert "You're repeating pattern d-3" in insight.narrative

    @pytest.mark.asyncio
    async def test_narrative_never_advises(self, engine):
        insight = await engine.run_trading_scan(calm_scan())
        assert insight.narrative_source == "template"
        assert insight.narrative.startswith("The market just experienced a sudden 4.20% spike")
        assert insight.narrative.endswith(NO_ADVICE_NOTE)

    @pytest.mark.asyncio
    async def test_new_account_flag_from_trade_span(self, engine):
        insight = await engine.run_trading_scan(calm_scan())
        assert insight.behaviour_context.baseline.account_maturity == 10
        assert insight.behaviour_context.deviations.new_account_flag

    @pytest.mark.asyncio
    async def test_explicit_account_age(self, engine):
        insight = await engine.run_trading_scan(calm_scan() | {"account_age_days": 400})
        assert not insight.behaviour_context.deviations.new_account_flag


class TestPressuredScan:
    @pytest.mark.asyncio
    async def test_elevated_pressure(self, engine):
        insight = await engine.run_trading_scan(pressured_scan())
        pressure = insight.behaviour_context.pressure_score

        assert pressure.factors.position_size_deviation == pytest.approx(0.5)
        assert pressure.factors.loss_clustering == pytest.approx(0.75)
        assert pressure.factors.short_intervals == pytest.approx(1.0)
        assert pressure.factors.unusual_hours == 0.0
        assert pressure.factors.trade_frequency_spike == pytest.approx(0.5192, abs=1e-4)
        assert pressure.score == pytest.approx(55.38, abs=0.01)
        assert insight.pressure_level == PressureLevel.ELEVATED
        assert set(pressure.contributing_factors) == {
            "trade_frequency_spike", "position_size_deviation", "loss_clustering", "short_intervals",
        }

    @pytest.mark.asyncio
    async def test_deterministic_score_saturates(self, engine):
        insight = await engine.run_trading_scan(pressured_scan())
        assert insight.deterministic_score == 100.0
        assert insight.behaviour_context.deviations.velocity_flag

    @pytest.mark.asyncio
    async def test_input_order_does_not_matter(self, engine):
        payload = pressured_scan()
        shuffled = dict(payload, trades=list(reversed(payload["trades"])))
        first = await engine.run_trading_scan(payload)
        second = await engine.run_trading_scan(shuffled)
        assert first.trade_id == second.trade_id == "now"
        assert first.behaviour_context.pressure_score == second.behaviour_context.pressure_score


class TestHistory:
    @pytest.mark.asyncio
    async def test_prior_insights_feed_summary(self, engine):
        first = await engine.run_trading_scan(calm_scan())
        second = await engine.run_trading_scan(calm_scan())
        assert first.behaviour_context.historical_summary == "No historical patterns available yet."
        assert "calm, disciplined approach" in second.behaviour_context.historical_summary

    @pytest.mark.asyncio
    async def test_audit_entry(self, engine):
        insight = await engine.run_trading_scan(calm_scan())
        entries = await engine.list_audit_entries(insight.insight_id)
        assert [e.action for e in entries] == [AuditAction.TRADING_INSIGHT_CREATED]
        assert entries[0].details["pattern_matches"] == ["d-3"]


class TestListInsights:
    @pytest.fixture
    def ticking_engine(self, table, store):
        ticks = iter(range(1000))

        def clock():
            return TRADE_NOW + timedelta(seconds=next(ticks))

        return CipherWatchEngine(
            table=table,
            store=store,
            narratives=NarrativeService(),
            config=Settings(baseline_cache_enabled=False),
            clock=clock,
        )

    @pytest.mark.asyncio
    async def test_newest_first(self, ticking_engine):
        a = await ticking_engine.run_trading_scan(calm_scan("trader-1"))
        b = await ticking_engine.run_trading_scan(calm_scan("trader-2"))
        c = await ticking_engine.run_trading_scan(calm_scan("trader-1"))

        listed = await ticking_engine.list_insights()
        assert [i.insight_id for i in listed] == [c.insight_id, b.insight_id, a.insight_id]

        mine = await ticking_engine.list_insights({"trader_id": "trader-1"})
        assert [i.insight_id for i in mine] == [c.insight_id, a.insight_id]

        latest = await ticking_engine.list_insights({"limit": 1})
        assert [i.insight_id for i in latest] == [c.insight_id]

    @pytest.mark.asyncio
    async def test_limit_validated(self, engine):
        with pytest.raises(InvalidEvent) as exc:
            await engine.list_insights({"limit": 0})
        assert exc.value.field == "limit"


class TestScanRejections:
    @pytest.mark.asyncio
    async def test_foreign_trade(self, engine):
        trades = daily_trades() + [trade("x", TRADE_NOW, trader_id="trader-9")]
        with pytest.raises(InvalidEvent):
            await engine.run_trading_scan(scan_payload(trades))
        entries = await engine.list_audit_entries("trader-1")
        assert [e.action for e in entries] == [AuditAction.EVALUATION_REJECTED]

    @pytest.mark.asyncio
    async def test_duplicate_trade_ids(self, engine):
        trades = daily_trades() + [trade("d-1", TRADE_NOW)]
        with pytest.raises(InvalidEvent):
            await engine.run_trading_scan(scan_payload(trades))

    @pytest.mark.asyncio
    async def test_empty_trades(self, engine):
        with pytest.raises(InvalidEvent) as exc:
            await engine.run_trading_scan(scan_payload([]))
        assert exc.value.field == "trades"

    @pytest.mark.asyncio
    async def test_zero_position_size(self, engine):
        trades = daily_trades() + [trade("now", TRADE_NOW, size=0.0)]
        with pytest.raises(InvalidEvent) as exc:
            await engine.run_trading_scan(scan_payload(trades))
        assert exc.value.field == "trades.10.position_size"

    @pytest.mark.asyncio
    async def test_single_trade_uses_default_baseline(self, engine):
        insight = await engine.run_trading_scan(scan_payload([trade("now", TRADE_NOW)]))
        assert insight.behaviour_context.baseline.source == "default"
        assert insight.pattern_matches == []

    @pytest.mark.asyncio
    async def test_single_trade_without_default(self, strict_engine):
        with pytest.raises(InsufficientHistory):
            await strict_engine.run_trading_scan(scan_payload([trade("now", TRADE_NOW)]))
        assert await strict_engine.insights.list_all() == []
