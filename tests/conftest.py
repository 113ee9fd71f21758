"""
Test fixtures for CipherWatch.

Provides:
- Default threshold table
- Fresh in-memory store per test
- Engine wired with the template narrative and no baseline cache
- A fixed clock so records are reproducible
"""

from datetime import datetime, timezone

import pytest

from cipherwatch.config import Settings
from cipherwatch.engine.thresholds import ThresholdTable, default_threshold_table
from cipherwatch.narrative.service import NarrativeService
from cipherwatch.service import CipherWatchEngine
from cipherwatch.storage.memory import InMemoryKeyValueStore

FIXED_NOW = datetime(2026, 3, 10, 14, 0, tzinfo=timezone.utc)


@pytest.fixture
def table() -> ThresholdTable:
    return default_threshold_table()


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        environment="testing",
        narrative_provider="template",
        baseline_cache_enabled=False,
        default_baseline_enabled=True,
    )


@pytest.fixture
def engine(table, store, test_settings) -> CipherWatchEngine:
    return CipherWatchEngine(
        table=table,
        store=store,
        narratives=NarrativeService(),
        config=test_settings,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def strict_engine(table, store) -> CipherWatchEngine:
    """Engine that refuses subjects without history."""
    return CipherWatchEngine(
        table=table,
        store=store,
        narratives=NarrativeService(),
        config=Settings(baseline_cache_enabled=False, default_baseline_enabled=False),
        clock=lambda: FIXED_NOW,
    )
