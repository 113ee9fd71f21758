"""
Baseline cache.

In-memory TTL cache keyed by subject id. Each entry remembers the history
fingerprint it was built from, so an append to the subject's history (or a
different reference time) misses instead of serving a stale baseline.
"""

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import structlog

from cipherwatch.schemas.activity import Baseline, UserActivity

logger = structlog.get_logger(__name__)


def history_fingerprint(activity: UserActivity, now: datetime) -> str:
    """Cheap identity of a history snapshot: lengths and latest timestamps."""
    last_tx = max((t.timestamp for t in activity.transaction_history), default=None)
    last_login = max((login.timestamp for login in activity.login_locations), default=None)
    parts = [
        str(len(activity.transaction_history)),
        last_tx.isoformat() if last_tx else "-",
        str(len(activity.login_locations)),
        last_login.isoformat() if last_login else "-",
        str(len(activity.device_fingerprints)),
        activity.device_fingerprints[-1] if activity.device_fingerprints else "-",
        str(activity.account_age_days),
        now.isoformat(),
    ]
    return "|".join(parts)


@dataclass
class _CacheEntry:
    fingerprint: str
    baseline: Baseline
    stored_at: float


class BaselineCache:
    """Per-subject baseline cache with TTL and fingerprint invalidation."""

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def get(self, subject_id: str, fingerprint: str) -> Optional[Baseline]:
        entry = self._entries.get(subject_id)
        if entry is None:
            self.misses += 1
            return None
        if entry.fingerprint != fingerprint or self._clock() - entry.stored_at > self.ttl_seconds:
            del self._entries[subject_id]
            self.misses += 1
            return None
        self.hits += 1
        return entry.baseline

    def put(self, subject_id: str, fingerprint: str, baseline: Baseline) -> None:
        self._entries[subject_id] = _CacheEntry(
            fingerprint=fingerprint,
            baseline=baseline,
            stored_at=self._clock(),
        )

    def invalidate(self, subject_id: str) -> None:
        self._entries.pop(subject_id, None)

    def clear(self) -> None:
        self._entries.clear()
        logger.info("baseline_cache_cleared")

    def __len__(self) -> int:
        return len(self._entries)
