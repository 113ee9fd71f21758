"""
Baseline Builder.

Derives a per-subject statistical baseline from historical activity. The
computation is pure: the same history and reference time always produce
the same baseline. Caching is a separate concern (see engine.cache).
"""

from collections import Counter
from datetime import datetime
from typing import Optional

import structlog

from cipherwatch.engine.thresholds import ThresholdTable, default_threshold_table
from cipherwatch.exceptions import InsufficientHistory
from cipherwatch.schemas.activity import Baseline, Transaction, UserActivity, location_key
from cipherwatch.schemas.common import ensure_utc

logger = structlog.get_logger(__name__)

ALL_HOURS = list(range(24))


class BaselineBuilder:
    """Builds Baselines from UserActivity under a threshold table."""

    def __init__(self, table: Optional[ThresholdTable] = None):
        self.table = table or default_threshold_table()

    def completed(self, activity: UserActivity) -> list[Transaction]:
        """Transactions that count toward the baseline."""
        excluded = set(self.table.baseline.excluded_statuses)
        return [
            t for t in activity.transaction_history
            if t.status.strip().lower() not in excluded
        ]

    def build(
        self,
        activity: UserActivity,
        now: datetime,
        default: Optional[Baseline] = None,
    ) -> Baseline:
        """
        Build the baseline for ``activity`` as of ``now``.

        Raises InsufficientHistory when the subject has no completed
        transactions and no ``default`` is supplied; with a default, it is
        returned as-is. Pending, failed and other excluded transactions do
        not count as history.
        """
        completed = self.completed(activity)
        if not completed:
            if default is None:
                raise InsufficientHistory(activity.user_id)
            logger.info(
                "baseline_default_used",
                subject_id=activity.user_id,
                excluded_transactions=len(activity.transaction_history),
            )
            return default

        now = ensure_utc(now)
        cfg = self.table.baseline

        avg_amount = sum(t.amount for t in completed) / len(completed)
        earliest = min(t.timestamp for t in completed)
        span_days = max(1.0, (now - earliest).total_seconds() / 86400)
        per_day = len(completed) / span_days

        return Baseline(
            avg_transaction_amount=round(avg_amount, 6),
            avg_transactions_per_day=round(per_day, 6),
            typical_transaction_hours=self._typical_hours(completed),
            common_locations=self._common_locations(activity),
            known_devices=sorted(set(activity.device_fingerprints)),
            device_consistency=self._device_consistency(activity.device_fingerprints),
            account_maturity=min(activity.account_age_days, cfg.account_maturity_cap_days),
            sample_count=len(completed),
            source="history",
        )

    def default_baseline(self, activity: UserActivity) -> Baseline:
        """
        Conservative default for a subject with no transaction history.

        Amount and frequency come from the table; location, device and
        maturity still reflect whatever the subject does have.
        """
        cfg = self.table.baseline
        return Baseline(
            avg_transaction_amount=cfg.default.avg_transaction_amount,
            avg_transactions_per_day=cfg.default.avg_transactions_per_day,
            typical_transaction_hours=list(ALL_HOURS),
            common_locations=self._common_locations(activity),
            known_devices=sorted(set(activity.device_fingerprints)),
            device_consistency=self._device_consistency(activity.device_fingerprints),
            account_maturity=min(activity.account_age_days, cfg.account_maturity_cap_days),
            sample_count=0,
            source="default",
        )

    # ── Internals ─────────────────────────────────────────────────────

    def _typical_hours(self, transactions: list[Transaction]) -> list[int]:
        """Most frequent hours covering the configured share of activity."""
        cfg = self.table.baseline
        if len(transactions) < cfg.min_hour_samples:
            return list(ALL_HOURS)

        counts = Counter(t.timestamp.hour for t in transactions)
        total = len(transactions)
        selected: list[int] = []
        covered = 0
        for hour, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])):
            selected.append(hour)
            covered += count
            if covered / total >= cfg.typical_hours_mass:
                break
        return sorted(selected)

    @staticmethod
    def _common_locations(activity: UserActivity) -> list[str]:
        seen: dict[str, str] = {}
        for login in activity.login_locations:
            seen.setdefault(location_key(login.label), login.label)
        return sorted(seen.values(), key=location_key)

    @staticmethod
    def _device_consistency(fingerprints: list[str]) -> float:
        if not fingerprints:
            return 0.0
        unique = len(set(fingerprints))
        return round(1 - (unique - 1) / len(fingerprints), 6)
