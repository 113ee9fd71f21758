"""
Baseline resolution for the assemblers.

Looks in the cache first, builds on a miss, and substitutes the configured
default for subjects without completed transactions when that is enabled.
"""

from datetime import datetime
from typing import Optional

import structlog

from cipherwatch.engine.baseline import BaselineBuilder
from cipherwatch.engine.cache import BaselineCache, history_fingerprint
from cipherwatch.schemas.activity import Baseline, UserActivity

logger = structlog.get_logger(__name__)


class BaselineResolver:
    def __init__(
        self,
        builder: BaselineBuilder,
        cache: Optional[BaselineCache] = None,
        default_enabled: bool = True,
    ):
        self.builder = builder
        self.cache = cache
        self.default_enabled = default_enabled

    def resolve(self, activity: UserActivity, now: datetime) -> Baseline:
        """Raises InsufficientHistory when there is no history and defaults are disabled."""
        fingerprint = history_fingerprint(activity, now)
        if self.cache is not None:
            cached = self.cache.get(activity.user_id, fingerprint)
            if cached is not None:
                logger.debug("baseline_cache_hit", subject_id=activity.user_id)
                return cached

        default = self.builder.default_baseline(activity) if self.default_enabled else None
        baseline = self.builder.build(activity, now, default=default)

        if self.cache is not None:
            self.cache.put(activity.user_id, fingerprint, baseline)
        return baseline
