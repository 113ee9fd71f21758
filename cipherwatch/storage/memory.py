"""In-memory KeyValueStore for tests and single-process deployments."""

import asyncio
import copy
from typing import Any, Optional

import structlog

from cipherwatch.exceptions import PersistenceError
from cipherwatch.storage.base import KeyValueStore

logger = structlog.get_logger(__name__)


class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self):
        # key → JSON-compatible value; copies in and out so callers can't mutate stored state
        self._data: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def put_new(self, key: str, value: dict[str, Any]) -> None:
        async with self._lock:
            if key in self._data:
                raise PersistenceError(f"Record {key} already exists", duplicate=True)
            self._data[key] = copy.deepcopy(value)
        logger.debug("kv_put", key=key)

    async def scan(self, prefix: str) -> list[tuple[str, dict[str, Any]]]:
        return [
            (key, copy.deepcopy(value))
            for key, value in sorted(self._data.items())
            if key.startswith(prefix)
        ]

    def __len__(self) -> int:
        return len(self._data)
