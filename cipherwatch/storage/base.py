"""
Key-value persistence collaborator.

The engine only needs create-once writes, point reads and prefix scans.
Values are JSON-compatible dicts; typed access goes through repositories.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class KeyValueStore(ABC):
    @abstractmethod
    async def get(self, key: str) -> Optional[dict[str, Any]]:
        """Value for ``key`` or None."""

    @abstractmethod
    async def put_new(self, key: str, value: dict[str, Any]) -> None:
        """Write ``value`` under a key that must not exist yet. Raises PersistenceError."""

    @abstractmethod
    async def scan(self, prefix: str) -> list[tuple[str, dict[str, Any]]]:
        """All (key, value) pairs whose key starts with ``prefix``, in key order."""
