"""Persistence collaborator: key-value store interface, in-memory store, repositories."""

from cipherwatch.storage.base import KeyValueStore
from cipherwatch.storage.memory import InMemoryKeyValueStore
from cipherwatch.storage.repositories import AuditRepository, InsightRepository, InvestigationRepository

__all__ = [
    "AuditRepository",
    "InMemoryKeyValueStore",
    "InsightRepository",
    "InvestigationRepository",
    "KeyValueStore",
]
