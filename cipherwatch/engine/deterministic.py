"""
Deterministic input hashing.

Hashes the canonical JSON of an evaluation's inputs together with the
threshold table, so two evaluations with equal hashes are provably
identical computations.
"""

import hashlib
import json
from typing import Any


def _as_data(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [_as_data(v) for v in value]
    return value


def canonical_json(value: Any) -> str:
    return json.dumps(_as_data(value), sort_keys=True, separators=(",", ":"), default=str)


def compute_input_hash(*parts: Any) -> str:
    """SHA-256 over the canonical JSON of ``parts``, prefixed "sha256:"."""
    digest = hashlib.sha256(canonical_json(list(parts)).encode("utf-8")).hexdigest()
    return f"sha256:{digest}"
