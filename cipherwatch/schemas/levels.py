"""
Classification levels.

Each level has exactly one canonical value. Legacy spellings seen on input
("high" for high pressure, "moderate" for medium) resolve in ``_missing_``
so they never appear as separate members.
"""

from enum import StrEnum


class SeverityLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().lower()
            normalized = _SEVERITY_ALIASES.get(normalized, normalized)
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class PressureLevel(StrEnum):
    STABLE = "stable"
    ELEVATED = "elevated"
    HIGH_PRESSURE = "high_pressure"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
            normalized = _PRESSURE_ALIASES.get(normalized, normalized)
            for member in cls:
                if member.value == normalized:
                    return member
        return None


_SEVERITY_ALIASES = {"moderate": "medium", "severe": "high"}
_PRESSURE_ALIASES = {"high": "high_pressure", "normal": "stable"}

SEVERITY_ORDER = [SeverityLevel.LOW, SeverityLevel.MEDIUM, SeverityLevel.HIGH, SeverityLevel.CRITICAL]
PRESSURE_ORDER = [PressureLevel.STABLE, PressureLevel.ELEVATED, PressureLevel.HIGH_PRESSURE]
