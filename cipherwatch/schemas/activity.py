"""
Subject activity and baseline schemas.

ActivityHistory is append-only and owned by the caller; Baseline is derived
from it and never stored as authoritative state.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from cipherwatch.schemas.common import UtcDatetime


def location_label(city: str, country: str) -> str:
    return f"{city.strip()}, {country.strip()}"


def location_key(label: str) -> str:
    """Case-insensitive comparison key for a "City, Country" label."""
    return " ".join(label.split()).casefold()


# ── Activity ───────────────────────────────────────────────────────────


class Location(BaseModel):
    city: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)

    @property
    def label(self) -> str:
        return location_label(self.city, self.country)


class LoginLocation(BaseModel):
    city: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    timestamp: UtcDatetime

    @property
    def label(self) -> str:
        return location_label(self.city, self.country)


class Transaction(BaseModel):
    timestamp: UtcDatetime
    amount: float = Field(..., ge=0, allow_inf_nan=False)
    type: str = "purchase"
    status: str = "completed"


class UserActivity(BaseModel):
    """Historical activity for one subject."""
    user_id: str = Field(..., min_length=1)
    login_locations: list[LoginLocation] = Field(default_factory=list)
    device_fingerprints: list[str] = Field(default_factory=list)
    transaction_history: list[Transaction] = Field(default_factory=list)
    account_age_days: int = Field(default=0, ge=0)


# ── Baseline ───────────────────────────────────────────────────────────


class Baseline(BaseModel):
    """
    Statistical summary of a subject's normal behaviour.

    ``source`` is "default" when the conservative default was substituted
    for a subject with no transaction history.
    """
    model_config = ConfigDict(frozen=True)

    avg_transaction_amount: float = Field(..., ge=0)
    avg_transactions_per_day: float = Field(..., ge=0)
    typical_transaction_hours: list[int] = Field(default_factory=list)
    common_locations: list[str] = Field(default_factory=list)
    known_devices: list[str] = Field(default_factory=list)
    device_consistency: float = Field(default=0.0, ge=0, le=1)
    account_maturity: int = Field(default=0, ge=0)
    sample_count: int = Field(default=0, ge=0)
    source: Literal["history", "default"] = "history"
