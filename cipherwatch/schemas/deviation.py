"""
Deviation schemas.

One record per axis; every axis carries a magnitude and a multiplier >= 1.0.
Boolean axes report deviation 1.0 when triggered and 0.0 otherwise.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _Axis(BaseModel):
    model_config = ConfigDict(frozen=True)

    deviation: float
    multiplier: float = Field(default=1.0, ge=1.0)

    @property
    def triggered(self) -> bool:
        return self.multiplier > 1.0


class AmountDeviation(_Axis):
    current: Optional[float] = None
    baseline: float = 0.0
    is_unusual: bool = False


class FrequencyDeviation(_Axis):
    window_count: int = 0
    expected_count: float = 0.0
    window_hours: int = 24
    is_unusual: bool = False


class TemporalDeviation(_Axis):
    current_hour: int = Field(..., ge=0, le=23)
    typical_hours: list[int] = Field(default_factory=list)
    is_unusual_time: bool = False


class LocationDeviation(_Axis):
    current: Optional[str] = None
    common: list[str] = Field(default_factory=list)
    is_new_location: bool = False


class DeviceDeviation(_Axis):
    current: Optional[str] = None
    is_new_device: bool = False


AXIS_NAMES = ("amount", "frequency", "temporal", "location", "device")


class DeviationSet(BaseModel):
    """All per-axis deviations for one event plus the cross-axis flags."""
    model_config = ConfigDict(frozen=True)

    amount: AmountDeviation
    frequency: FrequencyDeviation
    temporal: TemporalDeviation
    location: LocationDeviation
    device: DeviceDeviation
    new_account_flag: bool = False
    velocity_flag: bool = False

    def axes(self) -> dict[str, _Axis]:
        return {name: getattr(self, name) for name in AXIS_NAMES}

    def multipliers(self) -> dict[str, float]:
        return {name: axis.multiplier for name, axis in self.axes().items()}

    def unusual_axes(self) -> list[str]:
        """Axes flagged unusual, in fixed axis order."""
        flags = {
            "amount": self.amount.is_unusual,
            "frequency": self.frequency.is_unusual,
            "temporal": self.temporal.is_unusual_time,
            "location": self.location.is_new_location,
            "device": self.device.is_new_device,
        }
        return [name for name in AXIS_NAMES if flags[name]]

    def triggered(self) -> list[str]:
        """Axes with a multiplier above 1.0, followed by any raised flags."""
        names = [name for name, axis in self.axes().items() if axis.triggered]
        if self.new_account_flag:
            names.append("new_account")
        if self.velocity_flag:
            names.append("velocity")
        return names
