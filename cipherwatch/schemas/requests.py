"""
Request contracts accepted by the engine facade.

Each mirrors one JSON payload; validation failures surface as InvalidEvent.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from cipherwatch.schemas.activity import UserActivity
from cipherwatch.schemas.fraud import Alert
from cipherwatch.schemas.trading import DataSourceType, MarketObservation, Trade


class EvaluateAlertRequest(BaseModel):
    alert: Alert
    user_activity: UserActivity
    assessed_by: Optional[str] = None

    @model_validator(mode="after")
    def _same_subject(self) -> "EvaluateAlertRequest":
        if self.alert.user_id != self.user_activity.user_id:
            raise ValueError(
                f"alert.user_id {self.alert.user_id!r} does not match "
                f"user_activity.user_id {self.user_activity.user_id!r}"
            )
        return self


class TradingScanRequest(BaseModel):
    """
    A trader's recent trades plus the current market observation.

    The latest trade (by timestamp) is the event under evaluation; every
    earlier trade is history.
    """
    trader_id: str = Field(..., min_length=1)
    instrument: str = Field(..., min_length=1)
    trades: list[Trade] = Field(..., min_length=1)
    market: MarketObservation
    account_age_days: Optional[int] = Field(default=None, ge=0)
    data_source_type: DataSourceType = DataSourceType.API

    @model_validator(mode="after")
    def _trades_belong_to_trader(self) -> "TradingScanRequest":
        foreign = [t.trade_id for t in self.trades if t.trader_id != self.trader_id]
        if foreign:
            raise ValueError(f"trades {foreign} do not belong to trader {self.trader_id!r}")
        ids = [t.trade_id for t in self.trades]
        if len(ids) != len(set(ids)):
            raise ValueError("trade ids must be unique")
        return self


class ListInsightsRequest(BaseModel):
    limit: int = Field(default=20, ge=1, le=500)
    trader_id: Optional[str] = None


class RecordActionRequest(BaseModel):
    investigation_id: str = Field(..., min_length=1)
    action_type: str = Field(..., min_length=1)
    action_details: dict[str, Any] = Field(default_factory=dict)
    analyst_id: Optional[str] = None
