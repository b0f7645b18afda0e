"""Tracking (stake) models: a user's recorded commitment to a tip."""

import math
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from app.models.tip import TipStatus


class StakeInDB(BaseModel):
    """One row per (user, tip). Never updated; deletable by its owner."""
    user_id: str
    tip_id: str
    stake: float
    created_at: datetime


class StakeCreate(BaseModel):
    """Request body for 'I played this'."""
    stake: float

    @field_validator("stake")
    @classmethod
    def positive_stake(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("Enter a valid stake amount.")
        v = round(float(v), 2)
        if v <= 0:
            raise ValueError("Enter a valid stake amount.")
        return v


class StakeResponse(BaseModel):
    id: str
    tip_id: str
    stake: float
    created_at: datetime


class AccountingSummaryResponse(BaseModel):
    total_staked: float
    total_profit: float
    wins: int
    losses: int
    open_bets: int
    total_bets: int
    roi: float
    win_rate: float


class HistoryEntry(BaseModel):
    id: str
    tip_id: str
    stake: float
    created_at: datetime
    match_name: Optional[str] = None
    bet_type: Optional[str] = None
    sport: Optional[str] = None
    odds: Optional[float] = None
    status: Optional[TipStatus] = None
    profit: float = 0.0


class HistoryResponse(BaseModel):
    summary: AccountingSummaryResponse
    entries: list[HistoryEntry]


class TrackingAnalyticsRow(BaseModel):
    """Moderator view of one stake."""
    id: str
    user_id: str
    username: str
    tip_id: str
    match_name: str
    tip_status: str
    stake: float
    created_at: datetime
