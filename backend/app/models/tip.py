import math
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.utils import ensure_utc


class TipStatus(str, Enum):
    pending = "pending"
    won = "won"
    lost = "lost"
    void = "void"


MIN_ODDS = 1.01


def _clean_required(v: str, field: str, max_len: int) -> str:
    v = v.strip()
    if not v:
        raise ValueError(f"{field} is required.")
    if len(v) > max_len:
        raise ValueError(f"{field} must be at most {max_len} characters.")
    return v


def _clean_odds(v: float) -> float:
    if not math.isfinite(v):
        raise ValueError("Odds must be a finite number.")
    v = round(float(v), 2)
    if v < MIN_ODDS:
        raise ValueError("Odds must be greater than 1.")
    return v


def _clean_analysis(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    if len(v) > 2000:
        raise ValueError("Analysis must be at most 2000 characters.")
    return v or None


class TipInDB(BaseModel):
    """Tip document as stored in MongoDB. Bet terms freeze at match start; status settles later."""
    created_by: str
    match_name: str
    sport: str
    bet_type: str
    odds: float
    status: TipStatus = TipStatus.pending
    analysis: Optional[str] = None
    match_start_time: datetime
    created_at: datetime
    updated_at: datetime


class TipCreate(BaseModel):
    """Request body for publishing a tip."""
    match_name: str
    sport: str
    bet_type: str
    odds: float
    analysis: Optional[str] = None
    match_start_time: datetime

    @field_validator("match_name")
    @classmethod
    def _match_name(cls, v: str) -> str:
        return _clean_required(v, "Match name", 200)

    @field_validator("sport")
    @classmethod
    def _sport(cls, v: str) -> str:
        return _clean_required(v, "Sport", 50)

    @field_validator("bet_type")
    @classmethod
    def _bet_type(cls, v: str) -> str:
        return _clean_required(v, "Bet type", 200)

    @field_validator("odds")
    @classmethod
    def _odds(cls, v: float) -> float:
        return _clean_odds(v)

    @field_validator("analysis")
    @classmethod
    def _analysis(cls, v: Optional[str]) -> Optional[str]:
        return _clean_analysis(v)

    @field_validator("match_start_time")
    @classmethod
    def _start(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class TipUpdate(BaseModel):
    """Partial tip update. Unset fields are left untouched."""
    match_name: Optional[str] = None
    sport: Optional[str] = None
    bet_type: Optional[str] = None
    odds: Optional[float] = None
    analysis: Optional[str] = None
    match_start_time: Optional[datetime] = None
    status: Optional[TipStatus] = None

    @field_validator("match_name")
    @classmethod
    def _match_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _clean_required(v, "Match name", 200)

    @field_validator("sport")
    @classmethod
    def _sport(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _clean_required(v, "Sport", 50)

    @field_validator("bet_type")
    @classmethod
    def _bet_type(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _clean_required(v, "Bet type", 200)

    @field_validator("odds")
    @classmethod
    def _odds(cls, v: Optional[float]) -> Optional[float]:
        return None if v is None else _clean_odds(v)

    @field_validator("analysis")
    @classmethod
    def _analysis(cls, v: Optional[str]) -> Optional[str]:
        return _clean_analysis(v)

    @field_validator("match_start_time")
    @classmethod
    def _start(cls, v: Optional[datetime]) -> Optional[datetime]:
        return None if v is None else ensure_utc(v)

    def changes(self) -> dict:
        """Only the fields the client actually sent (an explicit null clears analysis)."""
        out = self.model_dump(exclude_unset=True)
        if "status" in out and out["status"] is not None:
            out["status"] = TipStatus(out["status"]).value
        return {
            k: v for k, v in out.items()
            if v is not None or k == "analysis"
        }


class TipStatusUpdate(BaseModel):
    """Request body for settling a tip."""
    status: TipStatus


class ReactionTally(BaseModel):
    like: int = 0
    fire: int = 0
    user_liked: bool = False
    user_fired: bool = False


class TipResponse(BaseModel):
    """Tip data returned to the client, enriched for the viewer."""
    id: str
    created_by: str
    creator_username: str = "Tipster"
    match_name: str
    sport: str
    bet_type: str
    odds: float
    status: TipStatus
    analysis: Optional[str] = None
    match_start_time: datetime
    created_at: datetime
    updated_at: datetime
    reactions: ReactionTally = Field(default_factory=ReactionTally)
    comment_count: int = 0
    is_tracked: bool = False
