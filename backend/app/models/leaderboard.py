from enum import Enum

from pydantic import BaseModel


class LeaderboardPeriod(str, Enum):
    all = "all"
    month = "month"


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    username: str
    total_profit: float
    total_staked: float
    wins: int
    total_bets: int
    roi: float
