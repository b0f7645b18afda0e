from fastapi import APIRouter, Query

from app.config import settings
from app.models.leaderboard import LeaderboardEntry, LeaderboardPeriod
from app.services.leaderboard_service import get_leaderboard

router = APIRouter(prefix="/api/leaderboard", tags=["leaderboard"])


@router.get("/", response_model=list[LeaderboardEntry])
async def leaderboard(period: LeaderboardPeriod = Query(LeaderboardPeriod.all)):
    """Top tipsters by realized profit over settled stakes.

    Public endpoint: exposes username only. ``period=month`` restricts to
    stakes recorded in the current calendar month (UTC).
    """
    return await get_leaderboard(period=period, limit=settings.LEADERBOARD_SIZE)
