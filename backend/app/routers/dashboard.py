from fastapi import APIRouter, Depends

from app.models.tracking import TrackingAnalyticsRow
from app.services.auth_service import get_moderator_user
from app.services.dashboard_service import get_dashboard_stats, get_tracking_analytics
from app.utils import as_utc

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/stats")
async def stats(moderator=Depends(get_moderator_user)):
    """Tip counts by status and the stake accounting across all users."""
    return await get_dashboard_stats()


@router.get("/tracking", response_model=list[TrackingAnalyticsRow])
async def tracking(moderator=Depends(get_moderator_user)):
    rows = await get_tracking_analytics()
    return [TrackingAnalyticsRow(**{**r, "created_at": as_utc(r["created_at"])}) for r in rows]
