from fastapi import APIRouter, Depends, status

from app.models.tracking import (
    AccountingSummaryResponse,
    HistoryEntry,
    HistoryResponse,
    StakeCreate,
    StakeResponse,
)
from app.services.auth_service import get_current_user
from app.services.tracking_service import (
    get_tracked_tip_ids,
    get_user_history,
    track_tip,
    untrack,
)
from app.utils import as_utc

router = APIRouter(prefix="/api", tags=["tracking"])


@router.post(
    "/tips/{tip_id}/track",
    status_code=status.HTTP_201_CREATED,
    response_model=StakeResponse,
)
async def track(tip_id: str, body: StakeCreate, user=Depends(get_current_user)):
    """Record that the current user played this tip with the given stake."""
    doc = await track_tip(str(user["_id"]), tip_id, body.stake)
    return StakeResponse(
        id=str(doc["_id"]),
        tip_id=doc["tip_id"],
        stake=doc["stake"],
        created_at=as_utc(doc["created_at"]),
    )


@router.delete("/tracking/{tracking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_tracking(tracking_id: str, user=Depends(get_current_user)):
    await untrack(str(user["_id"]), tracking_id)


@router.get("/tracking/mine", response_model=HistoryResponse)
async def my_history(user=Depends(get_current_user)):
    """Bet history with profit/loss, ROI and win rate, recomputed on every call."""
    summary, rows = await get_user_history(str(user["_id"]))
    return HistoryResponse(
        summary=AccountingSummaryResponse(**summary.to_dict()),
        entries=[HistoryEntry(**{**r, "created_at": as_utc(r["created_at"])}) for r in rows],
    )


@router.get("/tracking/mine/ids", response_model=list[str])
async def my_tracked_ids(user=Depends(get_current_user)):
    return sorted(await get_tracked_tip_ids(str(user["_id"])))
