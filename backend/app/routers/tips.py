from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from app.config import settings
from app.models.tip import TipCreate, TipResponse, TipStatusUpdate, TipUpdate
from app.services.auth_service import get_moderator_user, get_optional_user
from app.services.feed_service import get_feed, get_feed_item
from app.services.tip_service import create_tip, settle_tip, update_tip

router = APIRouter(prefix="/api/tips", tags=["tips"])


@router.get("/", response_model=list[TipResponse])
async def list_feed(
    view: str = Query("all", pattern="^(active|settled|all)$"),
    viewer: Optional[dict] = Depends(get_optional_user),
):
    """Public tip feed, newest first. ``active`` = pending, ``settled`` = everything else."""
    return await get_feed(view, viewer, limit=settings.TIPS_FEED_LIMIT)


@router.get("/{tip_id}", response_model=TipResponse)
async def get_one(tip_id: str, viewer: Optional[dict] = Depends(get_optional_user)):
    return await get_feed_item(tip_id, viewer)


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=TipResponse)
async def publish_tip(
    body: TipCreate,
    request: Request,
    moderator: dict = Depends(get_moderator_user),
):
    """Publish a tip. Moderators and admins only; status starts pending."""
    tip = await create_tip(moderator, body, request=request)
    return await get_feed_item(str(tip["_id"]), moderator)


@router.patch("/{tip_id}", response_model=TipResponse)
async def edit_tip(
    tip_id: str,
    body: TipUpdate,
    request: Request,
    moderator: dict = Depends(get_moderator_user),
):
    """Edit a tip. Bet terms are locked once the match has started."""
    await update_tip(moderator, tip_id, body.changes(), request=request)
    return await get_feed_item(tip_id, moderator)


@router.patch("/{tip_id}/status", response_model=TipResponse)
async def set_status(
    tip_id: str,
    body: TipStatusUpdate,
    request: Request,
    moderator: dict = Depends(get_moderator_user),
):
    """Settle a pending tip as won, lost or void."""
    await settle_tip(moderator, tip_id, body.status, request=request)
    return await get_feed_item(tip_id, moderator)
