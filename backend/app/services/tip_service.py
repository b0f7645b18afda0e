"""
backend/app/services/tip_service.py

Purpose:
    Tip storage boundary: publishing, reading and updating tips. Role checks
    and the lifecycle/anti-cheat rules from tip_policy are enforced here, in
    front of MongoDB, and repeated inside the update filter so concurrent
    writers cannot slip past them.

Dependencies:
    - app.database
    - app.services.tip_policy
    - app.services.websocket_manager
"""

import logging
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException, Request, status
from pymongo import ReturnDocument

import app.database as _db
from app.models.tip import TipCreate, TipStatus
from app.services.audit_service import log_audit
from app.services.tip_policy import TERM_FIELDS, check_tip_update, require_moderator
from app.services.websocket_manager import websocket_manager
from app.utils import utcnow

logger = logging.getLogger("tipfeed.tip_service")

FEED_VIEWS = ("active", "settled", "all")


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tip not found.")


def parse_tip_id(tip_id: str) -> ObjectId:
    try:
        return ObjectId(tip_id)
    except (InvalidId, TypeError):
        raise _not_found()


async def get_tip_or_404(tip_id: str) -> dict:
    tip = await _db.db.tips.find_one({"_id": parse_tip_id(tip_id)})
    if not tip:
        raise _not_found()
    return tip


def _creator_lookup() -> list[dict]:
    return [
        {
            "$lookup": {
                "from": "users",
                "let": {"uid": {"$toObjectId": "$created_by"}},
                "pipeline": [
                    {"$match": {"$expr": {"$eq": ["$_id", "$$uid"]}}},
                    {"$project": {"username": 1}},
                ],
                "as": "creator",
            }
        },
        {"$unwind": {"path": "$creator", "preserveNullAndEmptyArrays": True}},
    ]


def _view_filter(view: str) -> dict:
    if view == "active":
        return {"status": TipStatus.pending.value}
    if view == "settled":
        return {"status": {"$ne": TipStatus.pending.value}}
    return {}


async def list_tips(view: str = "all", limit: int = 200) -> list[dict]:
    """Tips newest first, joined with the creator's username."""
    if view not in FEED_VIEWS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown view. Allowed: {', '.join(FEED_VIEWS)}",
        )
    pipeline = [
        {"$match": _view_filter(view)},
        {"$sort": {"created_at": -1}},
        {"$limit": limit},
        *_creator_lookup(),
    ]
    return await _db.db.tips.aggregate(pipeline).to_list(length=limit)


async def get_tip_with_creator(tip_id: str) -> dict:
    pipeline = [{"$match": {"_id": parse_tip_id(tip_id)}}, *_creator_lookup()]
    docs = await _db.db.tips.aggregate(pipeline).to_list(length=1)
    if not docs:
        raise _not_found()
    return docs[0]


async def create_tip(
    actor: dict, body: TipCreate, request: Optional[Request] = None
) -> dict:
    """Publish a new pending tip. Moderators and admins only."""
    require_moderator(actor)
    now = utcnow()
    actor_id = str(actor["_id"])
    tip_doc = {
        "created_by": actor_id,
        "match_name": body.match_name,
        "sport": body.sport,
        "bet_type": body.bet_type,
        "odds": body.odds,
        "status": TipStatus.pending.value,
        "analysis": body.analysis,
        "match_start_time": body.match_start_time,
        "created_at": now,
        "updated_at": now,
    }
    result = await _db.db.tips.insert_one(tip_doc)
    tip_doc["_id"] = result.inserted_id
    tip_id = str(result.inserted_id)

    logger.info(
        "Tip created: tip=%s by=%s match=%s odds=%.2f",
        tip_id, actor_id, body.match_name, body.odds,
    )
    await log_audit(
        actor_id=actor_id, target_id=tip_id, action="TIP_CREATED",
        metadata={"match_name": body.match_name, "odds": body.odds}, request=request,
    )
    await websocket_manager.publish_tip_change(tip_id, "created")
    return tip_doc


async def update_tip(
    actor: dict,
    tip_id: str,
    changes: dict[str, Any],
    request: Optional[Request] = None,
) -> dict:
    """Apply a partial update under the lifecycle and anti-cheat rules.

    Unchanged values are ignored; an update with nothing left is a no-op and
    returns the stored tip.
    """
    require_moderator(actor)
    tip = await get_tip_or_404(tip_id)
    tip_id = str(tip["_id"])
    now = utcnow()
    delta = check_tip_update(tip, changes, now)
    if not delta:
        return tip

    query: dict[str, Any] = {"_id": tip["_id"]}
    if any(field in delta for field in TERM_FIELDS):
        query["match_start_time"] = {"$gt": now}
    if "status" in delta:
        query["status"] = tip.get("status", TipStatus.pending.value)

    updated = await _db.db.tips.find_one_and_update(
        query,
        {"$set": {**delta, "updated_at": now}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        # Lost a race: re-evaluate against the fresh row to report the real reason.
        fresh = await get_tip_or_404(tip_id)
        check_tip_update(fresh, changes, utcnow())
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Tip was changed concurrently. Please reload and retry.",
        )

    actor_id = str(actor["_id"])
    settled = "status" in delta
    if settled:
        logger.info(
            "Tip settled: tip=%s by=%s %s -> %s",
            tip_id, actor_id, tip.get("status"), delta["status"],
        )
    else:
        logger.info("Tip updated: tip=%s by=%s fields=%s", tip_id, actor_id, sorted(delta))

    await log_audit(
        actor_id=actor_id,
        target_id=tip_id,
        action="TIP_SETTLED" if settled else "TIP_UPDATED",
        metadata={
            "before": {k: tip.get(k) for k in delta},
            "after": delta,
        },
        request=request,
    )
    await websocket_manager.publish_tip_change(tip_id, "settled" if settled else "updated")
    return updated


async def settle_tip(
    actor: dict, tip_id: str, new_status: TipStatus, request: Optional[Request] = None
) -> dict:
    return await update_tip(actor, tip_id, {"status": TipStatus(new_status).value}, request=request)
