"""Stake tracking ("I played this") plus per-user history and accounting."""

import logging
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException, status
from pymongo.errors import DuplicateKeyError

import app.database as _db
from app.models.tip import TipStatus
from app.services.accounting_service import AccountingSummary, doc_id, stake_profit, summarize
from app.services.tip_service import get_tip_or_404
from app.utils import utcnow

logger = logging.getLogger("tipfeed.tracking_service")

ALREADY_TRACKED_DETAIL = "You already tracked this tip."


async def track_tip(user_id: str, tip_id: str, stake: float) -> dict:
    """Record a stake on a pending tip. One stake per (user, tip)."""
    tip = await get_tip_or_404(tip_id)
    if tip.get("status", TipStatus.pending.value) != TipStatus.pending.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only pending tips can be tracked.",
        )

    doc = {
        "user_id": user_id,
        "tip_id": str(tip["_id"]),
        "stake": float(stake),
        "created_at": utcnow(),
    }
    try:
        result = await _db.db.user_tracking.insert_one(doc)
    except DuplicateKeyError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=ALREADY_TRACKED_DETAIL,
        )

    doc["_id"] = result.inserted_id
    logger.info("Tip tracked: user=%s tip=%s stake=%.2f", user_id, doc["tip_id"], doc["stake"])
    return doc


async def untrack(user_id: str, tracking_id: str) -> None:
    """Delete one of the caller's own stakes; anyone else's looks like a 404."""
    try:
        oid = ObjectId(tracking_id)
    except (InvalidId, TypeError):
        oid = None
    result = None
    if oid is not None:
        result = await _db.db.user_tracking.delete_one({"_id": oid, "user_id": user_id})
    if result is None or result.deleted_count == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tracking entry not found.",
        )
    logger.info("Tracking removed: user=%s entry=%s", user_id, tracking_id)


async def get_tracked_tip_ids(user_id: str) -> set[str]:
    rows = await _db.db.user_tracking.find(
        {"user_id": user_id}, {"tip_id": 1}
    ).to_list(length=None)
    return {str(r["tip_id"]) for r in rows}


async def _tips_for(stakes: list[dict]) -> list[dict]:
    ids = []
    for s in stakes:
        try:
            ids.append(ObjectId(s["tip_id"]))
        except (InvalidId, TypeError, KeyError):
            continue
    if not ids:
        return []
    return await _db.db.tips.find({"_id": {"$in": ids}}).to_list(length=None)


def build_history(tips: list[dict], stakes: list[dict]) -> list[dict[str, Any]]:
    """History rows joined with tip fields and the stake's current profit."""
    tips_by_id = {doc_id(t): t for t in tips}
    rows = []
    for s in stakes:
        tip = tips_by_id.get(str(s.get("tip_id")))
        row = {
            "id": doc_id(s),
            "tip_id": str(s.get("tip_id")),
            "stake": float(s.get("stake", 0.0)),
            "created_at": s.get("created_at"),
            "profit": 0.0,
        }
        if tip is not None:
            row.update(
                match_name=tip.get("match_name"),
                bet_type=tip.get("bet_type"),
                sport=tip.get("sport"),
                odds=tip.get("odds"),
                status=tip.get("status"),
                profit=round(stake_profit(row["stake"], tip.get("status"), tip.get("odds", 1.0)), 2),
            )
        rows.append(row)
    return rows


async def get_user_history(user_id: str) -> tuple[AccountingSummary, list[dict[str, Any]]]:
    """The user's stakes (newest first) and their accounting summary."""
    stakes = await _db.db.user_tracking.find(
        {"user_id": user_id}
    ).sort("created_at", -1).to_list(length=None)
    tips = await _tips_for(stakes)
    return summarize(tips, stakes), build_history(tips, stakes)


async def get_all_tracking() -> list[dict]:
    """Every stake joined with its owner's username, for moderators."""
    pipeline = [
        {"$sort": {"created_at": -1}},
        {
            "$lookup": {
                "from": "users",
                "let": {"uid": {"$toObjectId": "$user_id"}},
                "pipeline": [
                    {"$match": {"$expr": {"$eq": ["$_id", "$$uid"]}}},
                    {"$project": {"username": 1}},
                ],
                "as": "owner",
            }
        },
        {"$unwind": {"path": "$owner", "preserveNullAndEmptyArrays": True}},
    ]
    return await _db.db.user_tracking.aggregate(pipeline).to_list(length=None)
