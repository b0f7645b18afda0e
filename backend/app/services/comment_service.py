import logging
from collections import Counter
from typing import Any, Iterable, Mapping

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException, status

import app.database as _db
from app.services.tip_service import get_tip_or_404
from app.utils import utcnow

logger = logging.getLogger("tipfeed.comment_service")


def count_comments(comments: Iterable[Mapping[str, Any]]) -> dict[str, int]:
    """Comment count per tip id."""
    return dict(Counter(str(c.get("tip_id")) for c in comments))


async def get_comment_counts(tip_ids: list[str]) -> dict[str, int]:
    if not tip_ids:
        return {}
    rows = await _db.db.tip_comments.find(
        {"tip_id": {"$in": tip_ids}}, {"tip_id": 1}
    ).to_list(length=None)
    return count_comments(rows)


async def list_comments(tip_id: str) -> list[dict]:
    """Comments on a tip, oldest first, with the author's username."""
    tip_id = str((await get_tip_or_404(tip_id))["_id"])
    pipeline = [
        {"$match": {"tip_id": tip_id}},
        {"$sort": {"created_at": 1}},
        {
            "$lookup": {
                "from": "users",
                "let": {"uid": {"$toObjectId": "$user_id"}},
                "pipeline": [
                    {"$match": {"$expr": {"$eq": ["$_id", "$$uid"]}}},
                    {"$project": {"username": 1}},
                ],
                "as": "author",
            }
        },
        {"$unwind": {"path": "$author", "preserveNullAndEmptyArrays": True}},
    ]
    return await _db.db.tip_comments.aggregate(pipeline).to_list(length=None)


async def add_comment(user: dict, tip_id: str, content: str) -> dict:
    tip_id = str((await get_tip_or_404(tip_id))["_id"])
    doc = {
        "user_id": str(user["_id"]),
        "tip_id": tip_id,
        "content": content,
        "created_at": utcnow(),
    }
    result = await _db.db.tip_comments.insert_one(doc)
    doc["_id"] = result.inserted_id
    doc["author"] = {"username": user.get("username")}
    logger.info("Comment added: user=%s tip=%s", doc["user_id"], tip_id)
    return doc


async def delete_comment(user_id: str, comment_id: str) -> None:
    """Authors may delete their own comments; anything else is a 404."""
    try:
        oid = ObjectId(comment_id)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found.")
    result = await _db.db.tip_comments.delete_one({"_id": oid, "user_id": user_id})
    if result.deleted_count == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found.")
    logger.info("Comment deleted: user=%s comment=%s", user_id, comment_id)
