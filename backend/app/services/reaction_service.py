"""Per-tip like/fire tallies and the strict add/remove reaction toggle."""

import logging
from typing import Any, Iterable, Mapping, Optional

from pymongo.errors import DuplicateKeyError

import app.database as _db
from app.models.social import ReactionType
from app.services.tip_service import get_tip_or_404
from app.utils import utcnow

logger = logging.getLogger("tipfeed.reaction_service")


def empty_tally() -> dict[str, Any]:
    return {"like": 0, "fire": 0, "user_liked": False, "user_fired": False}


def tally_reactions(
    reactions: Iterable[Mapping[str, Any]],
    viewer_id: Optional[str] = None,
) -> dict[str, dict[str, Any]]:
    """Count like/fire per tip and flag what the viewer already reacted with.

    Unknown reaction kinds are ignored.
    """
    out: dict[str, dict[str, Any]] = {}
    for r in reactions:
        kind = r.get("reaction_type")
        if kind not in (ReactionType.like.value, ReactionType.fire.value):
            continue
        tally = out.setdefault(str(r.get("tip_id")), empty_tally())
        tally[kind] += 1
        if viewer_id is not None and str(r.get("user_id")) == viewer_id:
            tally["user_liked" if kind == ReactionType.like.value else "user_fired"] = True
    return out


async def get_reaction_tallies(
    tip_ids: list[str], viewer_id: Optional[str] = None
) -> dict[str, dict[str, Any]]:
    if not tip_ids:
        return {}
    reactions = await _db.db.tip_reactions.find(
        {"tip_id": {"$in": tip_ids}},
        {"tip_id": 1, "user_id": 1, "reaction_type": 1},
    ).to_list(length=None)
    return tally_reactions(reactions, viewer_id)


async def toggle_reaction(user_id: str, tip_id: str, kind: ReactionType) -> dict[str, Any]:
    """Remove the viewer's reaction of this kind if present, otherwise add it.

    A concurrent duplicate insert lands on the unique index and is treated as
    the reaction already being there. Returns the tip's fresh tally.
    """
    tip_id = str((await get_tip_or_404(tip_id))["_id"])
    kind = ReactionType(kind)
    key = {"user_id": user_id, "tip_id": tip_id, "reaction_type": kind.value}

    removed = await _db.db.tip_reactions.delete_one(key)
    if removed.deleted_count:
        logger.debug("Reaction removed: user=%s tip=%s kind=%s", user_id, tip_id, kind.value)
    else:
        try:
            await _db.db.tip_reactions.insert_one({**key, "created_at": utcnow()})
        except DuplicateKeyError:
            logger.debug("Reaction already present: user=%s tip=%s kind=%s", user_id, tip_id, kind.value)

    tallies = await get_reaction_tallies([tip_id], user_id)
    return tallies.get(tip_id, empty_tally())
