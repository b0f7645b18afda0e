"""Tip feed view models: tips plus reactions, comment counts and tracked flags.

Everything is fetched fresh per request; the change feed only tells clients
when to ask again.
"""

from typing import Any, Optional

from app.models.tip import ReactionTally, TipResponse
from app.services import comment_service, reaction_service, tip_service, tracking_service
from app.services.accounting_service import doc_id
from app.utils import as_utc


def tip_to_response(
    tip: dict,
    *,
    reactions: Optional[dict[str, Any]] = None,
    comment_count: int = 0,
    is_tracked: bool = False,
) -> TipResponse:
    creator = tip.get("creator") or {}
    return TipResponse(
        id=doc_id(tip),
        created_by=str(tip.get("created_by", "")),
        creator_username=creator.get("username") or "Tipster",
        match_name=tip["match_name"],
        sport=tip["sport"],
        bet_type=tip["bet_type"],
        odds=tip["odds"],
        status=tip.get("status", "pending"),
        analysis=tip.get("analysis"),
        match_start_time=as_utc(tip["match_start_time"]),
        created_at=as_utc(tip["created_at"]),
        updated_at=as_utc(tip.get("updated_at") or tip["created_at"]),
        reactions=ReactionTally(**(reactions or reaction_service.empty_tally())),
        comment_count=comment_count,
        is_tracked=is_tracked,
    )


async def _enrich(tips: list[dict], viewer: Optional[dict]) -> list[TipResponse]:
    tip_ids = [doc_id(t) for t in tips]
    viewer_id = str(viewer["_id"]) if viewer else None

    tallies = await reaction_service.get_reaction_tallies(tip_ids, viewer_id)
    counts = await comment_service.get_comment_counts(tip_ids)
    tracked = await tracking_service.get_tracked_tip_ids(viewer_id) if viewer_id else set()

    return [
        tip_to_response(
            t,
            reactions=tallies.get(tid),
            comment_count=counts.get(tid, 0),
            is_tracked=tid in tracked,
        )
        for t, tid in zip(tips, tip_ids)
    ]


async def get_feed(view: str, viewer: Optional[dict], limit: int) -> list[TipResponse]:
    tips = await tip_service.list_tips(view=view, limit=limit)
    return await _enrich(tips, viewer)


async def get_feed_item(tip_id: str, viewer: Optional[dict]) -> TipResponse:
    tip = await tip_service.get_tip_with_creator(tip_id)
    items = await _enrich([tip], viewer)
    return items[0]
