"""
backend/app/services/leaderboard_service.py

Purpose:
    Rank users by realized profit over settled stakes. Only stakes on won or
    lost tips take part; pending and void stakes are ignored entirely, so a
    user with nothing settled does not appear.

Dependencies:
    - app.database
    - app.services.accounting_service
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

import app.database as _db
from app.models.leaderboard import LeaderboardPeriod
from app.services.accounting_service import SETTLED_STATUSES, roi_pct, stake_profit
from app.utils import ensure_utc, month_start, utcnow

logger = logging.getLogger("tipfeed.leaderboard")

DEFAULT_LIMIT = 10


def build_leaderboard(
    rows: Iterable[Mapping[str, Any]],
    *,
    limit: int = DEFAULT_LIMIT,
    since: Optional[datetime] = None,
) -> list[dict[str, Any]]:
    """Group stake rows by user and rank by total profit.

    Each row needs ``user_id``, ``stake``, ``created_at`` and the joined tip's
    ``tip_status``/``tip_odds``; ``username`` is optional. Equal profit is
    broken by user id so the order is deterministic.
    """
    since = ensure_utc(since) if since is not None else None
    groups: dict[str, dict[str, Any]] = {}

    for row in rows:
        tip_status = row.get("tip_status")
        if tip_status not in SETTLED_STATUSES:
            continue
        if since is not None:
            created = row.get("created_at")
            if created is None or ensure_utc(created) < since:
                continue

        uid = str(row.get("user_id"))
        entry = groups.get(uid)
        if entry is None:
            entry = groups[uid] = {
                "user_id": uid,
                "username": row.get("username") or "User",
                "total_profit": 0.0,
                "total_staked": 0.0,
                "wins": 0,
                "total_bets": 0,
            }
        amount = float(row.get("stake", 0.0))
        entry["total_staked"] += amount
        entry["total_bets"] += 1
        entry["total_profit"] += stake_profit(amount, tip_status, row.get("tip_odds", 1.0))
        if tip_status == "won":
            entry["wins"] += 1

    ranked = sorted(groups.values(), key=lambda e: (-e["total_profit"], e["user_id"]))[:limit]

    return [
        {
            "rank": i + 1,
            "user_id": e["user_id"],
            "username": e["username"],
            "total_profit": round(e["total_profit"], 2),
            "total_staked": round(e["total_staked"], 2),
            "wins": e["wins"],
            "total_bets": e["total_bets"],
            "roi": round(roi_pct(e["total_profit"], e["total_staked"]), 2),
        }
        for i, e in enumerate(ranked)
    ]


async def fetch_stake_rows() -> list[dict]:
    """All stakes joined with tip status/odds and the owner's username."""
    pipeline = [
        {
            "$lookup": {
                "from": "tips",
                "let": {"tid": {"$toObjectId": "$tip_id"}},
                "pipeline": [
                    {"$match": {"$expr": {"$eq": ["$_id", "$$tid"]}}},
                    {"$project": {"status": 1, "odds": 1}},
                ],
                "as": "tip",
            }
        },
        {"$unwind": {"path": "$tip", "preserveNullAndEmptyArrays": False}},
        {"$match": {"tip.status": {"$in": sorted(SETTLED_STATUSES)}}},
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
        {
            "$project": {
                "_id": 0,
                "user_id": 1,
                "stake": 1,
                "created_at": 1,
                "tip_status": "$tip.status",
                "tip_odds": "$tip.odds",
                "username": "$owner.username",
            }
        },
    ]
    return await _db.db.user_tracking.aggregate(pipeline).to_list(length=None)


async def get_leaderboard(
    period: LeaderboardPeriod = LeaderboardPeriod.all,
    limit: int = DEFAULT_LIMIT,
) -> list[dict[str, Any]]:
    """Recompute the leaderboard from raw rows; ``month`` keeps stakes from this calendar month."""
    since = month_start(utcnow()) if LeaderboardPeriod(period) == LeaderboardPeriod.month else None
    rows = await fetch_stake_rows()
    entries = build_leaderboard(rows, limit=limit, since=since)
    logger.debug("Leaderboard computed: period=%s entries=%d", LeaderboardPeriod(period).value, len(entries))
    return entries
