"""Moderator dashboard figures, derived from all tips and all stakes."""

from typing import Any

import app.database as _db
from app.services.accounting_service import count_tip_statuses, doc_id, summarize
from app.services.tracking_service import get_all_tracking


async def get_dashboard_stats() -> dict[str, Any]:
    tips = await _db.db.tips.find({}, {"status": 1, "odds": 1}).to_list(length=None)
    stakes = await _db.db.user_tracking.find({}, {"tip_id": 1, "stake": 1}).to_list(length=None)
    return {
        "tips": count_tip_statuses(tips),
        "summary": summarize(tips, stakes).to_dict(),
    }


def build_tracking_rows(tips: list[dict], stakes: list[dict]) -> list[dict[str, Any]]:
    tips_by_id = {doc_id(t): t for t in tips}
    rows = []
    for s in stakes:
        tip = tips_by_id.get(str(s.get("tip_id")))
        owner = s.get("owner") or {}
        rows.append({
            "id": doc_id(s),
            "user_id": str(s.get("user_id")),
            "username": owner.get("username") or "User",
            "tip_id": str(s.get("tip_id")),
            "match_name": tip.get("match_name", "Unknown") if tip else "Unknown",
            "tip_status": tip.get("status", "unknown") if tip else "unknown",
            "stake": float(s.get("stake", 0.0)),
            "created_at": s.get("created_at"),
        })
    return rows


async def get_tracking_analytics() -> list[dict[str, Any]]:
    stakes = await get_all_tracking()
    tips = await _db.db.tips.find({}, {"match_name": 1, "status": 1}).to_list(length=None)
    return build_tracking_rows(tips, stakes)
