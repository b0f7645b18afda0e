"""
backend/app/services/tip_policy.py

Purpose:
    Tip lifecycle state machine, anti-cheat freeze of bet terms after match
    start, and the role predicates that gate tip management. Pure functions;
    the storage layer in tip_service re-applies the same guards atomically in
    its MongoDB update filters.

Dependencies:
    - app.models.tip
    - app.models.user
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Mapping

from fastapi import HTTPException, status

from app.models.tip import TipStatus
from app.models.user import Role
from app.utils import ensure_utc

ANTI_CHEAT_DETAIL = "Cannot edit tip details after match has started. Only status can be updated."
ALREADY_SETTLED_DETAIL = "Tip is already settled."

TERMINAL_STATUSES = frozenset({TipStatus.won, TipStatus.lost, TipStatus.void})

_TRANSITIONS: dict[TipStatus, frozenset[TipStatus]] = {
    TipStatus.pending: frozenset(TipStatus),
    TipStatus.won: frozenset({TipStatus.won}),
    TipStatus.lost: frozenset({TipStatus.lost}),
    TipStatus.void: frozenset({TipStatus.void}),
}

# Fields other than status; frozen once the match has started.
TERM_FIELDS = ("match_name", "sport", "bet_type", "odds", "analysis", "match_start_time")

_ROLE_RANK = {Role.user: 0, Role.moderator: 1, Role.admin: 2}


# ---------- Roles ----------

def effective_role(roles: Iterable[Any] | None) -> Role:
    """Highest role held; unknown entries are ignored."""
    best = Role.user
    for raw in roles or ():
        try:
            role = Role(raw)
        except ValueError:
            continue
        if _ROLE_RANK[role] > _ROLE_RANK[best]:
            best = role
    return best


def is_moderator(roles: Iterable[Any] | None) -> bool:
    return effective_role(roles) in (Role.moderator, Role.admin)


def require_moderator(user: Mapping[str, Any]) -> None:
    if not is_moderator(user.get("roles")):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only moderators can manage tips.",
        )


# ---------- Lifecycle ----------

def can_transition(current: Any, target: Any) -> bool:
    """pending may go anywhere; won/lost/void only stay where they are."""
    return TipStatus(target) in _TRANSITIONS[TipStatus(current)]


def has_started(tip: Mapping[str, Any], now: datetime) -> bool:
    return ensure_utc(tip["match_start_time"]) <= ensure_utc(now)


def _differs(old: Any, new: Any) -> bool:
    if isinstance(old, datetime) and isinstance(new, datetime):
        return ensure_utc(old) != ensure_utc(new)
    if isinstance(old, (int, float)) and isinstance(new, (int, float)):
        return round(float(old), 2) != round(float(new), 2)
    return old != new


def effective_changes(tip: Mapping[str, Any], changes: Mapping[str, Any]) -> dict[str, Any]:
    """Drop fields whose new value equals the stored one."""
    return {
        field: value
        for field, value in changes.items()
        if _differs(tip.get(field), value)
    }


def check_tip_update(
    tip: Mapping[str, Any],
    changes: Mapping[str, Any],
    now: datetime,
) -> dict[str, Any]:
    """Validate an update against lifecycle and anti-cheat rules.

    Returns the effective change set (possibly empty, meaning a no-op).
    Raises 423 when bet terms change after match start and 409 when a
    settled tip would leave its terminal status.
    """
    delta = effective_changes(tip, changes)

    if any(field in delta for field in TERM_FIELDS) and has_started(tip, now):
        raise HTTPException(status_code=status.HTTP_423_LOCKED, detail=ANTI_CHEAT_DETAIL)

    if "status" in delta:
        current = tip.get("status", TipStatus.pending.value)
        if not can_transition(current, delta["status"]):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=ALREADY_SETTLED_DETAIL)

    return delta
