"""
backend/tests/test_tip_policy.py

Purpose:
    Role predicates, the tip lifecycle and the post-kickoff freeze on bet terms.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from app.models.user import Role
from app.services.tip_policy import (
    ANTI_CHEAT_DETAIL,
    can_transition,
    check_tip_update,
    effective_role,
    is_moderator,
    require_moderator,
)

NOW = datetime(2026, 5, 10, 18, 0, tzinfo=timezone.utc)


def _tip(*, started: bool, status: str = "pending") -> dict:
    offset = timedelta(hours=-1) if started else timedelta(hours=2)
    return {
        "match_name": "Arsenal vs Chelsea",
        "sport": "football",
        "bet_type": "Over 2.5",
        "odds": 1.85,
        "analysis": None,
        "status": status,
        "match_start_time": NOW + offset,
    }


def test_effective_role_picks_highest():
    assert effective_role(None) == Role.user
    assert effective_role(["user"]) == Role.user
    assert effective_role(["user", "moderator"]) == Role.moderator
    assert effective_role(["moderator", "admin", "user"]) == Role.admin
    assert effective_role(["superhero", "moderator"]) == Role.moderator


def test_is_moderator_includes_admin():
    assert is_moderator(["admin"]) is True
    assert is_moderator(["moderator"]) is True
    assert is_moderator(["user"]) is False


def test_require_moderator_rejects_plain_user():
    with pytest.raises(HTTPException) as exc:
        require_moderator({"_id": "u1", "roles": ["user"]})
    assert exc.value.status_code == 403


def test_pending_can_move_anywhere_terminal_cannot():
    for target in ("pending", "won", "lost", "void"):
        assert can_transition("pending", target)
    assert not can_transition("won", "pending")
    assert not can_transition("lost", "won")
    assert not can_transition("void", "lost")
    assert can_transition("won", "won")


def test_term_change_after_start_is_locked():
    with pytest.raises(HTTPException) as exc:
        check_tip_update(_tip(started=True), {"odds": 2.10}, NOW)
    assert exc.value.status_code == 423
    assert exc.value.detail == ANTI_CHEAT_DETAIL


def test_analysis_change_after_start_is_locked():
    with pytest.raises(HTTPException) as exc:
        check_tip_update(_tip(started=True), {"analysis": "late thoughts"}, NOW)
    assert exc.value.status_code == 423


def test_status_only_after_start_is_allowed():
    delta = check_tip_update(_tip(started=True), {"status": "won"}, NOW)
    assert delta == {"status": "won"}


def test_terms_and_status_after_start_rejected_as_a_whole():
    with pytest.raises(HTTPException) as exc:
        check_tip_update(_tip(started=True), {"status": "won", "odds": 3.0}, NOW)
    assert exc.value.status_code == 423


def test_term_change_before_start_is_allowed():
    delta = check_tip_update(_tip(started=False), {"odds": 2.10, "bet_type": "BTTS"}, NOW)
    assert delta == {"odds": 2.10, "bet_type": "BTTS"}


def test_start_exactly_now_counts_as_started():
    tip = _tip(started=False)
    tip["match_start_time"] = NOW
    with pytest.raises(HTTPException) as exc:
        check_tip_update(tip, {"sport": "tennis"}, NOW)
    assert exc.value.status_code == 423


def test_unchanged_values_are_a_noop_even_after_start():
    tip = _tip(started=True)
    assert check_tip_update(tip, {"odds": 1.85, "match_name": "Arsenal vs Chelsea"}, NOW) == {}


def test_naive_start_time_compared_as_utc():
    tip = _tip(started=True)
    naive = tip["match_start_time"].replace(tzinfo=None)
    assert check_tip_update(tip, {"match_start_time": naive}, NOW) == {}


def test_leaving_terminal_status_conflicts():
    with pytest.raises(HTTPException) as exc:
        check_tip_update(_tip(started=True, status="won"), {"status": "pending"}, NOW)
    assert exc.value.status_code == 409


def test_same_terminal_status_is_noop():
    assert check_tip_update(_tip(started=True, status="lost"), {"status": "lost"}, NOW) == {}
