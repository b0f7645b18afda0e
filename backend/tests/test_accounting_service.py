"""
backend/tests/test_accounting_service.py

Purpose:
    Profit, ROI and win-rate derivation over tips and tracked stakes.
"""

from __future__ import annotations

import pytest
from bson import ObjectId

from app.services.accounting_service import (
    count_tip_statuses,
    roi_pct,
    stake_profit,
    summarize,
    win_rate_pct,
)


def _tip(status: str, odds: float) -> dict:
    return {"_id": ObjectId(), "status": status, "odds": odds}


def _stake(tip: dict, amount: float) -> dict:
    return {"_id": ObjectId(), "user_id": "u1", "tip_id": str(tip["_id"]), "stake": amount}


@pytest.mark.parametrize(
    ("status", "expected"),
    [("won", 10.0), ("lost", -10.0), ("pending", 0.0), ("void", 0.0)],
)
def test_stake_profit_per_status(status, expected):
    assert stake_profit(10.0, status, 2.0) == pytest.approx(expected)


def test_roi_is_zero_when_nothing_staked():
    assert roi_pct(0.0, 0.0) == 0.0
    assert win_rate_pct(0, 0) == 0.0


def test_won_tip_summary():
    tip = _tip("won", 2.5)
    summary = summarize([tip], [_stake(tip, 10.0)])
    assert summary.total_profit == 15.0
    assert summary.total_staked == 10.0
    assert summary.roi == 150.0
    assert summary.wins == 1
    assert summary.win_rate == 100.0


def test_mixed_won_and_lost():
    won = _tip("won", 2.0)
    lost = _tip("lost", 3.0)
    summary = summarize([won, lost], [_stake(won, 10.0), _stake(lost, 10.0)])
    assert summary.total_profit == 0.0
    assert summary.total_staked == 20.0
    assert summary.roi == 0.0
    assert summary.wins == 1
    assert summary.losses == 1
    assert summary.win_rate == 50.0


def test_pending_stake_counts_as_staked_but_not_profit():
    tip = _tip("pending", 1.8)
    summary = summarize([tip], [_stake(tip, 50.0)])
    assert summary.total_profit == 0.0
    assert summary.total_staked == 50.0
    assert summary.roi == 0.0
    assert summary.open_bets == 1
    assert summary.total_bets == 1


def test_void_stake_is_neither_win_nor_loss():
    tip = _tip("void", 4.0)
    summary = summarize([tip], [_stake(tip, 25.0)])
    assert summary.total_profit == 0.0
    assert summary.wins == 0
    assert summary.losses == 0
    assert summary.open_bets == 1


def test_stake_without_tip_has_no_effect():
    tip = _tip("won", 2.0)
    orphan = {"_id": ObjectId(), "tip_id": str(ObjectId()), "stake": 100.0}
    summary = summarize([tip], [_stake(tip, 10.0), orphan])
    assert summary.total_staked == 10.0
    assert summary.total_bets == 1
    assert summary.total_profit == 10.0


def test_summary_reflects_current_status_not_history():
    tip = _tip("pending", 2.0)
    stakes = [_stake(tip, 10.0)]
    before = summarize([tip], stakes)
    tip["status"] = "lost"
    after = summarize([tip], stakes)
    assert before.total_profit == 0.0
    assert after.total_profit == -10.0
    assert after.roi == -100.0


def test_summarize_is_repeatable():
    won = _tip("won", 1.91)
    lost = _tip("lost", 2.2)
    stakes = [_stake(won, 33.33), _stake(lost, 12.5)]
    assert summarize([won, lost], stakes) == summarize([won, lost], stakes)


def test_empty_summary_to_dict():
    assert summarize([], []).to_dict() == {
        "total_staked": 0.0,
        "total_profit": 0.0,
        "wins": 0,
        "losses": 0,
        "open_bets": 0,
        "total_bets": 0,
        "roi": 0.0,
        "win_rate": 0.0,
    }


def test_count_tip_statuses():
    counts = count_tip_statuses([
        {"status": "pending"},
        {"status": "won"},
        {"status": "won"},
        {"status": "void"},
    ])
    assert counts == {"pending": 1, "won": 2, "lost": 0, "void": 1, "total": 4}


def test_even_money_win():
    tip = _tip("won", 2.0)
    summary = summarize([tip], [_stake(tip, 10.0)])
    assert summary.total_profit == 10.0
    assert summary.roi == 100.0


def test_lost_stake_profit():
    tip = _tip("lost", 1.5)
    assert summarize([tip], [_stake(tip, 20.0)]).total_profit == -20.0


def test_two_stakes_on_same_won_tip():
    tip = _tip("won", 3.0)
    stakes = [_stake(tip, 10.0), {**_stake(tip, 20.0), "user_id": "u2"}]
    summary = summarize([tip], stakes)
    assert summary.total_staked == 30.0
    assert summary.total_profit == 60.0
    assert summary.roi == 200.0
