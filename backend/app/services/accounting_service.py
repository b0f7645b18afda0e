"""
backend/app/services/accounting_service.py

Purpose:
    Pure profit/ROI derivation over tips and tracked stakes. Nothing here is
    persisted: every figure is recomputed from the raw rows on each read, so
    there is no stored profit that could drift from a tip's current status.

Dependencies:
    - app.models.tip
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping

from app.models.tip import TipStatus

SETTLED_STATUSES = frozenset({TipStatus.won.value, TipStatus.lost.value})


def doc_id(doc: Mapping[str, Any]) -> str:
    """String id of a Mongo document or an already-serialized row."""
    raw = doc.get("_id", doc.get("id"))
    return str(raw) if raw is not None else ""


def _status_value(status: Any) -> str:
    if isinstance(status, TipStatus):
        return status.value
    return str(status or TipStatus.pending.value)


def stake_profit(stake: float, status: Any, odds: float) -> float:
    """Realized profit of one stake given its tip's *current* status and odds.

    won  -> stake * (odds - 1)
    lost -> -stake
    pending / void -> 0
    """
    status = _status_value(status)
    if status == TipStatus.won.value:
        return float(stake) * (float(odds) - 1.0)
    if status == TipStatus.lost.value:
        return -float(stake)
    return 0.0


def roi_pct(profit: float, staked: float) -> float:
    """profit / staked * 100, defined as 0 when nothing was staked."""
    if staked <= 0:
        return 0.0
    return profit / staked * 100.0


def win_rate_pct(wins: int, losses: int) -> float:
    settled = wins + losses
    if settled <= 0:
        return 0.0
    return wins / settled * 100.0


@dataclass(frozen=True)
class AccountingSummary:
    total_staked: float = 0.0
    total_profit: float = 0.0
    wins: int = 0
    losses: int = 0
    open_bets: int = 0
    total_bets: int = 0
    roi: float = 0.0
    win_rate: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def summarize(
    tips: Iterable[Mapping[str, Any]],
    stakes: Iterable[Mapping[str, Any]],
) -> AccountingSummary:
    """Aggregate a set of stakes against the tips they reference.

    Stakes whose tip is absent from ``tips`` have no effect at all (neither on
    the staked total nor on the counts). Pending and void stakes count toward
    ``total_staked`` and ``open_bets`` but contribute zero profit.
    """
    tips_by_id = {doc_id(t): t for t in tips}

    total_staked = 0.0
    total_profit = 0.0
    wins = 0
    losses = 0
    open_bets = 0
    total_bets = 0

    for entry in stakes:
        tip = tips_by_id.get(str(entry.get("tip_id", "")))
        if tip is None:
            continue
        amount = float(entry.get("stake", 0.0))
        status = _status_value(tip.get("status"))

        total_bets += 1
        total_staked += amount
        total_profit += stake_profit(amount, status, tip.get("odds", 1.0))
        if status == TipStatus.won.value:
            wins += 1
        elif status == TipStatus.lost.value:
            losses += 1
        else:
            open_bets += 1

    return AccountingSummary(
        total_staked=round(total_staked, 2),
        total_profit=round(total_profit, 2),
        wins=wins,
        losses=losses,
        open_bets=open_bets,
        total_bets=total_bets,
        roi=round(roi_pct(total_profit, total_staked), 2),
        win_rate=round(win_rate_pct(wins, losses), 2),
    )


def count_tip_statuses(tips: Iterable[Mapping[str, Any]]) -> dict[str, int]:
    """Tip counts per lifecycle status plus a ``total`` key."""
    counts = {s.value: 0 for s in TipStatus}
    total = 0
    for tip in tips:
        total += 1
        status = _status_value(tip.get("status"))
        counts[status] = counts.get(status, 0) + 1
    counts["total"] = total
    return counts
