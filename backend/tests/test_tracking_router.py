"""
backend/tests/test_tracking_router.py

Purpose:
    Stake tracking and history endpoints, plus the public leaderboard route.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from bson import ObjectId
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient

import app.routers.leaderboard as leaderboard_router
from app.routers.tracking import router as tracking_router
from app.services.auth_service import get_current_user
from app.main import validation_error_handler
from app.utils import utcnow
from conftest import FakeCollection

USER = {"_id": ObjectId(), "username": "sam", "roles": ["user"]}


def _build_test_client() -> TestClient:
    app = FastAPI()
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.include_router(tracking_router)
    app.include_router(leaderboard_router.router)

    async def _fake_user():
        return USER

    app.dependency_overrides[get_current_user] = _fake_user
    return TestClient(app)


@pytest.fixture
def pending_tip(fake_db):
    tip = {
        "_id": ObjectId(),
        "match_name": "Ajax vs PSV",
        "sport": "football",
        "bet_type": "BTTS",
        "odds": 1.8,
        "status": "pending",
        "match_start_time": utcnow() + timedelta(hours=5),
        "created_at": utcnow(),
    }
    db = fake_db(
        tips=FakeCollection([tip]),
        user_tracking=FakeCollection(unique=("user_id", "tip_id")),
    )
    return tip, db


def test_track_then_duplicate(pending_tip):
    tip, db = pending_tip
    client = _build_test_client()

    first = client.post(f"/api/tips/{tip['_id']}/track", json={"stake": 20})
    assert first.status_code == 201
    assert first.json()["stake"] == 20.0

    again = client.post(f"/api/tips/{tip['_id']}/track", json={"stake": 5})
    assert again.status_code == 409
    assert again.json()["detail"] == "You already tracked this tip."
    assert len(db.user_tracking.docs) == 1


@pytest.mark.parametrize("stake", [0, -5, "abc"])
def test_track_rejects_bad_stake(pending_tip, stake):
    tip, db = pending_tip
    response = _build_test_client().post(f"/api/tips/{tip['_id']}/track", json={"stake": stake})
    assert response.status_code == 422
    assert db.user_tracking.docs == []


@pytest.mark.parametrize("raw", ["NaN", "Infinity", "-Infinity", '"inf"', '"NaN"'])
def test_track_rejects_non_finite_stake(pending_tip, raw):
    tip, db = pending_tip
    client = _build_test_client()
    response = client.post(
        f"/api/tips/{tip['_id']}/track",
        content='{"stake": %s}' % raw,
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 422
    assert db.user_tracking.docs == []

    summary = client.get("/api/tracking/mine").json()["summary"]
    assert summary["total_staked"] == 0.0


def test_history_after_settlement(pending_tip):
    tip, db = pending_tip
    client = _build_test_client()
    client.post(f"/api/tips/{tip['_id']}/track", json={"stake": 10})
    db.tips.docs[0]["status"] = "won"

    body = client.get("/api/tracking/mine").json()
    assert body["summary"]["total_profit"] == 8.0
    assert body["summary"]["roi"] == 80.0
    assert body["summary"]["win_rate"] == 100.0
    assert body["entries"][0]["match_name"] == "Ajax vs PSV"
    assert body["entries"][0]["profit"] == 8.0

    assert client.get("/api/tracking/mine/ids").json() == [str(tip["_id"])]


def test_untrack_unknown_entry(pending_tip):
    response = _build_test_client().delete(f"/api/tracking/{ObjectId()}")
    assert response.status_code == 404


def test_leaderboard_route_passes_period(monkeypatch):
    seen = {}

    async def _fake_leaderboard(period, limit):
        seen["period"] = period.value
        seen["limit"] = limit
        return [{
            "rank": 1, "user_id": "u1", "username": "sam", "total_profit": 12.5,
            "total_staked": 50.0, "wins": 2, "total_bets": 3, "roi": 25.0,
        }]

    monkeypatch.setattr(leaderboard_router, "get_leaderboard", _fake_leaderboard)
    client = _build_test_client()

    response = client.get("/api/leaderboard/", params={"period": "month"})
    assert response.status_code == 200
    assert response.json()[0]["username"] == "sam"
    assert seen == {"period": "month", "limit": 10}

    assert client.get("/api/leaderboard/", params={"period": "decade"}).status_code == 422
