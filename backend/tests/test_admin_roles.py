"""
backend/tests/test_admin_roles.py

Purpose:
    Role grant/revoke by admins and the moderator-only dashboard endpoints.
"""

from __future__ import annotations

from datetime import timedelta

from bson import ObjectId
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from app.routers.admin import router as admin_router
from app.routers.dashboard import router as dashboard_router
from app.services.auth_service import get_admin_user, get_current_user
from app.utils import utcnow
from conftest import FakeCollection

ADMIN = {"_id": ObjectId(), "email": "root@example.com", "roles": ["user", "admin"]}


def _build_test_client(user: dict | None = None, admin_ok: bool = True) -> TestClient:
    app = FastAPI()
    app.include_router(admin_router)
    app.include_router(dashboard_router)

    if admin_ok:
        async def _fake_admin():
            return ADMIN
        app.dependency_overrides[get_admin_user] = _fake_admin
    else:
        async def _fake_forbidden():
            raise HTTPException(status_code=403, detail="forbidden")
        app.dependency_overrides[get_admin_user] = _fake_forbidden

    async def _fake_user():
        return user or ADMIN

    app.dependency_overrides[get_current_user] = _fake_user
    return TestClient(app)


def _member() -> dict:
    return {
        "_id": ObjectId(),
        "email": "tipster@example.com",
        "username": "tipster",
        "roles": ["user"],
        "created_at": utcnow(),
    }


def test_grant_and_revoke_moderator(fake_db):
    member = _member()
    db = fake_db(users=FakeCollection([member]))
    client = _build_test_client()

    granted = client.post(f"/api/admin/users/{member['_id']}/roles", json={"role": "moderator"})
    assert granted.status_code == 200
    assert granted.json()["role"] == "moderator"
    assert granted.json()["is_moderator"] is True

    revoked = client.delete(f"/api/admin/users/{member['_id']}/roles/moderator")
    assert revoked.status_code == 200
    assert revoked.json()["role"] == "user"
    assert revoked.json()["is_moderator"] is False

    assert [a["action"] for a in db.audit_logs.docs] == ["ROLE_GRANTED", "ROLE_REVOKED"]


def test_admin_implies_moderator(fake_db):
    member = _member()
    fake_db(users=FakeCollection([member]))
    body = _build_test_client().post(
        f"/api/admin/users/{member['_id']}/roles", json={"role": "admin"}
    ).json()
    assert body["role"] == "admin"
    assert body["is_moderator"] is True


def test_base_role_cannot_be_touched(fake_db):
    member = _member()
    fake_db(users=FakeCollection([member]))
    client = _build_test_client()

    assert client.post(
        f"/api/admin/users/{member['_id']}/roles", json={"role": "user"}
    ).status_code == 422
    assert client.delete(f"/api/admin/users/{member['_id']}/roles/user").status_code == 400


def test_unknown_user_is_404(fake_db):
    fake_db(users=FakeCollection())
    response = _build_test_client().post(
        f"/api/admin/users/{ObjectId()}/roles", json={"role": "moderator"}
    )
    assert response.status_code == 404


def test_role_change_forbidden_for_non_admin(fake_db):
    fake_db(users=FakeCollection([_member()]))
    response = _build_test_client(admin_ok=False).post(
        f"/api/admin/users/{ObjectId()}/roles", json={"role": "moderator"}
    )
    assert response.status_code == 403


def test_dashboard_forbidden_for_plain_user(fake_db):
    fake_db(tips=FakeCollection(), user_tracking=FakeCollection())
    response = _build_test_client(user=_member()).get("/api/dashboard/stats")
    assert response.status_code == 403


def test_dashboard_stats_for_moderator(fake_db):
    won = {"_id": ObjectId(), "status": "won", "odds": 3.0, "match_name": "X vs Y"}
    pending = {"_id": ObjectId(), "status": "pending", "odds": 1.5, "match_name": "Z vs W"}
    now = utcnow()
    stakes = [
        {"_id": ObjectId(), "user_id": "u1", "tip_id": str(won["_id"]), "stake": 10.0, "created_at": now},
        {"_id": ObjectId(), "user_id": "u2", "tip_id": str(pending["_id"]), "stake": 30.0,
         "created_at": now - timedelta(minutes=5)},
    ]
    fake_db(tips=FakeCollection([won, pending]), user_tracking=FakeCollection(stakes))
    client = _build_test_client()

    stats = client.get("/api/dashboard/stats").json()
    assert stats["tips"]["total"] == 2
    assert stats["tips"]["won"] == 1
    assert stats["summary"]["total_staked"] == 40.0
    assert stats["summary"]["total_profit"] == 20.0
    assert stats["summary"]["roi"] == 50.0

    rows = client.get("/api/dashboard/tracking").json()
    assert [r["match_name"] for r in rows] == ["X vs Y", "Z vs W"]
    assert rows[0]["username"] == "User"
