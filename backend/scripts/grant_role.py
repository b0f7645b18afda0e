"""
backend/scripts/grant_role.py

Purpose:
    Bootstrap tool to grant or revoke the moderator/admin role for a user by
    e-mail, for when no admin account exists yet to do it through the API.

Usage:
    cd backend && python -m scripts.grant_role tipster@example.com moderator
    cd backend && python -m scripts.grant_role tipster@example.com moderator --revoke
"""

from __future__ import annotations

import argparse
import asyncio

import app.database as _db
from app.models.user import Role
from app.services.tip_policy import effective_role
from app.utils import utcnow

ELEVATED_ROLES = (Role.moderator.value, Role.admin.value)


async def _run(email: str, role: str, revoke: bool) -> int:
    await _db.connect_db()
    try:
        user = await _db.db.users.find_one({"email": email})
        if not user:
            print({"ok": False, "reason": "user_not_found", "email": email})
            return 1

        op = "$pull" if revoke else "$addToSet"
        await _db.db.users.update_one(
            {"_id": user["_id"]},
            {op: {"roles": role}, "$set": {"updated_at": utcnow()}},
        )
        updated = await _db.db.users.find_one({"_id": user["_id"]})
        print(
            {
                "ok": True,
                "email": email,
                "mode": "revoke" if revoke else "grant",
                "roles": updated.get("roles", []),
                "effective_role": effective_role(updated.get("roles")).value,
            }
        )
        return 0
    finally:
        await _db.close_db()


async def main() -> int:
    parser = argparse.ArgumentParser(description="Grant or revoke an elevated role.")
    parser.add_argument("email", help="Account e-mail address.")
    parser.add_argument("role", choices=ELEVATED_ROLES)
    parser.add_argument("--revoke", action="store_true", help="Remove the role instead of adding it.")
    args = parser.parse_args()
    return await _run(args.email, args.role, bool(args.revoke))


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
