import logging
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException, Request, status

import app.database as _db
from app.models.user import Role, UserResponse
from app.services.audit_service import log_audit
from app.services.tip_policy import effective_role, is_moderator
from app.utils import as_utc, utcnow

logger = logging.getLogger("tipfeed.user_service")


def default_username(email: str) -> str:
    return email.split("@", 1)[0][:50] or "User"


def user_to_response(user: dict) -> UserResponse:
    roles = user.get("roles") or [Role.user.value]
    return UserResponse(
        id=str(user["_id"]),
        email=user["email"],
        username=user.get("username") or default_username(user["email"]),
        role=effective_role(roles),
        is_moderator=is_moderator(roles),
        created_at=as_utc(user["created_at"]),
    )


async def set_role(
    admin: dict,
    user_id: str,
    role: Role,
    *,
    grant: bool,
    request: Optional[Request] = None,
) -> dict:
    """Grant or revoke an elevated role. The base ``user`` role always stays."""
    role = Role(role)
    if role == Role.user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The base user role cannot be changed.",
        )
    try:
        oid = ObjectId(user_id)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")

    op = "$addToSet" if grant else "$pull"
    result = await _db.db.users.update_one(
        {"_id": oid},
        {op: {"roles": role.value}, "$set": {"updated_at": utcnow()}},
    )
    if result.matched_count == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")

    admin_id = str(admin["_id"])
    action = "ROLE_GRANTED" if grant else "ROLE_REVOKED"
    await log_audit(
        actor_id=admin_id, target_id=user_id, action=action,
        metadata={"role": role.value}, request=request,
    )
    logger.info("%s: user=%s role=%s by=%s", action, user_id, role.value, admin_id)
    return await _db.db.users.find_one({"_id": oid})
