"""
backend/app/services/auth_service.py

Purpose:
    Session handling for tipfeed accounts: argon2 password hashes, short-lived
    access JWTs in an httpOnly cookie, refresh JWTs rotated within a family,
    and the FastAPI dependencies that gate the tip and admin routes by role.

Dependencies:
    - app.config (JWT_SECRET, token lifetimes, COOKIE_SECURE)
    - app.database (refresh_tokens, access_blocklist, users)
    - app.services.tip_policy
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError
from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, HTTPException, Request, Response, status
import jwt
from jwt.exceptions import InvalidTokenError as JWTError

from app.config import settings
import app.database as _db
from app.database import get_db
from app.models.user import Role
from app.services.tip_policy import effective_role, is_moderator
from app.utils import utcnow

logger = logging.getLogger("tipfeed.auth")
_hasher = PasswordHasher()

ALGORITHM = "HS256"


def decode_jwt(token: str) -> dict:
    """Decode with JWT_SECRET, falling back to JWT_SECRET_OLD while a key rotation is in flight."""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[ALGORITHM])
    except JWTError:
        if settings.JWT_SECRET_OLD:
            return jwt.decode(token, settings.JWT_SECRET_OLD, algorithms=[ALGORITHM])
        raise


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    try:
        return _hasher.verify(hashed, password)
    except VerifyMismatchError:
        return False


def create_access_token(user_id: str) -> str:
    expire = utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": user_id,
        "exp": expire,
        "type": "access",
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=ALGORITHM)


async def create_refresh_token(user_id: str, family: Optional[str] = None) -> str:
    """Mint a refresh token and record its jti; a new login starts a new family."""
    expire = utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    jti = secrets.token_hex(16)
    token_family = family or secrets.token_hex(8)

    payload = {
        "sub": user_id,
        "exp": expire,
        "type": "refresh",
        "jti": jti,
        "family": token_family,
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=ALGORITHM)

    await _db.db.refresh_tokens.insert_one({
        "jti": jti,
        "user_id": user_id,
        "family": token_family,
        "created_at": utcnow(),
        "expires_at": expire,
    })
    return token


async def rotate_refresh_token(old_jti: str, user_id: str, family: str) -> str:
    """Consume ``old_jti`` and hand out its successor in the same family."""
    await _db.db.refresh_tokens.delete_one({"jti": old_jti})
    return await create_refresh_token(user_id, family=family)


async def invalidate_token_family(family: str) -> None:
    """A consumed refresh token came back: sign out every session in its family."""
    result = await _db.db.refresh_tokens.delete_many({"family": family})
    logger.warning(
        "Token family invalidated (possible replay): %s (%d removed)",
        family, result.deleted_count,
    )


async def is_refresh_token_valid(jti: str) -> bool:
    doc = await _db.db.refresh_tokens.find_one({"jti": jti}, {"_id": 1})
    return doc is not None


async def blocklist_access_token(jti: str, expires_at: datetime) -> None:
    # Rows expire with the token (TTL index on expires_at).
    await _db.db.access_blocklist.update_one(
        {"jti": jti},
        {"$setOnInsert": {"jti": jti, "expires_at": expires_at}},
        upsert=True,
    )


def set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    response.set_cookie(
        key="access_token",
        value=access_token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
    )
    response.set_cookie(
        key="refresh_token",
        value=refresh_token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 86400,
        path="/api/auth/refresh",
    )


def clear_auth_cookies(response: Response) -> None:
    response.delete_cookie("access_token", path="/")
    response.delete_cookie("refresh_token", path="/api/auth/refresh")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


async def resolve_user_from_token(token: str, db) -> dict:
    """Access token -> user document. Shared by the cookie dependencies and /ws/tips."""
    try:
        payload = decode_jwt(token)
    except JWTError:
        raise _unauthorized("Invalid token.")

    if payload.get("type") != "access":
        raise _unauthorized("Invalid token type.")

    jti = payload.get("jti")
    if jti:
        blocked = await db.access_blocklist.find_one({"jti": jti}, {"_id": 1})
        if blocked:
            raise _unauthorized("Token revoked.")

    user_id = payload.get("sub")
    try:
        oid = ObjectId(user_id)
    except (InvalidId, TypeError):
        raise _unauthorized("Invalid token.")

    user = await db.users.find_one({"_id": oid})
    if not user:
        raise _unauthorized("User not found.")
    return user


async def get_current_user(request: Request, db=Depends(get_db)) -> dict:
    """Signed-in user for write routes (tracking, reactions, comments)."""
    token = request.cookies.get("access_token")
    if not token:
        raise _unauthorized("Not signed in.")
    return await resolve_user_from_token(token, db)


async def get_optional_user(request: Request, db=Depends(get_db)) -> Optional[dict]:
    """Viewer on the public feed, or None when anonymous or the cookie is stale."""
    token = request.cookies.get("access_token")
    if not token:
        return None
    try:
        return await resolve_user_from_token(token, db)
    except HTTPException:
        return None


async def get_moderator_user(user: dict = Depends(get_current_user)) -> dict:
    """Tip publishing and settlement."""
    if not is_moderator(user.get("roles")):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Moderators only.",
        )
    return user


async def get_admin_user(user: dict = Depends(get_current_user)) -> dict:
    """Role grants and the audit log."""
    if effective_role(user.get("roles")) != Role.admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrators only.",
        )
    return user
