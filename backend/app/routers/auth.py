import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from jwt.exceptions import InvalidTokenError as JWTError
from pymongo.errors import DuplicateKeyError

from app.database import get_db
from app.models.user import Role, UserCreate, UserLogin, UserResponse
from app.services.audit_service import log_audit
from app.services.auth_service import (
    blocklist_access_token,
    clear_auth_cookies,
    create_access_token,
    create_refresh_token,
    decode_jwt,
    get_current_user,
    hash_password,
    invalidate_token_family,
    is_refresh_token_valid,
    rotate_refresh_token,
    set_auth_cookies,
    verify_password,
)
from app.services.user_service import default_username, user_to_response
from app.utils import utcnow

logger = logging.getLogger("tipfeed.auth")
router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: UserCreate, request: Request, response: Response, db=Depends(get_db)):
    """Register a new account with the base ``user`` role."""
    now = utcnow()
    user_doc = {
        "email": body.email,
        "hashed_password": hash_password(body.password),
        "username": body.username or default_username(body.email),
        "roles": [Role.user.value],
        "created_at": now,
        "updated_at": now,
    }
    try:
        result = await db.users.insert_one(user_doc)
    except DuplicateKeyError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This email address is already registered.",
        )
    user_id = str(result.inserted_id)

    access = create_access_token(user_id)
    refresh = await create_refresh_token(user_id)
    set_auth_cookies(response, access, refresh)

    await log_audit(actor_id=user_id, target_id=user_id, action="REGISTER", request=request)
    logger.info("User registered: %s", user_id)
    return {"message": "Registration successful."}


@router.post("/login")
async def login(body: UserLogin, request: Request, response: Response, db=Depends(get_db)):
    """Login with email and password."""
    user = await db.users.find_one({"email": body.email})
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password.",
        )

    user_id = str(user["_id"])
    if not verify_password(body.password, user["hashed_password"]):
        await log_audit(actor_id=user_id, target_id=user_id, action="LOGIN_FAILED", request=request)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password.",
        )

    access = create_access_token(user_id)
    refresh = await create_refresh_token(user_id)
    set_auth_cookies(response, access, refresh)

    await log_audit(actor_id=user_id, target_id=user_id, action="LOGIN_SUCCESS", request=request)
    logger.info("User logged in: %s", user_id)
    return {"message": "Login successful."}


@router.post("/refresh")
async def refresh_token(request: Request, response: Response):
    """Refresh the access token using the refresh cookie (with rotation)."""
    token = request.cookies.get("refresh_token")
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No refresh token provided.",
        )
    try:
        payload = decode_jwt(token)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token.",
        )
    if payload.get("type") != "refresh":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type.",
        )

    jti = payload.get("jti")
    family = payload.get("family")
    user_id = payload.get("sub")

    # Replay of an already-rotated token burns the family
    if not await is_refresh_token_valid(jti):
        if family:
            await invalidate_token_family(family)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has already been used. Please log in again.",
        )

    new_access = create_access_token(user_id)
    new_refresh = await rotate_refresh_token(jti, user_id, family)
    set_auth_cookies(response, new_access, new_refresh)
    return {"message": "Token refreshed."}


@router.post("/logout")
async def logout(request: Request, response: Response):
    """Clear cookies, revoke the access token and the refresh family."""
    access = request.cookies.get("access_token")
    if access:
        try:
            payload = decode_jwt(access)
            if payload.get("jti") and payload.get("exp"):
                await blocklist_access_token(
                    payload["jti"], datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                )
        except JWTError:
            pass
    refresh = request.cookies.get("refresh_token")
    if refresh:
        try:
            family = decode_jwt(refresh).get("family")
            if family:
                await invalidate_token_family(family)
        except JWTError:
            pass
    clear_auth_cookies(response)
    return {"message": "Logged out."}


@router.get("/me", response_model=UserResponse)
async def me(user=Depends(get_current_user)):
    """Current user with effective role."""
    return user_to_response(user)
