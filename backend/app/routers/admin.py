from fastapi import APIRouter, Depends, Request

from app.models.user import Role, RoleChange, UserResponse
from app.services.auth_service import get_admin_user
from app.services.user_service import set_role, user_to_response

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/users/{user_id}/roles", response_model=UserResponse)
async def grant_role(
    user_id: str,
    body: RoleChange,
    request: Request,
    admin=Depends(get_admin_user),
):
    """Grant moderator or admin to a user."""
    user = await set_role(admin, user_id, body.role, grant=True, request=request)
    return user_to_response(user)


@router.delete("/users/{user_id}/roles/{role}", response_model=UserResponse)
async def revoke_role(
    user_id: str,
    role: Role,
    request: Request,
    admin=Depends(get_admin_user),
):
    """Revoke an elevated role; the base user role stays."""
    user = await set_role(admin, user_id, role, grant=False, request=request)
    return user_to_response(user)
