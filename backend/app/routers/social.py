from fastapi import APIRouter, Depends, status

from app.models.social import CommentCreate, CommentResponse, ReactionType
from app.models.tip import ReactionTally
from app.services.auth_service import get_current_user
from app.services.comment_service import add_comment, delete_comment, list_comments
from app.services.reaction_service import toggle_reaction
from app.utils import as_utc

router = APIRouter(prefix="/api", tags=["social"])


def _comment_response(doc: dict) -> CommentResponse:
    author = doc.get("author") or {}
    return CommentResponse(
        id=str(doc["_id"]),
        tip_id=doc["tip_id"],
        user_id=doc["user_id"],
        username=author.get("username") or "User",
        content=doc["content"],
        created_at=as_utc(doc["created_at"]),
    )


@router.post("/tips/{tip_id}/reactions/{kind}", response_model=ReactionTally)
async def react(tip_id: str, kind: ReactionType, user=Depends(get_current_user)):
    """Toggle a like/fire reaction; returns the tip's updated tally."""
    return await toggle_reaction(str(user["_id"]), tip_id, kind)


@router.get("/tips/{tip_id}/comments", response_model=list[CommentResponse])
async def get_comments(tip_id: str):
    return [_comment_response(c) for c in await list_comments(tip_id)]


@router.post(
    "/tips/{tip_id}/comments",
    status_code=status.HTTP_201_CREATED,
    response_model=CommentResponse,
)
async def post_comment(tip_id: str, body: CommentCreate, user=Depends(get_current_user)):
    return _comment_response(await add_comment(user, tip_id, body.content))


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_comment(comment_id: str, user=Depends(get_current_user)):
    await delete_comment(str(user["_id"]), comment_id)
