from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from board.db.session import get_db
from board.models.user import User
from board.schemas.comment_schema import CommentResponse, CommentUpdate, comment_response
from board.schemas.like_schema import LikeAction, LikeToggleResult
from board.services.auth_service import get_current_user
from board.services.comment_service import CommentService
from board.utils.rate_limit import limiter, MUTATION_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter()

@router.patch("/{comment_id}", response_model=CommentResponse)
@limiter.limit(MUTATION_LIMIT)
async def edit_comment(
    request: Request,
    comment_id: int,
    comment_data: CommentUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Edit your own comment"""
    comment_service = CommentService(db)
    comment = await comment_service.edit_comment(comment_id, current_user.id, comment_data)
    return comment_response(comment)

@router.delete("/{comment_id}", response_model=CommentResponse)
@limiter.limit(MUTATION_LIMIT)
async def delete_comment(
    request: Request,
    comment_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Soft-delete your own comment; replies stay in place"""
    comment_service = CommentService(db)
    comment = await comment_service.soft_delete_comment(comment_id, current_user.id)
    return comment_response(comment)

@router.post("/{comment_id}/like", response_model=LikeToggleResult)
@limiter.limit(MUTATION_LIMIT)
async def like_comment(
    request: Request,
    comment_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Like a comment"""
    comment_service = CommentService(db)
    return await comment_service.toggle_comment_like(comment_id, current_user.id, LikeAction.LIKE)

@router.delete("/{comment_id}/like", response_model=LikeToggleResult)
@limiter.limit(MUTATION_LIMIT)
async def unlike_comment(
    request: Request,
    comment_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Unlike a comment"""
    comment_service = CommentService(db)
    return await comment_service.toggle_comment_like(comment_id, current_user.id, LikeAction.UNLIKE)
