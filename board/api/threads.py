from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging

from board.db.session import get_db
from board.models.user import User
from board.schemas.comment_schema import CommentCreate, CommentResponse, comment_response
from board.schemas.like_schema import LikeAction, LikeToggleResult
from board.schemas.thread_schema import ThreadCreate, ThreadInDB, ThreadSummary, ThreadView
from board.services.auth_service import get_current_user
from board.services.comment_service import CommentService
from board.services.thread_service import ThreadService
from board.utils.rate_limit import limiter, DEFAULT_LIMIT, MUTATION_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/", response_model=ThreadInDB, status_code=status.HTTP_201_CREATED)
@limiter.limit(MUTATION_LIMIT)
async def create_thread(
    request: Request,
    thread_data: ThreadCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create a thread"""
    thread_service = ThreadService(db)
    return await thread_service.create_thread(current_user.id, thread_data)

@router.get("/recent", response_model=List[ThreadSummary])
async def recent_threads(
    limit: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Newest threads for the home page"""
    thread_service = ThreadService(db)
    return await thread_service.list_recent_threads(limit)

@router.get("/{thread_id}", response_model=ThreadView)
@limiter.limit(DEFAULT_LIMIT)
async def view_thread(
    request: Request,
    thread_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Open a thread: counts a view and returns the comment forest"""
    thread_service = ThreadService(db)
    return await thread_service.materialize_thread_view(thread_id, viewer_id=current_user.id)

@router.post("/{thread_id}/like", response_model=LikeToggleResult)
@limiter.limit(MUTATION_LIMIT)
async def like_thread(
    request: Request,
    thread_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Like a thread; liking twice is a no-op"""
    thread_service = ThreadService(db)
    return await thread_service.toggle_thread_like(thread_id, current_user.id, LikeAction.LIKE)

@router.delete("/{thread_id}/like", response_model=LikeToggleResult)
@limiter.limit(MUTATION_LIMIT)
async def unlike_thread(
    request: Request,
    thread_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Remove a like; unliking a thread you never liked is a no-op"""
    thread_service = ThreadService(db)
    return await thread_service.toggle_thread_like(thread_id, current_user.id, LikeAction.UNLIKE)

@router.post("/{thread_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(MUTATION_LIMIT)
async def add_comment(
    request: Request,
    thread_id: int,
    comment_data: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Comment on a thread or reply to a comment in it"""
    comment_service = CommentService(db)
    comment = await comment_service.add_comment(thread_id, current_user.id, comment_data)
    return comment_response(comment)
