from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, desc
import logging

from board.config import settings
from board.core.exceptions import NotFound, ValidationError, storage_errors, validate_id
from board.models.like import ThreadLike
from board.models.thread import Thread
from board.models.user import User
from board.schemas.like_schema import LikeAction, LikeSubject, LikeToggleResult
from board.schemas.thread_schema import ThreadCreate, ThreadSummary, ThreadView, ThreadWithOwner
from board.services.comment_service import CommentService
from board.services.comment_tree import build_tree, count_nodes
from board.services.counter_service import CounterService
from board.services.search_indexer import SearchIndexer

logger = logging.getLogger(__name__)

class ThreadService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.counters = CounterService(db)
        self.indexer = SearchIndexer(db)
        self.comments = CommentService(db)

    @storage_errors
    async def create_thread(self, owner_id: int, thread_data: ThreadCreate) -> Thread:
        """Create a thread and its initial search document"""
        validate_id(owner_id, "owner id")
        title = (thread_data.title or "").strip()
        body = (thread_data.body or "").strip()
        if not title or not body:
            raise ValidationError("Title and description are required")

        thread = Thread(owner_id=owner_id, title=title, body=body)
        self.db.add(thread)
        await self.db.flush()

        await self.indexer.upsert_document(thread.id)
        await self.db.commit()

        logger.info(f"Created thread {thread.id} by user {owner_id}")
        return thread

    async def get_thread_with_owner(
        self,
        thread_id: int,
        viewer_id: Optional[int] = None
    ) -> ThreadWithOwner:
        """Get a thread with owner info and the viewer's like status"""
        liked = select(ThreadLike.id).where(
            and_(
                ThreadLike.thread_id == Thread.id,
                ThreadLike.user_id == viewer_id
            )
        ).exists()

        stmt = select(
            Thread.id,
            Thread.owner_id,
            Thread.title,
            Thread.body,
            Thread.views_count,
            Thread.comments_count,
            Thread.likes_count,
            Thread.created_at,
            Thread.updated_at,
            User.display_name.label("owner_name"),
            User.profile_image.label("owner_avatar")
        ).join(
            User, Thread.owner_id == User.id
        ).where(
            Thread.id == thread_id
        )
        if viewer_id:
            stmt = stmt.add_columns(liked.label("liked"))

        result = await self.db.execute(stmt)
        row = result.first()
        if row is None:
            raise NotFound("Thread not found")

        data = dict(row._mapping)
        data["liked"] = bool(data.get("liked", False))
        return ThreadWithOwner(**data)

    @storage_errors
    async def materialize_thread_view(
        self,
        thread_id: int,
        viewer_id: Optional[int] = None
    ) -> ThreadView:
        """Count a view, then load the thread and its comment forest.

        The view is recorded first so the returned ``views_count`` includes
        this page open.
        """
        validate_id(thread_id, "thread id")
        await self.counters.record_view(thread_id)

        thread = await self.get_thread_with_owner(thread_id, viewer_id)
        rows = await self.comments.list_comment_rows(thread_id, viewer_id)
        forest = build_tree(rows)

        logger.debug(f"Thread {thread_id}: {len(rows)} comments, {len(forest)} roots")
        return ThreadView(thread=thread, comments=forest, total_comments=count_nodes(forest))

    async def toggle_thread_like(
        self,
        thread_id: int,
        user_id: int,
        action: LikeAction
    ) -> LikeToggleResult:
        return await self.counters.toggle_like(thread_id, LikeSubject.THREAD, user_id, action)

    @storage_errors
    async def list_recent_threads(self, limit: Optional[int] = None) -> List[ThreadSummary]:
        """Newest threads first; ``limit`` is clamped to a sane range"""
        limit = limit or settings.RECENT_THREADS_DEFAULT
        limit = max(1, min(settings.RECENT_THREADS_MAX, limit))

        stmt = select(
            Thread.id,
            Thread.title,
            Thread.body,
            Thread.comments_count,
            Thread.likes_count,
            Thread.created_at,
            User.display_name.label("owner_name")
        ).join(
            User, Thread.owner_id == User.id
        ).order_by(
            desc(Thread.created_at), desc(Thread.id)
        ).limit(limit)

        result = await self.db.execute(stmt)
        return [ThreadSummary(**dict(row._mapping)) for row in result.all()]
