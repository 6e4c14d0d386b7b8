from typing import List, Optional, Set
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
import logging

from board.core.exceptions import (
    Forbidden,
    NotFound,
    ValidationError,
    storage_errors,
    validate_id,
)
from board.models.comment import Comment
from board.models.like import CommentLike
from board.models.thread import Thread
from board.models.user import User
from board.schemas.comment_schema import CommentCreate, CommentRow, CommentUpdate
from board.schemas.like_schema import LikeAction, LikeSubject, LikeToggleResult
from board.services.comment_tree import mask_comment_row
from board.services.counter_service import CounterService
from board.services.search_indexer import SearchIndexer

logger = logging.getLogger(__name__)

class CommentService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.counters = CounterService(db)
        self.indexer = SearchIndexer(db)

    async def get_comment(self, comment_id: int) -> Comment:
        """Get a comment by ID or raise ``NotFound``"""
        stmt = select(Comment).where(Comment.id == comment_id)
        result = await self.db.execute(stmt)
        comment = result.scalar_one_or_none()
        if comment is None:
            raise NotFound("Comment not found")
        return comment

    async def parent_exists_in_thread(self, thread_id: int, parent_comment_id: int) -> bool:
        stmt = select(Comment.id).where(
            Comment.id == parent_comment_id,
            Comment.thread_id == thread_id
        ).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    @storage_errors
    async def add_comment(
        self,
        thread_id: int,
        author_id: int,
        comment_data: CommentCreate
    ) -> Comment:
        """Create a comment or reply.

        The parent, when given, must belong to the same thread; this is
        checked before anything is inserted. The thread's comment counter and
        search document move in the same transaction as the insert.
        """
        validate_id(thread_id, "thread id")
        validate_id(author_id, "author id")
        body = (comment_data.body or "").strip()
        if not body:
            raise ValidationError("Comment body is required")

        thread_result = await self.db.execute(select(Thread.id).where(Thread.id == thread_id))
        if thread_result.scalar_one_or_none() is None:
            raise NotFound("Thread not found")

        parent_id = comment_data.parent_comment_id
        if parent_id is not None:
            validate_id(parent_id, "parent comment id")
            if not await self.parent_exists_in_thread(thread_id, parent_id):
                raise ValidationError("Invalid parent comment")

        comment = Comment(
            thread_id=thread_id,
            author_id=author_id,
            body=body,
            parent_comment_id=parent_id
        )
        self.db.add(comment)
        await self.db.flush()

        await self.counters.adjust_comment_count(thread_id, 1)
        await self.indexer.upsert_document(thread_id)
        await self.db.commit()

        logger.info(f"Created comment {comment.id} by user {author_id} on thread {thread_id}")
        return comment

    @storage_errors
    async def edit_comment(
        self,
        comment_id: int,
        editor_id: int,
        comment_data: CommentUpdate
    ) -> Comment:
        """Replace a comment body. Only its author may edit it."""
        validate_id(comment_id, "comment id")
        body = (comment_data.body or "").strip()
        if not body:
            raise ValidationError("Comment body is required")

        comment = await self.get_comment(comment_id)
        if comment.author_id != editor_id:
            raise Forbidden("You can only edit your own comments")
        if comment.is_deleted:
            raise ValidationError("Cannot edit a deleted comment")

        comment.body = body
        comment.is_edited = True
        comment.updated_at = datetime.utcnow()
        await self.db.flush()

        await self.indexer.upsert_document(comment.thread_id)
        await self.db.commit()

        logger.info(f"Edited comment {comment_id} by user {editor_id}")
        return comment

    @storage_errors
    async def soft_delete_comment(self, comment_id: int, user_id: int) -> Comment:
        """Flag a comment deleted; the row and its replies stay in place.

        Deleting an already deleted comment is a no-op.
        """
        validate_id(comment_id, "comment id")
        comment = await self.get_comment(comment_id)
        if comment.author_id != user_id:
            raise Forbidden("You can only delete your own comments")

        now = datetime.utcnow()
        stmt = update(Comment).where(
            Comment.id == comment_id,
            Comment.is_deleted == False  # noqa: E712
        ).values(
            is_deleted=True,
            deleted_at=now,
            deleted_by=user_id,
            updated_at=now
        ).execution_options(synchronize_session=False)
        result = await self.db.execute(stmt)

        if result.rowcount == 1:
            await self.counters.adjust_comment_count(comment.thread_id, -1)
            await self.indexer.upsert_document(comment.thread_id)
            logger.info(f"Soft-deleted comment {comment_id} by user {user_id}")
        else:
            logger.debug(f"Comment {comment_id} was already deleted")

        await self.db.commit()
        await self.db.refresh(comment)
        return comment

    async def toggle_comment_like(
        self,
        comment_id: int,
        user_id: int,
        action: LikeAction
    ) -> LikeToggleResult:
        return await self.counters.toggle_like(comment_id, LikeSubject.COMMENT, user_id, action)

    async def _liked_comment_ids(self, thread_id: int, viewer_id: int) -> Set[int]:
        stmt = select(CommentLike.comment_id).join(
            Comment, CommentLike.comment_id == Comment.id
        ).where(
            Comment.thread_id == thread_id,
            CommentLike.user_id == viewer_id
        )
        result = await self.db.execute(stmt)
        return set(result.scalars().all())

    async def list_comment_rows(
        self,
        thread_id: int,
        viewer_id: Optional[int] = None
    ) -> List[CommentRow]:
        """Every comment of a thread, oldest first, deleted ones masked"""
        stmt = select(
            Comment.id.label("comment_id"),
            Comment.thread_id,
            Comment.parent_comment_id,
            Comment.body,
            Comment.author_id,
            User.display_name.label("author_name"),
            User.profile_image.label("author_avatar"),
            Comment.likes_count,
            Comment.is_deleted,
            Comment.is_edited,
            Comment.created_at,
            Comment.updated_at
        ).join(
            User, Comment.author_id == User.id
        ).where(
            Comment.thread_id == thread_id
        ).order_by(
            Comment.created_at, Comment.id
        )

        result = await self.db.execute(stmt)
        rows = result.all()

        liked: Set[int] = set()
        if viewer_id:
            liked = await self._liked_comment_ids(thread_id, viewer_id)

        comment_rows = []
        for row in rows:
            data = dict(row._mapping)
            data["liked"] = row.comment_id in liked
            comment_rows.append(CommentRow(**mask_comment_row(data)))

        return comment_rows
