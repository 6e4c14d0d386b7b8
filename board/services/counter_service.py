from typing import Tuple, Type
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, case
import logging

from board.core.exceptions import NotFound, ValidationError, storage_errors, validate_id
from board.db.dialect import upsert_insert
from board.models.thread import Thread
from board.models.comment import Comment
from board.models.like import ThreadLike, CommentLike
from board.schemas.like_schema import LikeAction, LikeSubject, LikeToggleResult

logger = logging.getLogger(__name__)

class CounterService:
    """Owns the denormalized like/view/comment counters.

    Every counter move is a single ``UPDATE ... SET n = n + delta`` issued in
    the same transaction as the existence-set change that caused it. Counters
    are never recomputed by scanning.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _subject(kind: LikeSubject) -> Tuple[Type, str, Type]:
        if kind == LikeSubject.THREAD:
            return ThreadLike, "thread_id", Thread
        if kind == LikeSubject.COMMENT:
            return CommentLike, "comment_id", Comment
        raise ValidationError(f"Unknown like subject: {kind!r}")

    async def _shift(self, model, column_name: str, subject_id: int, delta: int) -> int:
        """Atomically move a counter column by ``delta``, never below zero"""
        column = getattr(model, column_name)
        if delta >= 0:
            value = column + delta
        else:
            value = case((column + delta >= 0, column + delta), else_=0)

        stmt = (
            update(model)
            .where(model.id == subject_id)
            .values({column_name: value})
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount

    async def _read_counter(self, model, column_name: str, subject_id: int) -> int:
        stmt = select(getattr(model, column_name)).where(model.id == subject_id)
        result = await self.db.execute(stmt)
        return result.scalar_one()

    async def _ensure_likeable(self, kind: LikeSubject, subject_id: int, action: LikeAction) -> None:
        if kind == LikeSubject.THREAD:
            stmt = select(Thread.id).where(Thread.id == subject_id)
            result = await self.db.execute(stmt)
            if result.scalar_one_or_none() is None:
                raise NotFound("Thread not found")
            return

        stmt = select(Comment.is_deleted).where(Comment.id == subject_id)
        result = await self.db.execute(stmt)
        row = result.first()
        if row is None:
            raise NotFound("Comment not found")
        if row.is_deleted and action == LikeAction.LIKE:
            raise ValidationError("Cannot like a deleted comment")

    @storage_errors
    async def toggle_like(
        self,
        subject_id: int,
        kind: LikeSubject,
        user_id: int,
        action: LikeAction
    ) -> LikeToggleResult:
        """Like or unlike a thread or comment.

        ``like`` inserts the (subject, user) pair with ON CONFLICT DO NOTHING;
        only a real insert bumps the counter. ``unlike`` deletes the pair and
        only a real delete lowers the counter, floored at zero. Repeating
        either action is a no-op reporting ``changed=False``.
        """
        validate_id(subject_id, "subject id")
        validate_id(user_id, "user id")
        try:
            kind = LikeSubject(kind)
            action = LikeAction(action)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        like_model, subject_column, counted_model = self._subject(kind)

        await self._ensure_likeable(kind, subject_id, action)

        if action == LikeAction.LIKE:
            stmt = upsert_insert(self.db, like_model).values(
                {subject_column: subject_id, "user_id": user_id}
            ).on_conflict_do_nothing(
                index_elements=[subject_column, "user_id"]
            )
            result = await self.db.execute(stmt)
            changed = result.rowcount == 1
            if changed:
                await self._shift(counted_model, "likes_count", subject_id, 1)
        else:
            stmt = delete(like_model).where(
                getattr(like_model, subject_column) == subject_id,
                like_model.user_id == user_id
            ).execution_options(synchronize_session=False)
            result = await self.db.execute(stmt)
            changed = result.rowcount == 1
            if changed:
                await self._shift(counted_model, "likes_count", subject_id, -1)

        new_count = await self._read_counter(counted_model, "likes_count", subject_id)
        await self.db.commit()

        if changed:
            logger.info(f"{action.value}: user={user_id} {kind.value}={subject_id} count={new_count}")
        else:
            logger.debug(f"{action.value} no-op: user={user_id} {kind.value}={subject_id}")

        return LikeToggleResult(changed=changed, new_count=new_count)

    @storage_errors
    async def record_view(self, thread_id: int) -> int:
        """Count one page open. Not deduplicated by viewer."""
        validate_id(thread_id, "thread id")
        updated = await self._shift(Thread, "views_count", thread_id, 1)
        if updated == 0:
            raise NotFound("Thread not found")
        await self.db.commit()
        return updated

    async def adjust_comment_count(self, thread_id: int, delta: int) -> None:
        """Move ``comments_count`` inside the caller's transaction.

        Does not commit; the comment insert or soft-delete that motivates the
        change commits both together.
        """
        updated = await self._shift(Thread, "comments_count", thread_id, delta)
        if updated == 0:
            raise NotFound("Thread not found")
