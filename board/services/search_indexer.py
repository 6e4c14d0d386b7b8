import logging
import re
from typing import Iterable, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from board.core.exceptions import NotFound, storage_errors, validate_id
from board.db.dialect import upsert_insert
from board.models.comment import Comment
from board.models.search_document import SearchDocument
from board.models.thread import Thread

logger = logging.getLogger(__name__)

# Runs of anything that is not a letter or digit (underscore included)
_NON_ALNUM = re.compile(r"[\W_]+", re.UNICODE)


def normalize_document(parts: Iterable[str]) -> str:
    """Join text parts into the padded token string stored per thread.

    Lowercased, every run of non-alphanumeric characters collapsed to a
    single space, trimmed, then wrapped in one leading and one trailing
    space so that ``" word "`` only ever matches a whole token.
    """
    joined = " ".join(part for part in parts if part)
    collapsed = _NON_ALNUM.sub(" ", joined.lower()).strip()
    return f" {collapsed} " if collapsed else " "


def tokenize_query(query: str) -> List[str]:
    """Lowercase tokens of ``query``, deduplicated in first-seen order"""
    tokens: List[str] = []
    for token in _NON_ALNUM.split(query.lower()):
        if token and token not in tokens:
            tokens.append(token)
    return tokens


class SearchIndexer:
    """Keeps one ``SearchDocument`` per thread in step with its visible text"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def build_document(self, thread_id: int) -> str:
        stmt = select(Thread.title, Thread.body).where(Thread.id == thread_id)
        result = await self.db.execute(stmt)
        thread = result.first()
        if thread is None:
            raise NotFound("Thread not found")

        stmt = select(Comment.body).where(
            Comment.thread_id == thread_id,
            Comment.is_deleted == False  # noqa: E712
        ).order_by(Comment.created_at, Comment.id)
        result = await self.db.execute(stmt)
        comment_bodies = result.scalars().all()

        return normalize_document([thread.title, thread.body, *comment_bodies])

    async def upsert_document(self, thread_id: int) -> str:
        """Rebuild and write the document without committing.

        Used inside the transaction of the mutation that changed the text.
        """
        content = await self.build_document(thread_id)

        stmt = upsert_insert(self.db, SearchDocument).values(
            thread_id=thread_id,
            content=content
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["thread_id"],
            set_={"content": stmt.excluded.content, "updated_at": stmt.excluded.updated_at}
        )
        await self.db.execute(stmt)

        logger.debug(f"Rebuilt search document for thread {thread_id} ({len(content)} chars)")
        return content

    @storage_errors
    async def rebuild_document(self, thread_id: int) -> None:
        """Replace the search document of ``thread_id`` from current text"""
        validate_id(thread_id, "thread id")
        await self.upsert_document(thread_id)
        await self.db.commit()

    @storage_errors
    async def rebuild_all(self) -> int:
        """Rebuild every thread's document; returns how many were written"""
        result = await self.db.execute(select(Thread.id).order_by(Thread.id))
        thread_ids = result.scalars().all()
        for thread_id in thread_ids:
            await self.upsert_document(thread_id)
        await self.db.commit()
        logger.info(f"Rebuilt {len(thread_ids)} search documents")
        return len(thread_ids)
