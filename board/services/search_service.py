"""
Two-stage thread search.

Stage 1 asks the database for a bounded candidate set ordered by its own
text relevance. Stage 2 re-ranks those candidates by exact whole-word
frequency of the query tokens in each cached search document.
"""
import logging
from collections import Counter
from typing import List, Optional, Sequence

from sqlalchemy import case, func, literal, select
from sqlalchemy.ext.asyncio import AsyncSession

from board.config import settings
from board.core.exceptions import ValidationError, storage_errors
from board.db.dialect import dialect_name
from board.models.search_document import SearchDocument
from board.models.thread import Thread
from board.models.user import User
from board.schemas.search_schema import ScoredThread
from board.services.search_indexer import tokenize_query

logger = logging.getLogger(__name__)


def word_frequency(document: str, tokens: Sequence[str]) -> int:
    """Total whole-word occurrences of ``tokens`` in a normalized document"""
    counts = Counter(document.split())
    return sum(counts[token] for token in tokens)


def rank_candidates(candidates: List[ScoredThread]) -> List[ScoredThread]:
    """Frequency desc, then native relevance desc, then newest first"""
    ranked = sorted(candidates, key=lambda c: c.created_at, reverse=True)
    ranked.sort(key=lambda c: c.relevance, reverse=True)
    ranked.sort(key=lambda c: c.frequency, reverse=True)
    return ranked


class SearchService:
    def __init__(self, db: AsyncSession):
        self.db = db

    def candidate_limit(self, limit: int) -> int:
        return max(settings.SEARCH_CANDIDATE_LIMIT, limit * settings.SEARCH_CANDIDATE_MULTIPLIER)

    def _relevance_expression(self, tokens: Sequence[str], dialect: str):
        """Native relevance score and match filter for ``dialect``"""
        if dialect == "postgresql":
            vector = func.to_tsvector("simple", SearchDocument.content)
            query = func.to_tsquery("simple", " | ".join(tokens))
            return func.ts_rank(vector, query), vector.op("@@")(query)

        # Other dialects: count of query tokens present as whole words
        score = sum(
            (case((SearchDocument.content.contains(f" {token} ", autoescape=True), 1), else_=0)
             for token in tokens),
            literal(0)
        )
        return score, score > 0

    def candidate_query(self, tokens: Sequence[str], limit: int, dialect: Optional[str] = None):
        """Stage-1 SELECT; ``dialect`` defaults to the session's"""
        relevance, matches = self._relevance_expression(tokens, dialect or dialect_name(self.db))
        return select(
            Thread.id,
            Thread.title,
            Thread.created_at,
            Thread.likes_count,
            Thread.comments_count,
            User.display_name.label("owner_name"),
            SearchDocument.content,
            relevance.label("relevance")
        ).join(
            Thread, SearchDocument.thread_id == Thread.id
        ).join(
            User, Thread.owner_id == User.id
        ).where(
            matches
        ).order_by(
            relevance.desc(), Thread.created_at.desc()
        ).limit(limit)

    async def fetch_candidates(self, tokens: Sequence[str], limit: int) -> List[dict]:
        result = await self.db.execute(self.candidate_query(tokens, limit))
        return [dict(row._mapping) for row in result.all()]

    @storage_errors
    async def search(self, query: str, limit: Optional[int] = None) -> List[ScoredThread]:
        """Search threads by query text.

        A blank query is a ``ValidationError``. A query with no usable
        tokens, or one the database finds no candidates for, returns an
        empty list; the corpus is never scanned in full.
        """
        if query is None or not query.strip():
            raise ValidationError("Search query must not be empty")

        limit = limit or settings.SEARCH_DEFAULT_LIMIT
        if limit < 1 or limit > settings.SEARCH_MAX_LIMIT:
            raise ValidationError(f"limit must be between 1 and {settings.SEARCH_MAX_LIMIT}")

        tokens = tokenize_query(query)
        if not tokens:
            return []

        rows = await self.fetch_candidates(tokens, self.candidate_limit(limit))
        if not rows:
            logger.debug(f"No candidates for query {tokens}")
            return []

        candidates = [
            ScoredThread(
                thread_id=row["id"],
                title=row["title"],
                owner_name=row["owner_name"],
                created_at=row["created_at"],
                likes_count=row["likes_count"],
                comments_count=row["comments_count"],
                frequency=word_frequency(row["content"], tokens),
                relevance=float(row["relevance"] or 0)
            )
            for row in rows
        ]

        results = rank_candidates(candidates)[:limit]
        logger.info(f"Search {tokens}: {len(rows)} candidates, {len(results)} results")
        return results
