"""
Session-scoped discovery ("scroll") traversal.

Each login session owns one queue of thread ids in a random order. Starting
a traversal replaces the queue; reading it pops the head until it is empty.
"""
import logging
import random
from collections import deque
from datetime import datetime
from typing import Deque, Iterable, List, MutableSequence, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from board.config import settings
from board.core.exceptions import ValidationError, storage_errors
from board.models.thread import Thread
from board.schemas.discovery_schema import DiscoveryItem, DiscoveryStarted
from board.services.redis_service import RedisService

logger = logging.getLogger(__name__)


def fisher_yates_shuffle(items: MutableSequence, rng: Optional[random.Random] = None) -> MutableSequence:
    """Shuffle ``items`` in place, unbiased.

    Walks from the last index down to 1 and swaps each slot with a uniformly
    chosen slot at or before it.
    """
    rng = rng or random.SystemRandom()
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items


class DiscoveryQueue:
    """In-memory form of one session's traversal"""

    def __init__(self, ids: Iterable[int] = ()):
        self._ids: Deque[int] = deque(ids)

    @classmethod
    def start(cls, all_thread_ids: Iterable[int], rng: Optional[random.Random] = None) -> "DiscoveryQueue":
        ids = list(all_thread_ids)
        fisher_yates_shuffle(ids, rng)
        return cls(ids)

    @property
    def remaining(self) -> int:
        return len(self._ids)

    def next(self) -> Optional[int]:
        """Pop the head id; ``None`` once the traversal is exhausted"""
        if not self._ids:
            return None
        return self._ids.popleft()

    def __len__(self) -> int:
        return len(self._ids)

    def to_list(self) -> List[int]:
        return list(self._ids)


class DiscoveryService:
    """Keeps one ``DiscoveryQueue`` per session as a Redis list"""

    KEY_PREFIX = "discovery"

    def __init__(self, db: Optional[AsyncSession], redis: RedisService, rng: Optional[random.Random] = None):
        self.db = db
        self.redis = redis
        self.rng = rng

    @classmethod
    def key_for(cls, session_id: str) -> str:
        if not session_id:
            raise ValidationError("Missing session id")
        return f"{cls.KEY_PREFIX}:{session_id}"

    async def _all_thread_ids(self) -> List[int]:
        result = await self.db.execute(select(Thread.id).order_by(Thread.id))
        return list(result.scalars().all())

    async def _thread_exists(self, thread_id: int) -> bool:
        result = await self.db.execute(select(Thread.id).where(Thread.id == thread_id))
        return result.scalar_one_or_none() is not None

    @staticmethod
    def queue_ttl(expires_at: Optional[datetime] = None) -> int:
        """Queue lifetime in seconds, never past the session's own expiry"""
        ttl = settings.DISCOVERY_TTL_SECONDS
        if expires_at is not None:
            ttl = min(ttl, int((expires_at - datetime.utcnow()).total_seconds()))
        return max(ttl, 1)

    @storage_errors
    async def start(self, session_id: str, expires_at: Optional[datetime] = None) -> DiscoveryStarted:
        """Shuffle every known thread id into a fresh queue for the session.

        The queue expires with the session (``expires_at``, naive UTC) or
        after ``DISCOVERY_TTL_SECONDS``, whichever comes first.
        """
        key = self.key_for(session_id)
        queue = DiscoveryQueue.start(await self._all_thread_ids(), self.rng)

        await self.redis.replace_list(
            key,
            [str(thread_id) for thread_id in queue.to_list()],
            expire=self.queue_ttl(expires_at)
        )

        logger.info(f"Started discovery for session {session_id} over {len(queue)} threads")
        return DiscoveryStarted(session_id=session_id, total=len(queue))

    @storage_errors
    async def next_item(self, session_id: str) -> Optional[DiscoveryItem]:
        """Next thread of the session's traversal, or ``None`` when exhausted.

        Ids whose thread was deleted since ``start`` are skipped.
        """
        key = self.key_for(session_id)
        while True:
            raw = await self.redis.pop_head(key)
            if raw is None:
                await self.redis.delete(key)
                return None

            thread_id = int(raw)
            if await self._thread_exists(thread_id):
                remaining = await self.redis.length(key)
                return DiscoveryItem(thread_id=thread_id, remaining=remaining)

            logger.debug(f"Skipping vanished thread {thread_id} for session {session_id}")

    @storage_errors
    async def discard(self, session_id: str) -> None:
        """Drop the session's queue, e.g. on logout"""
        await self.redis.delete(self.key_for(session_id))
        logger.info(f"Discarded discovery queue for session {session_id}")
