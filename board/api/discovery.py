from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from board.db.session import get_db
from board.schemas.discovery_schema import DiscoveryItem, DiscoveryStarted
from board.schemas.user_schema import TokenData
from board.services.auth_service import get_current_token
from board.services.discovery_service import DiscoveryService
from board.services.redis_service import RedisService, get_redis_service
from board.utils.rate_limit import limiter, DEFAULT_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/start", response_model=DiscoveryStarted)
@limiter.limit(DEFAULT_LIMIT)
async def start_discovery(
    request: Request,
    token: TokenData = Depends(get_current_token),
    db: AsyncSession = Depends(get_db),
    redis: RedisService = Depends(get_redis_service)
):
    """Begin a fresh shuffled traversal for this login session"""
    discovery_service = DiscoveryService(db, redis)
    return await discovery_service.start(token.session_id, expires_at=token.expires_at)

@router.get(
    "/next",
    response_model=DiscoveryItem,
    responses={204: {"description": "Traversal exhausted; start a new one"}}
)
@limiter.limit(DEFAULT_LIMIT)
async def next_discovery_item(
    request: Request,
    token: TokenData = Depends(get_current_token),
    db: AsyncSession = Depends(get_db),
    redis: RedisService = Depends(get_redis_service)
):
    """Next thread id of the session's traversal"""
    discovery_service = DiscoveryService(db, redis)
    item = await discovery_service.next_item(token.session_id)
    if item is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return item
