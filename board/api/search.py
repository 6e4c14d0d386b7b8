from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from board.config import settings
from board.db.session import get_db
from board.models.user import User
from board.schemas.search_schema import SearchResponse
from board.services.auth_service import get_current_user
from board.services.search_service import SearchService
from board.utils.rate_limit import limiter, DEFAULT_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/", response_model=SearchResponse)
@limiter.limit(DEFAULT_LIMIT)
async def search_threads(
    request: Request,
    q: str = Query(..., max_length=200),
    limit: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Search threads by title, body and comments"""
    search_service = SearchService(db)
    limit = limit or settings.SEARCH_DEFAULT_LIMIT
    results = await search_service.search(q, limit)
    
    return SearchResponse(
        results=results,
        total=len(results),
        query=q,
        limit=limit
    )
