from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from board.db.session import get_db
from board.models.user import User
from board.schemas.user_schema import Token, TokenData, UserCreate, UserInDB
from board.services.auth_service import AuthService, get_current_token, get_current_user, new_session_id
from board.services.redis_service import RedisService, get_redis_service
from board.utils.rate_limit import limiter, MUTATION_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/register", response_model=UserInDB, status_code=status.HTTP_201_CREATED)
@limiter.limit(MUTATION_LIMIT)
async def register(
    request: Request,
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db)
):
    """Create an account"""
    auth_service = AuthService(db)
    return await auth_service.register(user_data)

@router.post("/login", response_model=Token)
@limiter.limit(MUTATION_LIMIT)
async def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db)
):
    """Exchange credentials for a token bound to a fresh session id"""
    auth_service = AuthService(db)
    user = await auth_service.authenticate(form_data.username, form_data.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    session_id = new_session_id()
    access_token = auth_service.create_access_token(user, session_id=session_id)

    logger.info(f"User {user.id} opened session {session_id}")
    return Token(access_token=access_token, session_id=session_id)

@router.get("/me", response_model=UserInDB)
async def read_me(current_user: User = Depends(get_current_user)):
    return current_user

@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    token: TokenData = Depends(get_current_token),
    redis: RedisService = Depends(get_redis_service)
):
    """End this login session; its token and discovery queue stop working"""
    await AuthService(None, redis).end_session(token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
