from datetime import datetime, timedelta, timezone
from typing import Optional
import logging
import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from board.config import settings
from board.core.exceptions import ValidationError, storage_errors
from board.db.session import get_db
from board.models.user import User
from board.schemas.user_schema import TokenData, UserCreate
from board.services.discovery_service import DiscoveryService
from board.services.redis_service import RedisService, get_redis_service

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_PREFIX}/auth/login")

def credentials_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

def new_session_id() -> str:
    """Opaque id of one login; discovery queues are keyed by it"""
    return uuid.uuid4().hex

class AuthService:
    ENDED_PREFIX = "session-ended"

    def __init__(self, db: Optional[AsyncSession], redis: Optional[RedisService] = None):
        self.db = db
        self.redis = redis

    async def _find_user(self, login: str, email: Optional[str] = None) -> Optional[User]:
        stmt = select(User).where(or_(User.username == login, User.email == (email or login)))
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def register(self, user_data: UserCreate) -> User:
        """Create an account; username and email must both be unused"""
        if await self._find_user(user_data.username, user_data.email):
            raise ValidationError("Username or email already registered")

        user = User(
            username=user_data.username,
            email=user_data.email,
            display_name=user_data.display_name,
            hashed_password=pwd_context.hash(user_data.password),
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)

        logger.info(f"Registered user {user.id} ({user.username})")
        return user

    async def authenticate(self, login: str, password: str) -> Optional[User]:
        """Match ``login`` against username or email; ``None`` on bad credentials"""
        user = await self._find_user(login)
        if user is None or not pwd_context.verify(password, user.hashed_password):
            logger.info(f"Failed login for {login!r}")
            return None
        if not user.is_active:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")
        return user

    def create_access_token(
        self,
        user: User,
        session_id: Optional[str] = None,
        expires_delta: Optional[timedelta] = None
    ) -> str:
        """Signed JWT naming the user and the login session (``sid``)"""
        lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        claims = {
            "sub": user.username,
            "user_id": user.id,
            "sid": session_id or new_session_id(),
            "exp": datetime.utcnow() + lifetime,
            "type": "access",
        }
        return jwt.encode(claims, settings.secret_key, algorithm=settings.ALGORITHM)

    @staticmethod
    def verify_token(token: str) -> Optional[TokenData]:
        try:
            claims = jwt.decode(token, settings.secret_key, algorithms=[settings.ALGORITHM])
        except JWTError:
            return None

        if claims.get("type") != "access":
            return None
        if not all(claims.get(name) is not None for name in ("sub", "user_id", "sid")):
            return None
        expires_at = None
        if claims.get("exp"):
            expires_at = datetime.fromtimestamp(claims["exp"], tz=timezone.utc).replace(tzinfo=None)
        return TokenData(
            username=claims["sub"],
            user_id=claims["user_id"],
            session_id=claims["sid"],
            expires_at=expires_at
        )

    @storage_errors
    async def end_session(self, token_data: TokenData) -> None:
        """Log out: refuse the session's tokens from now on and drop its discovery queue.

        Tokens are stateless, so the ended ``sid`` is remembered in Redis until
        the token would have expired anyway.
        """
        ttl = token_data.seconds_left()
        if ttl is None:
            ttl = settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
        if ttl > 0:
            await self.redis.set_flag(f"{self.ENDED_PREFIX}:{token_data.session_id}", expire=ttl)
        await DiscoveryService(None, self.redis).discard(token_data.session_id)
        logger.info(f"User {token_data.user_id} closed session {token_data.session_id}")

    @storage_errors
    async def session_ended(self, session_id: str) -> bool:
        return await self.redis.exists(f"{self.ENDED_PREFIX}:{session_id}")

async def get_current_token(
    token: str = Depends(oauth2_scheme),
    redis: RedisService = Depends(get_redis_service)
) -> TokenData:
    """Decoded bearer token; 401 when missing, expired, forged or logged out"""
    token_data = AuthService.verify_token(token)
    if token_data is None:
        raise credentials_error()
    if await AuthService(None, redis).session_ended(token_data.session_id):
        raise credentials_error()
    return token_data

async def get_current_user(
    token_data: TokenData = Depends(get_current_token),
    db: AsyncSession = Depends(get_db)
) -> User:
    user = await db.get(User, token_data.user_id)
    if user is None:
        raise credentials_error()
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")
    return user
