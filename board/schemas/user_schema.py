from pydantic import BaseModel, EmailStr, ConfigDict, Field
from typing import Optional
from datetime import datetime

class UserBase(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    display_name: str = Field(..., min_length=1, max_length=100)

class UserCreate(UserBase):
    password: str = Field(..., min_length=8, max_length=72)

class UserInDB(UserBase):
    model_config = ConfigDict(from_attributes=True)
    
    id: int
    is_active: bool
    profile_image: Optional[str] = None
    created_at: datetime

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    session_id: str

class TokenData(BaseModel):
    username: str
    user_id: int
    session_id: str
    expires_at: Optional[datetime] = None  # naive UTC

    def seconds_left(self) -> Optional[int]:
        """Whole seconds until the token expires, ``None`` if it never does"""
        if self.expires_at is None:
            return None
        return int((self.expires_at - datetime.utcnow()).total_seconds())
