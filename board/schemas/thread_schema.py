from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime

from board.schemas.comment_schema import CommentNode

class ThreadCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1, max_length=20000)

class ThreadInDB(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    
    id: int
    owner_id: int
    title: str
    body: str
    views_count: int = 0
    comments_count: int = 0
    likes_count: int = 0
    created_at: datetime
    updated_at: datetime

class ThreadWithOwner(ThreadInDB):
    owner_name: str
    owner_avatar: Optional[str] = None
    liked: bool = False

class ThreadSummary(BaseModel):
    id: int
    title: str
    body: str
    owner_name: str
    comments_count: int = 0
    likes_count: int = 0
    created_at: datetime

class ThreadView(BaseModel):
    thread: ThreadWithOwner
    comments: List[CommentNode] = []
    total_comments: int = 0
