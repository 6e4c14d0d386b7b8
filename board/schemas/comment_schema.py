from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime

DELETED_BODY = "[deleted]"
DELETED_AUTHOR = "deleted"

class CommentCreate(BaseModel):
    body: str = Field(..., min_length=1, max_length=5000)
    parent_comment_id: Optional[int] = Field(None, gt=0)

class CommentUpdate(BaseModel):
    body: str = Field(..., min_length=1, max_length=5000)

class CommentRow(BaseModel):
    """One comment as read from the store, already masked if deleted."""
    comment_id: int
    thread_id: int
    parent_comment_id: Optional[int] = None
    body: str
    author_id: Optional[int] = None
    author_name: str
    author_avatar: Optional[str] = None
    likes_count: int = 0
    liked: bool = False
    is_deleted: bool = False
    is_edited: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None

class CommentNode(CommentRow):
    children: List['CommentNode'] = []

class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    
    id: int
    thread_id: int
    parent_comment_id: Optional[int] = None
    body: str
    author_id: Optional[int] = None
    likes_count: int = 0
    is_edited: bool = False
    is_deleted: bool = False
    created_at: datetime
    updated_at: datetime

# For nested models
CommentNode.model_rebuild()

def comment_response(comment) -> CommentResponse:
    """Serialize a ``Comment`` row, masking body and author if it was deleted"""
    response = CommentResponse.model_validate(comment)
    if response.is_deleted:
        response.body = DELETED_BODY
        response.author_id = None
    return response
