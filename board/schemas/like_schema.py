from pydantic import BaseModel
from enum import Enum

class LikeSubject(str, Enum):
    THREAD = "thread"
    COMMENT = "comment"

class LikeAction(str, Enum):
    LIKE = "like"
    UNLIKE = "unlike"

class LikeToggleResult(BaseModel):
    changed: bool
    new_count: int
