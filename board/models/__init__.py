"""
Models package for the discussion board
"""
from board.db.base import Base, BaseModel
from board.models.user import User
from board.models.thread import Thread
from board.models.comment import Comment
from board.models.like import ThreadLike, CommentLike
from board.models.search_document import SearchDocument

__all__ = [
    'Base',
    'BaseModel',
    'User',
    'Thread',
    'Comment',
    'ThreadLike',
    'CommentLike',
    'SearchDocument',
]
