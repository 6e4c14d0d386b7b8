from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint, Index
from board.db.base import BaseModel

class ThreadLike(BaseModel):
    __tablename__ = "thread_likes"
    
    thread_id = Column(Integer, ForeignKey("threads.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    
    # The unique pair is the only guard against double likes
    __table_args__ = (
        UniqueConstraint('thread_id', 'user_id', name='uq_thread_likes_thread_user'),
        Index('ix_thread_likes_user_id', 'user_id'),
    )

class CommentLike(BaseModel):
    __tablename__ = "comment_likes"
    
    comment_id = Column(Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    
    __table_args__ = (
        UniqueConstraint('comment_id', 'user_id', name='uq_comment_likes_comment_user'),
        Index('ix_comment_likes_user_id', 'user_id'),
    )
