from sqlalchemy import Column, Text, Integer, ForeignKey, Boolean, DateTime, Index
from sqlalchemy.orm import relationship
from board.db.base import BaseModel

class Comment(BaseModel):
    __tablename__ = "comments"
    
    thread_id = Column(Integer, ForeignKey("threads.id", ondelete="CASCADE"), nullable=False)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    body = Column(Text, nullable=False)
    # Replies keep pointing at soft-deleted parents, so no cascade here
    parent_comment_id = Column(Integer, ForeignKey("comments.id"), nullable=True)
    
    # Soft deletion
    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)
    deleted_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    
    is_edited = Column(Boolean, default=False, nullable=False)
    
    # Relationships
    thread = relationship("Thread", back_populates="comments")
    author = relationship("User", foreign_keys=[author_id])
    
    # Denormalized for performance
    likes_count = Column(Integer, default=0, nullable=False)
    
    __table_args__ = (
        Index('ix_comments_thread_id', 'thread_id'),
        Index('ix_comments_author_id', 'author_id'),
        Index('ix_comments_parent_comment_id', 'parent_comment_id'),
        Index('ix_comments_thread_created_at', 'thread_id', 'created_at'),
    )
