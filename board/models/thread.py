from sqlalchemy import Column, String, Text, Integer, ForeignKey, Index
from sqlalchemy.orm import relationship
from board.db.base import BaseModel

class Thread(BaseModel):
    __tablename__ = "threads"
    
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String(200), nullable=False)
    body = Column(Text, nullable=False)
    
    # Relationships
    owner = relationship("User", back_populates="threads")
    comments = relationship("Comment", back_populates="thread", cascade="all, delete-orphan")
    
    # Denormalized counts, only ever moved by atomic increments
    views_count = Column(Integer, default=0, nullable=False)
    comments_count = Column(Integer, default=0, nullable=False)
    likes_count = Column(Integer, default=0, nullable=False)
    
    __table_args__ = (
        Index('ix_threads_owner_id', 'owner_id'),
        Index('ix_threads_created_at', 'created_at'),
    )
