from sqlalchemy import Column, String, Boolean, Index
from sqlalchemy.orm import relationship
from board.db.base import BaseModel

class User(BaseModel):
    __tablename__ = "users"
    
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    display_name = Column(String(100), nullable=False)
    profile_image = Column(String(255))
    is_active = Column(Boolean, default=True, nullable=False)
    
    # Relationships
    threads = relationship("Thread", back_populates="owner")
    
    __table_args__ = (
        Index('ix_users_created_at', 'created_at'),
    )
