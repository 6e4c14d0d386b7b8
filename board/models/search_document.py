from sqlalchemy import Column, Text, Integer, ForeignKey, Index, func
from board.db.base import BaseModel

class SearchDocument(BaseModel):
    """Normalized, space-padded token string for one thread.

    Derived from the thread title, body and every non-deleted comment body.
    Rebuilt wholesale whenever any of that text changes.
    """
    __tablename__ = "search_documents"
    
    thread_id = Column(
        Integer,
        ForeignKey("threads.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )
    content = Column(Text, nullable=False, default=" ")
    
    __table_args__ = (
        # Native relevance on PostgreSQL; ignored by other dialects
        Index(
            'ix_search_documents_content_tsv',
            func.to_tsvector('simple', content),
            postgresql_using='gin'
        ).ddl_if(dialect='postgresql'),
    )
