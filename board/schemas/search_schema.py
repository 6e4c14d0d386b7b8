from pydantic import BaseModel
from typing import List
from datetime import datetime

class ScoredThread(BaseModel):
    thread_id: int
    title: str
    owner_name: str
    created_at: datetime
    likes_count: int = 0
    comments_count: int = 0
    frequency: int = 0
    relevance: float = 0.0

class SearchResponse(BaseModel):
    results: List[ScoredThread]
    total: int
    query: str
    limit: int
