from pydantic import BaseModel

class DiscoveryStarted(BaseModel):
    session_id: str
    total: int

class DiscoveryItem(BaseModel):
    thread_id: int
    remaining: int
