"""Topic, merge and summary schemas"""

from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime


class TopicListItem(BaseModel):
    id: int
    label: str
    description: Optional[str] = None
    weight: int
    chunk_count: int


class TopicListResponse(BaseModel):
    items: List[TopicListItem]
    total: int


class AssignedTopic(BaseModel):
    label: str
    topic_id: int
    relevance: float


class ChunkTopicsResponse(BaseModel):
    """Topics assigned to one chunk"""
    chunk_id: int
    topics: List[AssignedTopic]


class MergeResponse(BaseModel):
    """Merge run outcome"""
    success: bool
    topic_id: int
    merged_count: int
    original_count: int
    fallback_batches: int


class MergedChunkResponse(BaseModel):
    id: int
    topic_id: int
    project_id: Optional[int] = None
    content: str
    source_chunk_ids: List[int]
    position: int
    created_at: datetime

    class Config:
        from_attributes = True


class MergedChunkListResponse(BaseModel):
    topic_id: int
    items: List[MergedChunkResponse]


class MergeStatusResponse(BaseModel):
    topic_id: int
    project_id: Optional[int] = None
    has_merged: bool


class SummaryResponse(BaseModel):
    """Topic summary"""
    topic_id: int
    summary_text: str
    generated_at: datetime

    class Config:
        from_attributes = True
