"""Search and embedding schemas"""

from pydantic import BaseModel, Field
from typing import Optional, List


class SearchRequest(BaseModel):
    """Semantic search request"""
    project_id: int
    query: str = Field(..., min_length=1)
    top_k: int = 15


class SearchChunk(BaseModel):
    chunk_id: int
    document_id: int
    filename: Optional[str] = None
    position: int
    content: str
    similarity: Optional[float] = None


class SearchResponse(BaseModel):
    """Synthesized answer with the chunks it was built from"""
    title: str
    summary: str
    chunks: List[SearchChunk]
    search_mode: str
    synthesis_error: Optional[str] = None


class EmbeddingGenerateRequest(BaseModel):
    project_id: int
    regenerate: bool = False


class ChunkEmbeddingRequest(BaseModel):
    chunk_ids: List[int]


class EmbeddingGenerateResponse(BaseModel):
    generated: int
    total: int
    message: str


class EmbeddingStatusResponse(BaseModel):
    total_chunks: int
    embedded_chunks: int
    percentage: float
