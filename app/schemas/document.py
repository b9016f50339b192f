"""Document schemas"""

from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime


class TextDocumentCreate(BaseModel):
    """Plain text document"""
    filename: str
    text: str
    project_id: Optional[int] = None


class ChunkResponse(BaseModel):
    """Chunk response"""
    id: int
    document_id: int
    position: int
    content: str
    char_count: int
    created_at: datetime

    class Config:
        from_attributes = True


class DocumentResponse(BaseModel):
    """Document detail response"""
    id: int
    project_id: Optional[int] = None
    filename: str
    status: str
    chunk_count: int
    failed_reason: Optional[str] = None
    upload_time: datetime

    class Config:
        from_attributes = True


class DocumentUploadResponse(BaseModel):
    """Document upload response"""
    success: bool
    document_id: int
    filename: str
    status: str
    chunk_count: int
    message: str


class DocumentChunksResponse(BaseModel):
    document_id: int
    chunks: List[ChunkResponse]


class TopicExtractionReportResponse(BaseModel):
    """Outcome of a document-wide topic extraction"""
    success: bool
    document_id: int
    processed: int
    total: int
    errors: List[str]
