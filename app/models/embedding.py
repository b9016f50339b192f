"""Chunk embedding model"""

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from app.database.base import Base


class ChunkEmbedding(Base):
    """Active embedding vector of a chunk"""

    __tablename__ = "chunk_embeddings"

    id = Column(Integer, primary_key=True, index=True)
    chunk_id = Column(Integer, ForeignKey("chunks.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    embedding = Column(JSON, nullable=False)  # list of floats
    model = Column(String(256), nullable=False)
    dimensions = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    chunk = relationship("Chunk", back_populates="embedding")

    def __repr__(self):
        return f"<ChunkEmbedding(chunk_id={self.chunk_id}, model={self.model}, dims={self.dimensions})>"
