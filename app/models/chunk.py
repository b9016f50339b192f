"""Chunk model"""

from sqlalchemy import Column, Integer, Text, ForeignKey, DateTime, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from app.database.base import Base


class Chunk(Base):
    """Verbatim text segment of a document, immutable once written"""

    __tablename__ = "chunks"

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(Integer, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    position = Column(Integer, nullable=False)  # 0-based, dense within a document
    char_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    document = relationship("Document", back_populates="chunks")
    topic_links = relationship("ChunkTopic", back_populates="chunk", cascade="all, delete-orphan")
    embedding = relationship("ChunkEmbedding", back_populates="chunk", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_document_position', 'document_id', 'position'),
    )

    def __repr__(self):
        return f"<Chunk(id={self.id}, document_id={self.document_id}, position={self.position})>"
