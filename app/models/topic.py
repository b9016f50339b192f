"""Topic and chunk-topic link models"""

from sqlalchemy import Column, Integer, String, Text, Float, ForeignKey, DateTime, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from app.database.base import Base


class Topic(Base):
    """Label shared by chunks across documents"""

    __tablename__ = "topics"

    id = Column(Integer, primary_key=True, index=True)
    label = Column(String(256), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    weight = Column(Integer, default=0, nullable=False)
    # Bumped by every committed merge; guards merge replace against stale writers
    merge_generation = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    chunk_links = relationship("ChunkTopic", back_populates="topic", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Topic(id={self.id}, label={self.label}, weight={self.weight})>"


class ChunkTopic(Base):
    """Relevance-scored many-to-many link between chunks and topics"""

    __tablename__ = "chunk_topics"

    id = Column(Integer, primary_key=True, index=True)
    chunk_id = Column(Integer, ForeignKey("chunks.id", ondelete="CASCADE"), nullable=False, index=True)
    topic_id = Column(Integer, ForeignKey("topics.id", ondelete="CASCADE"), nullable=False, index=True)
    relevance_score = Column(Float, default=1.0, nullable=False)

    chunk = relationship("Chunk", back_populates="topic_links")
    topic = relationship("Topic", back_populates="chunk_links")

    __table_args__ = (
        Index('idx_topic_chunk', 'topic_id', 'chunk_id'),
    )

    def __repr__(self):
        return f"<ChunkTopic(chunk_id={self.chunk_id}, topic_id={self.topic_id}, score={self.relevance_score})>"
