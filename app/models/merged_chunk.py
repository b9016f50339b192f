"""Merged chunk model"""

from sqlalchemy import Column, Integer, Text, ForeignKey, DateTime, JSON, Index
from datetime import datetime
from app.database.base import Base


class MergedChunk(Base):
    """Replaceable aggregate of original chunks for one topic"""

    __tablename__ = "merged_chunks"

    id = Column(Integer, primary_key=True, index=True)
    topic_id = Column(Integer, ForeignKey("topics.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(Integer, nullable=True, index=True)
    content = Column(Text, nullable=False)
    source_chunk_ids = Column(JSON, nullable=False)  # ordered list of chunk IDs
    position = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_topic_project_position', 'topic_id', 'project_id', 'position'),
    )

    def __repr__(self):
        return f"<MergedChunk(id={self.id}, topic_id={self.topic_id}, sources={self.source_chunk_ids})>"
