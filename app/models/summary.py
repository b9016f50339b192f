"""Topic summary model"""

from sqlalchemy import Column, Integer, Text, ForeignKey, DateTime
from datetime import datetime
from app.database.base import Base


class Summary(Base):
    """LLM-generated summary, one per topic"""

    __tablename__ = "summaries"

    id = Column(Integer, primary_key=True, index=True)
    topic_id = Column(Integer, ForeignKey("topics.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    summary_text = Column(Text, nullable=False)
    generated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Summary(topic_id={self.topic_id})>"
