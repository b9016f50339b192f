"""Document model"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from app.database.base import Base

DOCUMENT_STATUSES = ("uploading", "parsing", "extracting", "done", "error")


class Document(Base):
    """Uploaded source document and its pipeline status"""

    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, nullable=True, index=True)
    filename = Column(String(512), nullable=False)
    raw_text = Column(Text, nullable=True)
    status = Column(String(20), default="uploading", nullable=False, index=True)  # uploading, parsing, extracting, done, error
    chunk_count = Column(Integer, default=0, nullable=False)
    failed_reason = Column(Text, nullable=True)
    upload_time = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    chunks = relationship(
        "Chunk",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="Chunk.position"
    )

    __table_args__ = (
        Index('idx_project_status', 'project_id', 'status'),
    )

    def __repr__(self):
        return f"<Document(id={self.id}, filename={self.filename}, status={self.status})>"
