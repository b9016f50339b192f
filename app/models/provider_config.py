"""Persisted LLM and embedding provider configuration"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, JSON
from datetime import datetime
from app.database.base import Base


class LlmConfig(Base):
    """LLM provider settings; only one row is active at a time"""

    __tablename__ = "llm_config"

    id = Column(Integer, primary_key=True, index=True)
    provider = Column(String(64), default="builtin", nullable=False)  # builtin, openai, openrouter, custom
    base_url = Column(String(512), nullable=True)
    api_key_encoded = Column(Text, nullable=True)  # base64, never plaintext
    default_model = Column(String(256), nullable=True)
    task_models = Column(JSON, nullable=True)  # {task_type: model}
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<LlmConfig(id={self.id}, provider={self.provider}, active={self.is_active})>"


class EmbeddingConfig(Base):
    """Embedding provider settings, independent from the LLM config"""

    __tablename__ = "embedding_config"

    id = Column(Integer, primary_key=True, index=True)
    provider = Column(String(64), default="builtin", nullable=False)
    base_url = Column(String(512), nullable=True)
    api_key_encoded = Column(Text, nullable=True)
    model = Column(String(256), default="text-embedding-3-small", nullable=False)
    dimensions = Column(Integer, default=1536, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<EmbeddingConfig(id={self.id}, provider={self.provider}, model={self.model})>"
