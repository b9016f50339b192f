"""Pytest configuration and fixtures"""

import os

# Test database URL (must be set before the app creates its engine)
TEST_DATABASE_URL = "sqlite:///./test.db"
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)
os.environ.setdefault("LLM_RETRY_DELAY_SECONDS", "0")

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from app.main import app
from app.database.base import Base
from app.database.session import get_db
from app.models.chunk import Chunk
from app.models.document import Document
from app.models.topic import ChunkTopic, Topic
from app.rag.embeddings import EmbeddingResult
from app.rag.providers import config_cache

# Create test engine
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Database session fixture"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Test client fixture"""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    config_cache.invalidate()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    config_cache.invalidate()


@pytest.fixture
def make_document(db):
    """Create a document with the given chunk contents"""
    def _make(contents, project_id=1, filename="doc.pdf"):
        doc = Document(filename=filename, project_id=project_id, status="done", chunk_count=len(contents))
        db.add(doc)
        db.flush()
        for position, content in enumerate(contents):
            db.add(Chunk(document_id=doc.id, content=content, position=position, char_count=len(content)))
        db.commit()
        db.refresh(doc)
        return doc
    return _make


@pytest.fixture
def make_topic(db):
    """Create a topic linked to the given chunks"""
    def _make(label, chunks):
        topic = Topic(label=label, weight=len(chunks))
        db.add(topic)
        db.flush()
        for chunk in chunks:
            db.add(ChunkTopic(chunk_id=chunk.id, topic_id=topic.id, relevance_score=0.9))
        db.commit()
        db.refresh(topic)
        return topic
    return _make


@pytest.fixture
def mock_gateway():
    """LLM gateway double; configure call_llm / call_structured per test"""
    return MagicMock()


@pytest.fixture
def mock_embedder():
    """Embedding service double returning fixed-size vectors"""
    embedder = MagicMock()
    embedder.batch_size = 100
    embedder.config.dimensions = 3
    embedder.config.model = "test-embedding"

    def _embed(texts):
        return [EmbeddingResult(vector=[1.0, float(len(t) % 7), 0.5], model="test-embedding", dimensions=3) for t in texts]

    embedder.embed.side_effect = _embed
    return embedder
