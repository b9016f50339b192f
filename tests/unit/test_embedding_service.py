"""Test embedding indexing of stored chunks"""

import pytest

from app.exceptions import EmbeddingError, ValidationException
from app.models.embedding import ChunkEmbedding
from app.services.embedding_service import EmbeddingIndexService


def test_generate_for_project(db, mock_embedder, make_document):
    make_document(["a", "bb", "ccc"], project_id=1)
    make_document(["other"], project_id=2)
    service = EmbeddingIndexService(mock_embedder)

    result = service.generate_for_project(db, 1)

    assert result["generated"] == 3
    assert result["total"] == 3
    assert db.query(ChunkEmbedding).count() == 3
    assert service.status(db, 1) == {"total_chunks": 3, "embedded_chunks": 3, "percentage": 100.0}
    assert service.status(db, 2) == {"total_chunks": 1, "embedded_chunks": 0, "percentage": 0.0}


def test_only_missing_embeddings_are_generated(db, mock_embedder, make_document):
    make_document(["a", "bb"], project_id=1)
    service = EmbeddingIndexService(mock_embedder)
    service.generate_for_project(db, 1)

    again = service.generate_for_project(db, 1)
    regenerated = service.generate_for_project(db, 1, regenerate=True)

    assert again["generated"] == 0
    assert regenerated["generated"] == 2
    assert db.query(ChunkEmbedding).count() == 2


def test_dimension_mismatch_stores_nothing(db, mock_embedder, make_document):
    make_document(["a", "bb"], project_id=1)
    mock_embedder.config.dimensions = 1536

    with pytest.raises(EmbeddingError, match="dimension mismatch"):
        EmbeddingIndexService(mock_embedder).generate_for_project(db, 1)

    assert db.query(ChunkEmbedding).count() == 0


def test_generate_for_chunks(db, mock_embedder, make_document):
    doc = make_document(["a", "bb", "ccc"], project_id=1)

    result = EmbeddingIndexService(mock_embedder).generate_for_chunks(db, [doc.chunks[0].id, doc.chunks[2].id])

    assert result["generated"] == 2
    assert {e.chunk_id for e in db.query(ChunkEmbedding)} == {doc.chunks[0].id, doc.chunks[2].id}


def test_generate_for_no_chunks(db, mock_embedder):
    with pytest.raises(ValidationException):
        EmbeddingIndexService(mock_embedder).generate_for_chunks(db, [])


def test_status_percentage(db, mock_embedder, make_document):
    doc = make_document(["a", "bb", "ccc"], project_id=1)
    service = EmbeddingIndexService(mock_embedder)
    service.generate_for_chunks(db, [doc.chunks[0].id])

    assert service.status(db, 1)["percentage"] == 33.3
