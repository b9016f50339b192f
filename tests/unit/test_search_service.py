"""Test semantic search, keyword fallback and synthesis"""

import pytest

from app.exceptions import EmbeddingError, LLMServiceError, VectorSearchUnavailableError
from app.models.embedding import ChunkEmbedding
from app.rag.embeddings import EmbeddingResult
from app.rag.structured import Ok, SchemaError
from app.schemas.llm import ExploreSynthesis
from app.services.search_service import SearchService, clamp_top_k, escape_like


@pytest.fixture
def query_embedder(mock_embedder):
    mock_embedder.embed_query.return_value = EmbeddingResult(vector=[1.0, 0.0, 0.0], model="test-embedding", dimensions=3)
    return mock_embedder


@pytest.fixture
def synthesis_gateway(mock_gateway):
    mock_gateway.call_structured.return_value = Ok(ExploreSynthesis(title="Answer", summary="Synthesized"))
    return mock_gateway


@pytest.fixture
def embedded_project(db, make_document):
    """Project 1 with three embedded chunks and one of the wrong dimension"""
    doc = make_document(["exact match", "unrelated", "close match", "legacy"], project_id=1, filename="guide.pdf")
    vectors = [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.9, 0.1, 0.0], [1.0, 0.0]]
    for chunk, vector in zip(doc.chunks, vectors):
        db.add(ChunkEmbedding(chunk_id=chunk.id, embedding=vector, model="test-embedding", dimensions=len(vector)))
    db.commit()
    return doc


def test_clamp_top_k():
    assert clamp_top_k(None) == 15
    assert clamp_top_k(0) == 1
    assert clamp_top_k(-3) == 1
    assert clamp_top_k(7) == 7
    assert clamp_top_k(500) == 50


def test_semantic_ranking(db, synthesis_gateway, query_embedder, embedded_project):
    result = SearchService(synthesis_gateway, query_embedder).search(db, 1, "what matches?")

    assert result.search_mode == "semantic"
    assert [c["content"] for c in result.chunks] == ["exact match", "close match", "unrelated"]
    assert result.chunks[0]["similarity"] == 1.0
    assert result.chunks[1]["similarity"] == round(0.9 / (0.82 ** 0.5), 4)
    assert result.chunks[0]["filename"] == "guide.pdf"
    assert result.title == "Answer"
    assert result.summary == "Synthesized"
    assert result.synthesis_error is None
    assert synthesis_gateway.call_structured.call_args.kwargs["task_type"] == "explore"


def test_semantic_ranking_respects_top_k(db, synthesis_gateway, query_embedder, embedded_project):
    result = SearchService(synthesis_gateway, query_embedder).search(db, 1, "q", top_k=1)

    assert [c["content"] for c in result.chunks] == ["exact match"]


def test_other_projects_are_not_searched(db, synthesis_gateway, query_embedder, embedded_project, make_document):
    make_document(["exact match elsewhere"], project_id=2)

    result = SearchService(synthesis_gateway, query_embedder).search(db, 2, "exact")

    assert result.search_mode == "keyword"
    assert [c["content"] for c in result.chunks] == ["exact match elsewhere"]


def test_keyword_fallback_without_embeddings(db, synthesis_gateway, query_embedder, make_document):
    make_document(["apples are red", "bananas are yellow", "cherries"], project_id=1)

    result = SearchService(synthesis_gateway, query_embedder).search(db, 1, "apples bananas")

    assert result.search_mode == "keyword"
    assert [c["content"] for c in result.chunks] == ["apples are red", "bananas are yellow"]
    assert all(c["similarity"] is None for c in result.chunks)
    synthesis_gateway.call_structured.assert_called_once()


def test_no_match_skips_synthesis(db, synthesis_gateway, query_embedder, make_document):
    make_document(["apples are red"], project_id=1)

    result = SearchService(synthesis_gateway, query_embedder).search(db, 1, "zebra")

    assert result.search_mode == "none"
    assert result.chunks == []
    synthesis_gateway.call_structured.assert_not_called()


@pytest.mark.parametrize("failure", [
    LLMServiceError("rate_limited", "Too many requests", attempts=3),
    SchemaError(raw="{}", reason="1 validation error(s): Field required"),
])
def test_synthesis_failure_keeps_chunks(db, mock_gateway, query_embedder, embedded_project, failure):
    if isinstance(failure, Exception):
        mock_gateway.call_structured.side_effect = failure
    else:
        mock_gateway.call_structured.return_value = failure

    result = SearchService(mock_gateway, query_embedder).search(db, 1, "q")

    assert result.search_mode == "semantic"
    assert len(result.chunks) == 3
    assert result.synthesis_error
    assert result.summary


def test_query_embedding_failure_raises(db, synthesis_gateway, mock_embedder, embedded_project):
    mock_embedder.embed_query.side_effect = EmbeddingError("Embedding generation failed")

    with pytest.raises(VectorSearchUnavailableError):
        SearchService(synthesis_gateway, mock_embedder).search(db, 1, "q")

    synthesis_gateway.call_structured.assert_not_called()


def test_keyword_fallback_when_all_embeddings_are_stale(db, synthesis_gateway, query_embedder, make_document):
    doc = make_document(["apples are red", "bananas are yellow"], project_id=1)
    db.add(ChunkEmbedding(chunk_id=doc.chunks[0].id, embedding=[1.0, 0.0], model="old-embedding", dimensions=2))
    db.commit()

    result = SearchService(synthesis_gateway, query_embedder).search(db, 1, "apples")

    assert result.search_mode == "keyword"
    assert [c["content"] for c in result.chunks] == ["apples are red"]
    assert result.chunks[0]["similarity"] is None


@pytest.mark.parametrize("query,expected", [
    ("100%", ["discount of 100% today"]),
    ("a_b", ["a_b"]),
    ("C:\\temp", ["saved in C:\\temp"]),
])
def test_keyword_terms_match_literally(db, synthesis_gateway, query_embedder, make_document, query, expected):
    make_document(
        ["price is 100 dollars", "discount of 100% today", "axb", "a_b", "saved in C:\\temp", "C:Xtemp"],
        project_id=1
    )

    result = SearchService(synthesis_gateway, query_embedder).search(db, 1, query)

    assert [c["content"] for c in result.chunks] == expected


def test_escape_like():
    assert escape_like("50%_off\\") == "50\\%\\_off\\\\"
