"""Semantic search and embedding API endpoints"""

from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy.orm import Session
import logging

from app.api.deps import get_embeddings_service, get_llm_gateway
from app.api.errors import to_http_exception
from app.database.session import get_db
from app.exceptions import CortexException
from app.rag.embeddings import EmbeddingsService
from app.rag.llm_gateway import LLMGateway
from app.schemas.search import (
    ChunkEmbeddingRequest,
    EmbeddingGenerateRequest,
    EmbeddingGenerateResponse,
    EmbeddingStatusResponse,
    SearchRequest,
    SearchResponse,
)
from app.services.embedding_service import EmbeddingIndexService
from app.services.search_service import SearchService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/search", response_model=SearchResponse)
def search(
    request: SearchRequest,
    db: Session = Depends(get_db),
    gateway: LLMGateway = Depends(get_llm_gateway),
    embedder: EmbeddingsService = Depends(get_embeddings_service)
):
    """
    Search a project and synthesize an answer

    Falls back to keyword matching when the project has no embeddings.
    Returns 503 when the query cannot be embedded.
    """
    try:
        result = SearchService(gateway, embedder).search(
            db, request.project_id, request.query, top_k=request.top_k
        )
        return SearchResponse(
            title=result.title,
            summary=result.summary,
            chunks=result.chunks,
            search_mode=result.search_mode,
            synthesis_error=result.synthesis_error
        )
    except CortexException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error searching project {request.project_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Search failed")


@router.post("/embeddings/generate", response_model=EmbeddingGenerateResponse)
def generate_embeddings(
    request: EmbeddingGenerateRequest,
    db: Session = Depends(get_db),
    embedder: EmbeddingsService = Depends(get_embeddings_service)
):
    """Embed the project's chunks that have no vector yet (all with ``regenerate``)"""
    try:
        return EmbeddingIndexService(embedder).generate_for_project(
            db, request.project_id, regenerate=request.regenerate
        )
    except CortexException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error generating embeddings: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to generate embeddings")


@router.post("/embeddings/chunks", response_model=EmbeddingGenerateResponse)
def embed_chunks(
    request: ChunkEmbeddingRequest,
    db: Session = Depends(get_db),
    embedder: EmbeddingsService = Depends(get_embeddings_service)
):
    try:
        return EmbeddingIndexService(embedder).generate_for_chunks(db, request.chunk_ids)
    except CortexException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error embedding chunks: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to generate embeddings")


@router.get("/embeddings/status", response_model=EmbeddingStatusResponse)
def embedding_status(
    project_id: int = Query(...),
    db: Session = Depends(get_db),
    embedder: EmbeddingsService = Depends(get_embeddings_service)
):
    return EmbeddingIndexService(embedder).status(db, project_id)
