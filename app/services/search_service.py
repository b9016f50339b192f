"""Semantic search over a project's chunks with LLM synthesis"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import json
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.exceptions import CortexException, LLMServiceError, VectorSearchUnavailableError
from app.models.chunk import Chunk
from app.models.document import Document
from app.models.embedding import ChunkEmbedding
from app.rag.config import rag_config
from app.rag.embeddings import EmbeddingsService, cosine_similarity
from app.rag.llm_gateway import LLMGateway
from app.rag.structured import SchemaError
from app.schemas.llm import ExploreSynthesis

logger = logging.getLogger(__name__)

SYNTHESIS_PROMPT = """You are a knowledge synthesis assistant. Based on the user's question and the retrieved text fragments, write:
1. A concise title (at most 20 words or characters) for the answer
2. A summary of 200-500 words that answers the question from the fragments

Only use information found in the fragments. Reply in JSON:
{"title": "...", "summary": "..."}"""

PLACEHOLDER_TITLE = "Search results"
PLACEHOLDER_SUMMARY = "Relevant content was found, but the summary could not be generated."
NO_RESULTS_TITLE = "No results"
NO_RESULTS_SUMMARY = "No content related to the query was found."

SIMILARITY_DECIMALS = 4


@dataclass
class SearchResult:
    """Ranked chunks plus the synthesized answer"""
    title: str
    summary: str
    chunks: List[Dict[str, Any]] = field(default_factory=list)
    search_mode: str = "semantic"
    synthesis_error: Optional[str] = None


def clamp_top_k(top_k: Optional[int], max_top_k: Optional[int] = None) -> int:
    """Limit top_k to [1, max_top_k]"""
    max_top_k = max_top_k or rag_config.max_top_k
    if top_k is None:
        top_k = rag_config.top_k
    return max(1, min(int(top_k), max_top_k))


def escape_like(term: str) -> str:
    """Make LIKE wildcards in a query term match literally"""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _chunk_entry(chunk: Chunk, filename: Optional[str], similarity: Optional[float]) -> Dict[str, Any]:
    return {
        "chunk_id": chunk.id,
        "document_id": chunk.document_id,
        "filename": filename,
        "position": chunk.position,
        "content": chunk.content,
        "similarity": similarity,
    }


class SearchService:
    """Embeds a query, ranks stored chunk vectors and summarizes the hits"""

    def __init__(self, gateway: LLMGateway, embedder: EmbeddingsService):
        self.gateway = gateway
        self.embedder = embedder

    def _embed_query(self, query: str) -> List[float]:
        try:
            return self.embedder.embed_query(query).vector
        except CortexException as e:
            logger.error(f"Query embedding failed: {e}")
            raise VectorSearchUnavailableError(
                f"Vector search is not available: {e}"
            ) from e

    def _project_embeddings(self, db: Session, project_id: int):
        return (
            db.query(ChunkEmbedding, Chunk, Document.filename)
            .join(Chunk, Chunk.id == ChunkEmbedding.chunk_id)
            .join(Document, Document.id == Chunk.document_id)
            .filter(Document.project_id == project_id)
            .all()
        )

    def rank(self, query_vector: List[float], rows, top_k: int) -> List[Dict[str, Any]]:
        """
        Rank embedding rows by cosine similarity to the query vector

        Rows whose vector dimension differs from the query are skipped.
        """
        scored = []
        for record, chunk, filename in rows:
            vector = record.embedding or []
            if len(vector) != len(query_vector):
                logger.debug(f"Skipping embedding of chunk {chunk.id}: dimension {len(vector)} != {len(query_vector)}")
                continue
            scored.append((cosine_similarity(query_vector, vector), chunk, filename))

        scored.sort(key=lambda item: item[0], reverse=True)

        return [
            _chunk_entry(chunk, filename, round(similarity, SIMILARITY_DECIMALS))
            for similarity, chunk, filename in scored[:top_k]
        ]

    def keyword_search(self, db: Session, project_id: int, query: str, top_k: int) -> List[Dict[str, Any]]:
        """Substring match on any whitespace-separated query term"""
        terms = [term for term in query.split() if term]
        if not terms:
            return []

        rows = (
            db.query(Chunk, Document.filename)
            .join(Document, Document.id == Chunk.document_id)
            .filter(Document.project_id == project_id)
            .filter(or_(*[Chunk.content.like(f"%{escape_like(term)}%", escape="\\") for term in terms]))
            .order_by(Chunk.document_id, Chunk.position)
            .limit(top_k)
            .all()
        )
        return [_chunk_entry(chunk, filename, None) for chunk, filename in rows]

    def synthesize(self, query: str, chunks: List[Dict[str, Any]]) -> ExploreSynthesis:
        """
        Summarize retrieved chunks into a title and answer

        Raises:
            LLMServiceError: Call failed or the output did not match the schema
        """
        fragments = [
            {
                "filename": c["filename"],
                "similarity": c["similarity"],
                "content": c["content"],
            }
            for c in chunks
        ]
        decoded = self.gateway.call_structured(
            [
                {"role": "system", "content": SYNTHESIS_PROMPT},
                {
                    "role": "user",
                    "content": f"Question: {query}\n\nFragments:\n{json.dumps(fragments, ensure_ascii=False)}"
                },
            ],
            ExploreSynthesis,
            task_type="explore",
            schema_name="explore_synthesis"
        )
        if isinstance(decoded, SchemaError):
            raise LLMServiceError("generic", str(decoded))
        return decoded.value

    def search(
        self,
        db: Session,
        project_id: int,
        query: str,
        top_k: Optional[int] = None
    ) -> SearchResult:
        """
        Search a project and synthesize an answer

        Args:
            db: Database session
            project_id: Project to search
            query: Natural-language query
            top_k: Number of chunks to return, clamped to [1, max_top_k]

        Returns:
            SearchResult with ``search_mode`` ``semantic``, ``keyword`` or ``none``

        Raises:
            VectorSearchUnavailableError: The query could not be embedded
        """
        top_k = clamp_top_k(top_k)
        query_vector = self._embed_query(query)

        rows = self._project_embeddings(db, project_id)
        usable = [row for row in rows if len(row[0].embedding or []) == len(query_vector)]
        if len(usable) < len(rows):
            logger.warning(
                f"Project {project_id}: {len(rows) - len(usable)} embeddings do not have "
                f"dimension {len(query_vector)} and are ignored"
            )

        if usable:
            chunks = self.rank(query_vector, usable, top_k)
            mode = "semantic"
        else:
            logger.info(f"Project {project_id} has no usable embeddings, using keyword search")
            chunks = self.keyword_search(db, project_id, query, top_k)
            mode = "keyword"

        if not chunks:
            return SearchResult(
                title=NO_RESULTS_TITLE,
                summary=NO_RESULTS_SUMMARY,
                chunks=[],
                search_mode="none"
            )

        try:
            synthesis = self.synthesize(query, chunks)
        except CortexException as e:
            logger.warning(f"Search synthesis failed for project {project_id}: {e}")
            return SearchResult(
                title=PLACEHOLDER_TITLE,
                summary=PLACEHOLDER_SUMMARY,
                chunks=chunks,
                search_mode=mode,
                synthesis_error=str(e)
            )

        logger.info(f"Search in project {project_id}: {len(chunks)} chunks ({mode})")
        return SearchResult(
            title=synthesis.title,
            summary=synthesis.summary,
            chunks=chunks,
            search_mode=mode
        )
