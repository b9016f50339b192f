"""Embedding indexing for stored chunks"""

from typing import Any, Dict, List
import logging

from sqlalchemy.orm import Session

from app.exceptions import EmbeddingError, ValidationException
from app.models.chunk import Chunk
from app.models.document import Document
from app.models.embedding import ChunkEmbedding
from app.rag.embeddings import EmbeddingsService

logger = logging.getLogger(__name__)


class EmbeddingIndexService:
    """Generates and stores one embedding per chunk"""

    def __init__(self, embedder: EmbeddingsService):
        self.embedder = embedder

    def _project_chunks(self, db: Session, project_id: int):
        return (
            db.query(Chunk)
            .join(Document, Document.id == Chunk.document_id)
            .filter(Document.project_id == project_id)
        )

    def _store(self, db: Session, chunks: List[Chunk]) -> int:
        """Embed chunks batch by batch, replacing existing vectors"""
        expected = self.embedder.config.dimensions
        stored = 0
        batch_size = self.embedder.batch_size

        for start in range(0, len(chunks), batch_size):
            batch = chunks[start:start + batch_size]
            results = self.embedder.embed([c.content for c in batch])

            for result in results:
                if result.dimensions != expected:
                    raise EmbeddingError(
                        f"Embedding dimension mismatch: model {result.model} returned "
                        f"{result.dimensions}, configured {expected}"
                    )

            existing = {
                record.chunk_id: record
                for record in db.query(ChunkEmbedding).filter(
                    ChunkEmbedding.chunk_id.in_([c.id for c in batch])
                )
            }
            for chunk, result in zip(batch, results):
                record = existing.get(chunk.id)
                if record is None:
                    db.add(ChunkEmbedding(
                        chunk_id=chunk.id,
                        embedding=result.vector,
                        model=result.model,
                        dimensions=result.dimensions
                    ))
                else:
                    record.embedding = result.vector
                    record.model = result.model
                    record.dimensions = result.dimensions

            db.commit()
            stored += len(batch)

        return stored

    def generate_for_project(self, db: Session, project_id: int, regenerate: bool = False) -> Dict[str, Any]:
        """
        Embed the chunks of a project

        Args:
            db: Database session
            project_id: Project whose chunks are embedded
            regenerate: Re-embed chunks that already have a vector

        Returns:
            ``{generated, total, message}``
        """
        query = self._project_chunks(db, project_id)
        if not regenerate:
            query = query.outerjoin(ChunkEmbedding, ChunkEmbedding.chunk_id == Chunk.id).filter(
                ChunkEmbedding.id.is_(None)
            )
        chunks = query.order_by(Chunk.document_id, Chunk.position).all()

        if not chunks:
            return {"generated": 0, "total": 0, "message": "All chunks already have embeddings"}

        generated = self._store(db, chunks)
        logger.info(f"Generated {generated} embeddings for project {project_id}")
        return {
            "generated": generated,
            "total": len(chunks),
            "message": f"Generated {generated} embeddings",
        }

    def generate_for_chunks(self, db: Session, chunk_ids: List[int]) -> Dict[str, Any]:
        """Embed specific chunks, replacing their existing vectors"""
        if not chunk_ids:
            raise ValidationException("chunk_ids must not be empty")

        chunks = db.query(Chunk).filter(Chunk.id.in_(chunk_ids)).order_by(Chunk.id).all()
        if not chunks:
            return {"generated": 0, "total": 0, "message": "No matching chunks"}

        generated = self._store(db, chunks)
        return {
            "generated": generated,
            "total": len(chunks),
            "message": f"Generated {generated} embeddings",
        }

    def status(self, db: Session, project_id: int) -> Dict[str, Any]:
        total = self._project_chunks(db, project_id).count()
        embedded = (
            self._project_chunks(db, project_id)
            .join(ChunkEmbedding, ChunkEmbedding.chunk_id == Chunk.id)
            .count()
        )
        percentage = round(embedded / total * 100, 1) if total else 0.0
        return {
            "total_chunks": total,
            "embedded_chunks": embedded,
            "percentage": percentage,
        }
