"""LLM topic extraction for chunks and documents"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import distinct, func
from sqlalchemy.orm import Session

from app.exceptions import (
    ChunkNotFoundError,
    CortexException,
    EmptyChunkSetError,
    LLMServiceError,
    TopicNotFoundError,
)
from app.models.chunk import Chunk
from app.models.document import Document
from app.models.topic import ChunkTopic, Topic
from app.rag.llm_gateway import LLMGateway
from app.rag.structured import SchemaError
from app.schemas.llm import TopicExtraction
from app.services.document_service import document_service

logger = logging.getLogger(__name__)

LABEL_MAX_CHARS = 256

TOPIC_EXTRACTION_PROMPT = """You are a topic extraction assistant. Extract 1-2 core topic labels from the given text.
Requirements:
- Each label is a short phrase (2-8 words or characters) in the language of the text
- Labels reflect the central subject of the text, not incidental details
- relevance is a number between 0 and 1
- Reply in JSON

Format:
{"topics": [{"label": "topic name", "relevance": 0.9}]}"""


@dataclass
class ExtractionReport:
    """Outcome of a document-wide extraction run"""
    processed: int
    total: int
    errors: List[str] = field(default_factory=list)


def _clamp(score: float) -> float:
    return max(0.0, min(1.0, float(score)))


def get_topic_chunks(db: Session, topic_id: int, project_id: Optional[int] = None) -> List[Chunk]:
    """
    Distinct chunks linked to a topic in source order

    A chunk linked to the same topic more than once is returned once.
    """
    query = (
        db.query(Chunk)
        .join(ChunkTopic, ChunkTopic.chunk_id == Chunk.id)
        .filter(ChunkTopic.topic_id == topic_id)
    )
    if project_id is not None:
        query = query.join(Document, Document.id == Chunk.document_id).filter(Document.project_id == project_id)

    seen = set()
    chunks = []
    for chunk in query.order_by(Chunk.document_id, Chunk.position).all():
        if chunk.id not in seen:
            seen.add(chunk.id)
            chunks.append(chunk)
    return chunks


class TopicService:
    """Assigns LLM-derived topics to chunks"""

    def __init__(self, gateway: LLMGateway):
        self.gateway = gateway

    def find_or_create_topic(self, db: Session, label: str, description: Optional[str] = None) -> Topic:
        """Return the topic for label, bumping its weight; create it with weight 1 if new"""
        label = label.strip()[:LABEL_MAX_CHARS]

        topic = db.query(Topic).filter(Topic.label == label).first()
        if topic:
            topic.weight = Topic.weight + 1
            db.flush()
            db.refresh(topic)
            return topic

        topic = Topic(label=label, description=description, weight=1)
        db.add(topic)
        db.flush()
        return topic

    def link_chunk_to_topic(self, db: Session, chunk_id: int, topic_id: int, relevance: float = 1.0) -> ChunkTopic:
        link = ChunkTopic(chunk_id=chunk_id, topic_id=topic_id, relevance_score=_clamp(relevance))
        db.add(link)
        db.flush()
        return link

    def _extract(self, chunk: Chunk) -> TopicExtraction:
        decoded = self.gateway.call_structured(
            [
                {"role": "system", "content": TOPIC_EXTRACTION_PROMPT},
                {"role": "user", "content": chunk.content},
            ],
            TopicExtraction,
            task_type="topic_extract",
            schema_name="topic_extraction"
        )
        if isinstance(decoded, SchemaError):
            raise LLMServiceError("generic", str(decoded))
        return decoded.value

    def _assign(self, db: Session, chunk: Chunk) -> List[Dict[str, Any]]:
        extraction = self._extract(chunk)

        assigned = []
        for item in extraction.topics:
            if not item.label.strip():
                continue
            topic = self.find_or_create_topic(db, item.label)
            self.link_chunk_to_topic(db, chunk.id, topic.id, item.relevance)
            assigned.append({
                "label": topic.label,
                "topic_id": topic.id,
                "relevance": _clamp(item.relevance),
            })

        db.commit()
        return assigned

    def extract_chunk_topics(self, db: Session, chunk_id: int) -> List[Dict[str, Any]]:
        """
        Extract and link topics for one chunk

        Raises:
            ChunkNotFoundError: Unknown chunk
            LLMServiceError / LLMConfigurationError: LLM call or output failed
        """
        chunk = db.query(Chunk).filter(Chunk.id == chunk_id).first()
        if not chunk:
            raise ChunkNotFoundError(f"Chunk {chunk_id} not found")

        return self._assign(db, chunk)

    def extract_document_topics(self, db: Session, document_id: int) -> ExtractionReport:
        """
        Extract topics for every chunk of a document, one chunk at a time

        Individual chunk failures are collected in the report instead of
        aborting the run.
        """
        chunks = (
            db.query(Chunk)
            .filter(Chunk.document_id == document_id)
            .order_by(Chunk.position)
            .all()
        )
        if not chunks:
            raise EmptyChunkSetError("No chunks found for document")

        doc = db.query(Document).filter(Document.id == document_id).first()
        doc.status = "extracting"
        db.commit()

        report = ExtractionReport(processed=0, total=len(chunks))

        try:
            for chunk in chunks:
                try:
                    self._assign(db, chunk)
                    report.processed += 1
                except CortexException as e:
                    db.rollback()
                    logger.warning(f"Topic extraction failed for chunk {chunk.id}: {e}")
                    report.errors.append(f"Chunk {chunk.id}: {e}")
        except Exception as e:
            logger.error(f"Topic extraction aborted for document {document_id}: {e}", exc_info=True)
            document_service.mark_failed(db, doc, e)
            raise

        doc.status = "done"
        db.commit()

        logger.info(
            f"Extracted topics for document {document_id}: "
            f"{report.processed}/{report.total} chunks, {len(report.errors)} errors"
        )
        return report

    def list_topics(self, db: Session, project_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """Topics with their chunk counts, optionally scoped to a project"""
        chunk_count = func.count(distinct(ChunkTopic.chunk_id)).label("chunk_count")
        query = (
            db.query(Topic, chunk_count)
            .join(ChunkTopic, ChunkTopic.topic_id == Topic.id)
            .group_by(Topic.id)
        )
        if project_id is not None:
            query = (
                query.join(Chunk, Chunk.id == ChunkTopic.chunk_id)
                .join(Document, Document.id == Chunk.document_id)
                .filter(Document.project_id == project_id)
            )

        return [
            {
                "id": topic.id,
                "label": topic.label,
                "description": topic.description,
                "weight": topic.weight,
                "chunk_count": count,
            }
            for topic, count in query.order_by(chunk_count.desc(), Topic.weight.desc()).all()
        ]

    def get_topic(self, db: Session, topic_id: int) -> Topic:
        topic = db.query(Topic).filter(Topic.id == topic_id).first()
        if not topic:
            raise TopicNotFoundError(f"Topic {topic_id} not found")
        return topic
