"""Document ingestion: parse, chunk and persist"""

from typing import List, Optional
import io
import logging

import PyPDF2
from PyPDF2.errors import PdfReadError
from sqlalchemy.orm import Session

from app.exceptions import DocumentNotFoundError, DocumentProcessingError
from app.models.chunk import Chunk
from app.models.document import Document
from app.rag.chunker import chunk_text
from app.rag.config import rag_config

logger = logging.getLogger(__name__)

FAILED_REASON_MAX_CHARS = 1000


def read_pdf_text(data: bytes) -> str:
    """Extract the text layer of a PDF, page by page"""
    try:
        reader = PyPDF2.PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PdfReadError, ValueError, OSError) as e:
        raise DocumentProcessingError(f"PDF parsing failed: {e}") from e
    return "\n".join(pages)


class DocumentService:
    """Creates documents and their chunks, tracking pipeline status"""

    def __init__(self, min_size: Optional[int] = None, max_size: Optional[int] = None):
        self.min_size = min_size or rag_config.chunk_min_size
        self.max_size = max_size or rag_config.chunk_max_size

    def create_document(self, db: Session, filename: str, project_id: Optional[int] = None) -> Document:
        """Create the document record in ``parsing`` state"""
        doc = Document(
            filename=filename,
            project_id=project_id,
            status="parsing",
            chunk_count=0
        )
        db.add(doc)
        db.commit()
        db.refresh(doc)

        logger.info(f"Created document record {doc.id} with status 'parsing'")
        return doc

    def _store_chunks(self, db: Session, doc: Document, text: str) -> List[Chunk]:
        pieces = chunk_text(text, self.min_size, self.max_size)

        chunks = [
            Chunk(
                document_id=doc.id,
                content=content,
                position=position,
                char_count=len(content)
            )
            for position, content in enumerate(pieces)
        ]
        db.add_all(chunks)

        doc.raw_text = text
        doc.chunk_count = len(chunks)
        doc.status = "done"
        doc.failed_reason = None
        db.commit()

        logger.info(f"Stored {len(chunks)} chunks for document {doc.id} ({len(text)} chars)")
        return chunks

    def mark_failed(self, db: Session, doc: Document, error: Exception) -> None:
        db.rollback()
        doc.status = "error"
        doc.failed_reason = str(error)[:FAILED_REASON_MAX_CHARS]
        db.commit()

    def ingest_text(
        self,
        db: Session,
        filename: str,
        text: str,
        project_id: Optional[int] = None
    ) -> Document:
        """
        Chunk already-extracted text into a new document

        Raises:
            DocumentProcessingError: Text is empty; the document is left in ``error``
        """
        doc = self.create_document(db, filename, project_id)

        try:
            if not text or not text.strip():
                raise DocumentProcessingError("Document is empty after extraction")
            self._store_chunks(db, doc, text)
        except DocumentProcessingError as e:
            logger.error(f"Error processing document {doc.id}: {e}")
            self.mark_failed(db, doc, e)
            raise

        db.refresh(doc)
        return doc

    def ingest_pdf(
        self,
        db: Session,
        filename: str,
        data: bytes,
        project_id: Optional[int] = None
    ) -> Document:
        """
        Parse a PDF and chunk its text into a new document

        Raises:
            DocumentProcessingError: Parsing failed or produced no text
        """
        doc = self.create_document(db, filename, project_id)

        try:
            text = read_pdf_text(data)
            if not text.strip():
                raise DocumentProcessingError("Document is empty after extraction")
            self._store_chunks(db, doc, text)
        except DocumentProcessingError as e:
            logger.error(f"Error processing document {doc.id}: {e}")
            self.mark_failed(db, doc, e)
            raise

        db.refresh(doc)
        return doc

    def get_document(self, db: Session, document_id: int) -> Document:
        doc = db.query(Document).filter(Document.id == document_id).first()
        if not doc:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return doc

    def get_chunks(self, db: Session, document_id: int) -> List[Chunk]:
        """All chunks of a document in position order"""
        self.get_document(db, document_id)
        return (
            db.query(Chunk)
            .filter(Chunk.document_id == document_id)
            .order_by(Chunk.position)
            .all()
        )


# Global document service instance
document_service = DocumentService()
