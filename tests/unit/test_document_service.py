"""Test document ingestion"""

import pytest

from app.exceptions import DocumentNotFoundError, DocumentProcessingError
from app.models.document import Document
from app.services.document_service import DocumentService


def test_ingest_text_stores_dense_chunks(db):
    text = "\n\n".join(f"Paragraph {i}. " + "lorem ipsum " * 40 for i in range(6))
    service = DocumentService(min_size=500, max_size=800)

    doc = service.ingest_text(db, "notes.txt", text, project_id=3)

    chunks = service.get_chunks(db, doc.id)
    assert doc.status == "done"
    assert doc.project_id == 3
    assert doc.chunk_count == len(chunks) > 1
    assert [c.position for c in chunks] == list(range(len(chunks)))
    assert all(c.char_count == len(c.content) for c in chunks)
    assert doc.raw_text == text


def test_empty_text_marks_document_failed(db):
    with pytest.raises(DocumentProcessingError):
        DocumentService().ingest_text(db, "empty.txt", "   \n  ")

    doc = db.query(Document).one()
    assert doc.status == "error"
    assert doc.failed_reason == "Document is empty after extraction"
    assert doc.chunk_count == 0


def test_unreadable_pdf_marks_document_failed(db):
    with pytest.raises(DocumentProcessingError):
        DocumentService().ingest_pdf(db, "broken.pdf", b"this is not a pdf")

    doc = db.query(Document).one()
    assert doc.status == "error"
    assert doc.failed_reason.startswith("PDF parsing failed")


def test_unknown_document(db):
    with pytest.raises(DocumentNotFoundError):
        DocumentService().get_chunks(db, 12345)
