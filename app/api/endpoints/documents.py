"""Document ingestion API endpoints"""

from fastapi import APIRouter, UploadFile, File, Form, HTTPException, Depends
from sqlalchemy.orm import Session
from typing import Optional
from pathlib import Path
import logging

from app.api.deps import get_llm_gateway
from app.api.errors import to_http_exception
from app.database.session import get_db
from app.exceptions import CortexException
from app.rag.llm_gateway import LLMGateway
from app.schemas.document import (
    DocumentChunksResponse,
    DocumentResponse,
    DocumentUploadResponse,
    TextDocumentCreate,
    TopicExtractionReportResponse,
)
from app.services.document_service import document_service
from app.services.topic_service import TopicService

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_UPLOAD_BYTES = 20 * 1024 * 1024  # 20MB


def _upload_response(document) -> DocumentUploadResponse:
    return DocumentUploadResponse(
        success=True,
        document_id=document.id,
        filename=document.filename,
        status=document.status,
        chunk_count=document.chunk_count,
        message=f"Document processed into {document.chunk_count} chunks"
    )


@router.post("/documents/upload", response_model=DocumentUploadResponse)
def upload_document(
    file: UploadFile = File(...),
    project_id: Optional[int] = Form(None),
    db: Session = Depends(get_db)
):
    """
    Upload a PDF and split it into chunks

    Parsing and chunking run synchronously; the document ends in status
    'done', or 'error' with the failure reason.
    """
    try:
        if Path(file.filename or "").suffix.lower() != ".pdf":
            raise HTTPException(status_code=400, detail="Only PDF files are supported")

        data = file.file.read()
        if not data:
            raise HTTPException(status_code=400, detail="Uploaded file is empty")
        if len(data) > MAX_UPLOAD_BYTES:
            raise HTTPException(status_code=400, detail="File size exceeds 20MB limit")

        document = document_service.ingest_pdf(db, file.filename, data, project_id=project_id)
        return _upload_response(document)

    except HTTPException:
        raise
    except CortexException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error uploading document: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to upload document")


@router.post("/documents/text", response_model=DocumentUploadResponse)
def create_text_document(
    payload: TextDocumentCreate,
    db: Session = Depends(get_db)
):
    """Chunk already-extracted text as a new document"""
    try:
        document = document_service.ingest_text(db, payload.filename, payload.text, project_id=payload.project_id)
        return _upload_response(document)
    except CortexException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error creating text document: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create document")


@router.get("/documents/{document_id}", response_model=DocumentResponse)
def get_document(document_id: int, db: Session = Depends(get_db)):
    try:
        return document_service.get_document(db, document_id)
    except CortexException as e:
        raise to_http_exception(e)


@router.get("/documents/{document_id}/chunks", response_model=DocumentChunksResponse)
def get_document_chunks(document_id: int, db: Session = Depends(get_db)):
    """Chunks of a document in position order"""
    try:
        chunks = document_service.get_chunks(db, document_id)
        return DocumentChunksResponse(document_id=document_id, chunks=chunks)
    except CortexException as e:
        raise to_http_exception(e)


@router.post("/documents/{document_id}/extract-topics", response_model=TopicExtractionReportResponse)
def extract_document_topics(
    document_id: int,
    db: Session = Depends(get_db),
    gateway: LLMGateway = Depends(get_llm_gateway)
):
    """
    Extract topics for every chunk of a document

    Failed chunks are reported in ``errors`` without failing the request.
    """
    try:
        document_service.get_document(db, document_id)
        report = TopicService(gateway).extract_document_topics(db, document_id)
        return TopicExtractionReportResponse(
            success=not report.errors,
            document_id=document_id,
            processed=report.processed,
            total=report.total,
            errors=report.errors
        )
    except CortexException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error extracting topics for document {document_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to extract topics")
