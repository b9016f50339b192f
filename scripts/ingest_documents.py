"""
Bulk document ingestion script

Chunks every PDF and text file in a directory into a project, then optionally
extracts topics and generates embeddings with the active provider config.
Usage: python scripts/ingest_documents.py ./docs --project-id 1 --topics --embeddings
"""

import sys
import argparse
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.database.base import Base
from app.database.session import SessionLocal, engine
from app.exceptions import CortexException
from app.rag.embeddings import EmbeddingsService, build_cache
from app.rag.llm_gateway import LLMGateway
from app.rag.providers import resolve_embedding_config, resolve_llm_config
from app.services.document_service import document_service
from app.services.embedding_service import EmbeddingIndexService
from app.services.topic_service import TopicService
from app.utils.logger import setup_logging
from app import models  # noqa: F401
import logging

setup_logging()
logger = logging.getLogger(__name__)

TEXT_SUFFIXES = {".txt", ".md"}


def ingest_file(db, path: Path, project_id: int):
    if path.suffix.lower() == ".pdf":
        return document_service.ingest_pdf(db, path.name, path.read_bytes(), project_id=project_id)
    return document_service.ingest_text(db, path.name, path.read_text(encoding="utf-8"), project_id=project_id)


def main():
    parser = argparse.ArgumentParser(description="Ingest a directory of documents")
    parser.add_argument("directory", type=Path)
    parser.add_argument("--project-id", type=int, required=True)
    parser.add_argument("--topics", action="store_true", help="Extract topics for each document")
    parser.add_argument("--embeddings", action="store_true", help="Embed the project's new chunks")
    args = parser.parse_args()

    files = sorted(
        p for p in args.directory.iterdir()
        if p.is_file() and (p.suffix.lower() == ".pdf" or p.suffix.lower() in TEXT_SUFFIXES)
    )
    if not files:
        logger.error(f"No PDF or text files found in {args.directory}")
        return 1

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    failed = []

    try:
        gateway = LLMGateway(resolve_llm_config(db)) if args.topics else None

        logger.info(f"Ingesting {len(files)} documents into project {args.project_id}")
        logger.info("-" * 60)

        for i, path in enumerate(files, 1):
            logger.info(f"[{i}/{len(files)}] Processing: {path.name}")
            try:
                doc = ingest_file(db, path, args.project_id)
                logger.info(f"  Created {doc.chunk_count} chunks")

                if gateway is not None:
                    report = TopicService(gateway).extract_document_topics(db, doc.id)
                    logger.info(f"  Topics extracted for {report.processed}/{report.total} chunks")
                    for error in report.errors:
                        logger.warning(f"  {error}")

            except CortexException as e:
                logger.error(f"  Failed to process {path.name}: {e}")
                failed.append(path.name)

        if args.embeddings:
            embedder = EmbeddingsService(resolve_embedding_config(db), cache=build_cache())
            try:
                result = EmbeddingIndexService(embedder).generate_for_project(db, args.project_id)
                logger.info(f"Embeddings: {result['message']}")
            except CortexException as e:
                logger.error(f"Embedding generation failed: {e}")
                failed.append("embeddings")

    finally:
        db.close()

    logger.info("=" * 60)
    logger.info(f"Processed {len(files)} documents, {len(failed)} failures")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
