"""Shared FastAPI dependencies for provider-backed services"""

from fastapi import Depends
from sqlalchemy.orm import Session

from app.database.session import get_db
from app.rag.embeddings import EmbeddingsService, build_cache
from app.rag.llm_gateway import LLMGateway
from app.rag.providers import config_cache, resolve_embedding_config, resolve_llm_config

# One Redis connection pool for the process
embedding_cache = build_cache()


def get_llm_gateway(db: Session = Depends(get_db)) -> LLMGateway:
    config = config_cache.get("llm", lambda: resolve_llm_config(db))
    return LLMGateway(config)


def get_embeddings_service(db: Session = Depends(get_db)) -> EmbeddingsService:
    config = config_cache.get("embedding", lambda: resolve_embedding_config(db))
    return EmbeddingsService(config, cache=embedding_cache)
