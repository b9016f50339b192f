"""RAG module - chunking, LLM gateway, embeddings and provider config"""

from app.rag.chunker import chunk_text
from app.rag.embeddings import EmbeddingsService, EmbeddingResult, cosine_similarity
from app.rag.llm_gateway import ErrorCategory, LLMGateway, LLMResult, classify_error
from app.rag.providers import (
    EmbeddingServiceConfig,
    LLMServiceConfig,
    config_cache,
    resolve_embedding_config,
    resolve_llm_config
)
from app.rag.structured import Ok, SchemaError, decode_structured

__all__ = [
    'chunk_text',
    'EmbeddingsService',
    'EmbeddingResult',
    'cosine_similarity',
    'ErrorCategory',
    'LLMGateway',
    'LLMResult',
    'classify_error',
    'EmbeddingServiceConfig',
    'LLMServiceConfig',
    'config_cache',
    'resolve_embedding_config',
    'resolve_llm_config',
    'Ok',
    'SchemaError',
    'decode_structured'
]
