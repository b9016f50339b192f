"""RAG pipeline configuration"""

from app.config import settings
from dataclasses import dataclass


@dataclass
class RAGConfig:
    """Tunables for chunking, merging, embedding and search"""

    # Chunking (characters)
    chunk_min_size: int = settings.CHUNK_MIN_SIZE
    chunk_max_size: int = settings.CHUNK_MAX_SIZE

    # Semantic merge batches (chunks per LLM call)
    merge_batch_min: int = settings.MERGE_BATCH_MIN
    merge_batch_max: int = settings.MERGE_BATCH_MAX

    # Embeddings
    embedding_batch_size: int = settings.EMBEDDING_BATCH_SIZE
    embedding_max_input_chars: int = settings.EMBEDDING_MAX_INPUT_CHARS
    enable_cache: bool = settings.EMBEDDING_CACHE_ENABLED
    cache_ttl: int = settings.EMBEDDING_CACHE_TTL_SECONDS
    redis_url: str = settings.REDIS_URL

    # Search
    top_k: int = settings.SEARCH_TOP_K
    max_top_k: int = settings.SEARCH_MAX_TOP_K

    # LLM calls
    max_retries: int = settings.LLM_MAX_RETRIES
    retry_delay: float = settings.LLM_RETRY_DELAY_SECONDS
    timeout: float = settings.LLM_TIMEOUT_SECONDS
    max_tokens: int = settings.LLM_MAX_TOKENS


# Global RAG config instance
rag_config = RAGConfig()
