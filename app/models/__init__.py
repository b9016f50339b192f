"""Database models package"""

from app.models.document import Document
from app.models.chunk import Chunk
from app.models.topic import Topic, ChunkTopic
from app.models.summary import Summary
from app.models.merged_chunk import MergedChunk
from app.models.embedding import ChunkEmbedding
from app.models.provider_config import LlmConfig, EmbeddingConfig

__all__ = [
    "Document",
    "Chunk",
    "Topic",
    "ChunkTopic",
    "Summary",
    "MergedChunk",
    "ChunkEmbedding",
    "LlmConfig",
    "EmbeddingConfig"
]
