"""Custom exception classes"""


class CortexException(Exception):
    """Base exception for the pipeline"""
    pass


class ValidationException(CortexException):
    """Validation errors"""
    pass


class DataNotFoundError(CortexException):
    """A referenced record does not exist"""
    pass


class DocumentNotFoundError(DataNotFoundError):
    pass


class ChunkNotFoundError(DataNotFoundError):
    pass


class TopicNotFoundError(DataNotFoundError):
    pass


class EmptyChunkSetError(CortexException):
    """An operation needs at least one chunk and found none"""
    pass


class DocumentProcessingError(CortexException):
    """Parsing or chunking a document failed"""
    pass


class LLMConfigurationError(CortexException):
    """LLM provider is not usable as configured (e.g. missing API key)"""
    pass


class LLMServiceError(CortexException):
    """LLM call failed after classification and retries"""

    def __init__(self, category: str, message: str, attempts: int = 1):
        super().__init__(message)
        self.category = category
        self.attempts = attempts


class EmbeddingError(CortexException):
    """Embedding generation failed"""
    pass


class VectorSearchUnavailableError(CortexException):
    """Query could not be embedded, semantic search cannot run"""
    pass


class StaleMergeError(CortexException):
    """A newer merge for the same topic committed first"""
    pass
