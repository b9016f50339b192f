"""Translation of pipeline exceptions to HTTP errors"""

from fastapi import HTTPException

from app.exceptions import (
    CortexException,
    DataNotFoundError,
    DocumentProcessingError,
    EmbeddingError,
    EmptyChunkSetError,
    LLMConfigurationError,
    LLMServiceError,
    StaleMergeError,
    ValidationException,
    VectorSearchUnavailableError,
)

STATUS_CODES = (
    (DataNotFoundError, 404),
    (ValidationException, 400),
    (EmptyChunkSetError, 400),
    (DocumentProcessingError, 400),
    (StaleMergeError, 409),
    (LLMConfigurationError, 424),
    (LLMServiceError, 502),
    (EmbeddingError, 502),
    (VectorSearchUnavailableError, 503),
)


def to_http_exception(error: CortexException) -> HTTPException:
    """HTTPException for a pipeline error; unknown subclasses map to 500"""
    for exc_type, status_code in STATUS_CODES:
        if isinstance(error, exc_type):
            break
    else:
        status_code = 500

    detail = {"error": error.__class__.__name__, "detail": str(error)}
    if isinstance(error, LLMServiceError):
        detail["category"] = error.category
    return HTTPException(status_code=status_code, detail=detail)
