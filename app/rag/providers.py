"""Provider configuration resolution for LLM and embedding backends"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple
import base64
import binascii
import logging
import threading
import time

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.provider_config import LlmConfig, EmbeddingConfig

logger = logging.getLogger(__name__)

BUILTIN = "builtin"

TASK_TYPES = ("topic_extract", "summarize", "explore", "chunk_merge")

PROVIDER_DEFAULTS: Dict[str, Dict[str, str]] = {
    "builtin": {
        "base_url": settings.BUILTIN_LLM_API_URL,
        "default_model": settings.BUILTIN_LLM_MODEL,
    },
    "openai": {
        "base_url": "https://api.openai.com/v1",
        "default_model": "gpt-4.1-mini",
    },
    "openrouter": {
        "base_url": "https://openrouter.ai/api/v1",
        "default_model": "anthropic/claude-sonnet-4",
    },
    "custom": {
        "base_url": "",
        "default_model": "",
    },
}

DEFAULT_EMBEDDING_BASE_URL = "https://api.openai.com/v1"


@dataclass
class LLMServiceConfig:
    """Resolved LLM provider settings"""
    provider: str
    base_url: str
    api_key: str
    default_model: str
    task_models: Dict[str, str] = field(default_factory=dict)

    @property
    def is_external(self) -> bool:
        return self.provider != BUILTIN

    def model_for_task(self, task_type: Optional[str] = None) -> str:
        """Per-task override, otherwise the provider default model"""
        if task_type and self.task_models.get(task_type):
            return self.task_models[task_type]
        return self.default_model


@dataclass
class EmbeddingServiceConfig:
    """Resolved embedding provider settings"""
    provider: str
    base_url: str
    api_key: str
    model: str
    dimensions: int


def encode_api_key(plain_key: str) -> str:
    return base64.b64encode(plain_key.encode("utf-8")).decode("ascii")


def decode_api_key(encoded_key: Optional[str]) -> str:
    if not encoded_key:
        return ""
    try:
        return base64.b64decode(encoded_key.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        logger.warning("Stored API key is not valid base64, ignoring it")
        return ""


def builtin_llm_config() -> LLMServiceConfig:
    return LLMServiceConfig(
        provider=BUILTIN,
        base_url=settings.BUILTIN_LLM_API_URL,
        api_key=settings.BUILTIN_LLM_API_KEY,
        default_model=settings.BUILTIN_LLM_MODEL,
        task_models={},
    )


def builtin_embedding_config(
    model: Optional[str] = None,
    dimensions: Optional[int] = None
) -> EmbeddingServiceConfig:
    return EmbeddingServiceConfig(
        provider=BUILTIN,
        base_url=settings.BUILTIN_EMBEDDING_API_URL,
        api_key=settings.BUILTIN_EMBEDDING_API_KEY,
        model=model or settings.BUILTIN_EMBEDDING_MODEL,
        dimensions=dimensions or settings.BUILTIN_EMBEDDING_DIMENSIONS,
    )


def get_active_llm_row(db: Session) -> Optional[LlmConfig]:
    return (
        db.query(LlmConfig)
        .filter(LlmConfig.is_active.is_(True))
        .order_by(LlmConfig.id.desc())
        .first()
    )


def get_active_embedding_row(db: Session) -> Optional[EmbeddingConfig]:
    return (
        db.query(EmbeddingConfig)
        .filter(EmbeddingConfig.is_active.is_(True))
        .order_by(EmbeddingConfig.id.desc())
        .first()
    )


def resolve_llm_config(db: Session) -> LLMServiceConfig:
    """
    Resolve the active LLM configuration

    Priority: active ``llm_config`` row, then the built-in provider. A row
    for the builtin provider keeps its model choices but always uses the
    environment credentials.
    """
    try:
        row = get_active_llm_row(db)
    except SQLAlchemyError as e:
        logger.warning(f"LLM config lookup failed, using builtin provider: {e}")
        return builtin_llm_config()

    if row is None:
        return builtin_llm_config()

    provider = row.provider or BUILTIN
    defaults = PROVIDER_DEFAULTS.get(provider, PROVIDER_DEFAULTS["custom"])
    task_models = row.task_models if isinstance(row.task_models, dict) else {}

    if provider == BUILTIN:
        config = builtin_llm_config()
        config.default_model = row.default_model or config.default_model
        config.task_models = task_models
        return config

    return LLMServiceConfig(
        provider=provider,
        base_url=row.base_url or defaults["base_url"],
        api_key=decode_api_key(row.api_key_encoded),
        default_model=row.default_model or defaults["default_model"],
        task_models=task_models,
    )


def resolve_embedding_config(db: Session) -> EmbeddingServiceConfig:
    """
    Resolve the active embedding configuration

    An external provider with no key of its own borrows the active LLM
    config's key when both name the same provider. Without any key it falls
    back to the builtin provider instead of failing.
    """
    try:
        row = get_active_embedding_row(db)
    except SQLAlchemyError as e:
        logger.warning(f"Embedding config lookup failed, using builtin provider: {e}")
        return builtin_embedding_config()

    if row is None:
        return builtin_embedding_config()

    provider = row.provider or BUILTIN
    if provider == BUILTIN:
        return builtin_embedding_config(row.model, row.dimensions)

    api_key = decode_api_key(row.api_key_encoded)
    if not api_key:
        llm_row = get_active_llm_row(db)
        if llm_row is not None and llm_row.provider == provider:
            api_key = decode_api_key(llm_row.api_key_encoded)

    if not api_key:
        logger.info(f"No API key for embedding provider '{provider}', falling back to builtin")
        return builtin_embedding_config()

    return EmbeddingServiceConfig(
        provider=provider,
        base_url=row.base_url or DEFAULT_EMBEDDING_BASE_URL,
        api_key=api_key,
        model=row.model or settings.BUILTIN_EMBEDDING_MODEL,
        dimensions=row.dimensions or settings.BUILTIN_EMBEDDING_DIMENSIONS,
    )


class ConfigCache:
    """Time-bounded cache of resolved provider configs"""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str, loader: Callable[[], Any]) -> Any:
        """Return the cached value for key, calling loader when missing or expired"""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now - entry[0] < self.ttl_seconds:
                return entry[1]

        value = loader()
        with self._lock:
            self._entries[key] = (now, value)
        return value

    def invalidate(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)


# Shared cache used by the API dependencies
config_cache = ConfigCache(ttl_seconds=settings.CONFIG_CACHE_TTL_SECONDS)
