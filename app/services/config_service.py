"""Persisted provider configuration: save and masked views"""

from typing import Any, Dict, Optional
import logging

from sqlalchemy.orm import Session

from app.exceptions import ValidationException
from app.models.provider_config import EmbeddingConfig, LlmConfig
from app.rag.providers import (
    BUILTIN,
    PROVIDER_DEFAULTS,
    TASK_TYPES,
    config_cache,
    decode_api_key,
    encode_api_key,
    get_active_embedding_row,
    get_active_llm_row,
    resolve_embedding_config,
    resolve_llm_config,
)

logger = logging.getLogger(__name__)


def mask_api_key(api_key: str) -> str:
    if not api_key:
        return ""
    if len(api_key) <= 8:
        return "*" * len(api_key)
    return f"{api_key[:4]}...{api_key[-4:]}"


class ConfigService:
    """Reads and writes the active LLM and embedding configs"""

    def save_llm_config(
        self,
        db: Session,
        provider: str,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        default_model: Optional[str] = None,
        task_models: Optional[Dict[str, str]] = None
    ) -> LlmConfig:
        """
        Store a new active LLM config, deactivating previous ones

        An omitted ``api_key`` keeps the key of the currently active row when
        the provider is unchanged.
        """
        if provider not in PROVIDER_DEFAULTS:
            raise ValidationException(
                f"Unknown provider '{provider}'. Allowed: {', '.join(PROVIDER_DEFAULTS)}"
            )
        task_models = {k: v for k, v in (task_models or {}).items() if v}
        unknown = set(task_models) - set(TASK_TYPES)
        if unknown:
            raise ValidationException(f"Unknown task types: {', '.join(sorted(unknown))}")
        if provider == "custom" and not base_url:
            raise ValidationException("A custom provider requires base_url")

        previous = get_active_llm_row(db)
        encoded_key = encode_api_key(api_key) if api_key else None
        if encoded_key is None and previous is not None and previous.provider == provider:
            encoded_key = previous.api_key_encoded

        db.query(LlmConfig).filter(LlmConfig.is_active.is_(True)).update(
            {LlmConfig.is_active: False}, synchronize_session=False
        )
        row = LlmConfig(
            provider=provider,
            base_url=base_url,
            api_key_encoded=encoded_key,
            default_model=default_model,
            task_models=task_models,
            is_active=True
        )
        db.add(row)
        db.commit()
        db.refresh(row)

        config_cache.invalidate()
        logger.info(f"LLM config saved: provider={provider}, model={default_model or '-'}")
        return row

    def save_embedding_config(
        self,
        db: Session,
        provider: str,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        dimensions: Optional[int] = None
    ) -> EmbeddingConfig:
        """Store a new active embedding config, deactivating previous ones"""
        if provider not in PROVIDER_DEFAULTS:
            raise ValidationException(
                f"Unknown provider '{provider}'. Allowed: {', '.join(PROVIDER_DEFAULTS)}"
            )
        if dimensions is not None and dimensions <= 0:
            raise ValidationException("dimensions must be positive")

        previous = get_active_embedding_row(db)
        encoded_key = encode_api_key(api_key) if api_key else None
        if encoded_key is None and previous is not None and previous.provider == provider:
            encoded_key = previous.api_key_encoded

        db.query(EmbeddingConfig).filter(EmbeddingConfig.is_active.is_(True)).update(
            {EmbeddingConfig.is_active: False}, synchronize_session=False
        )
        row = EmbeddingConfig(provider=provider, base_url=base_url, api_key_encoded=encoded_key, is_active=True)
        if model:
            row.model = model
        if dimensions:
            row.dimensions = dimensions
        db.add(row)
        db.commit()
        db.refresh(row)

        config_cache.invalidate()
        logger.info(f"Embedding config saved: provider={provider}, model={row.model}, dims={row.dimensions}")
        return row

    def llm_config_view(self, db: Session) -> Dict[str, Any]:
        """Effective LLM config with the API key masked"""
        resolved = resolve_llm_config(db)
        row = get_active_llm_row(db)
        stored_key = decode_api_key(row.api_key_encoded) if row is not None else ""

        return {
            "provider": resolved.provider,
            "base_url": resolved.base_url,
            "default_model": resolved.default_model,
            "task_models": resolved.task_models,
            "api_key_masked": mask_api_key(stored_key),
            "has_api_key": bool(resolved.api_key),
            "is_configured": row is not None,
            "is_builtin": resolved.provider == BUILTIN,
        }

    def embedding_config_view(self, db: Session) -> Dict[str, Any]:
        """Effective embedding config with the API key masked"""
        resolved = resolve_embedding_config(db)
        row = get_active_embedding_row(db)
        stored_key = decode_api_key(row.api_key_encoded) if row is not None else ""

        return {
            "provider": resolved.provider,
            "base_url": resolved.base_url,
            "model": resolved.model,
            "dimensions": resolved.dimensions,
            "api_key_masked": mask_api_key(stored_key),
            "has_api_key": bool(resolved.api_key),
            "is_configured": row is not None,
            "is_builtin": resolved.provider == BUILTIN,
        }


# Global config service instance
config_service = ConfigService()
