"""Provider settings API endpoints"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from app.api.errors import to_http_exception
from app.database.session import get_db
from app.exceptions import CortexException
from app.schemas.settings import (
    EmbeddingConfigUpdate,
    EmbeddingConfigView,
    LlmConfigUpdate,
    LlmConfigView,
)
from app.services.config_service import config_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/settings/llm", response_model=LlmConfigView)
def get_llm_settings(db: Session = Depends(get_db)):
    """Effective LLM provider settings (API key masked)"""
    return config_service.llm_config_view(db)


@router.put("/settings/llm", response_model=LlmConfigView)
def update_llm_settings(
    update: LlmConfigUpdate,
    db: Session = Depends(get_db)
):
    """
    Replace the active LLM provider settings

    Takes effect for the next request; cached provider configs are dropped.
    """
    try:
        config_service.save_llm_config(
            db,
            provider=update.provider,
            base_url=update.base_url,
            api_key=update.api_key,
            default_model=update.default_model,
            task_models=update.task_models
        )
        return config_service.llm_config_view(db)
    except CortexException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error updating LLM settings: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update LLM settings")


@router.get("/settings/embedding", response_model=EmbeddingConfigView)
def get_embedding_settings(db: Session = Depends(get_db)):
    return config_service.embedding_config_view(db)


@router.put("/settings/embedding", response_model=EmbeddingConfigView)
def update_embedding_settings(
    update: EmbeddingConfigUpdate,
    db: Session = Depends(get_db)
):
    """Replace the active embedding provider settings"""
    try:
        config_service.save_embedding_config(
            db,
            provider=update.provider,
            base_url=update.base_url,
            api_key=update.api_key,
            model=update.model,
            dimensions=update.dimensions
        )
        return config_service.embedding_config_view(db)
    except CortexException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error updating embedding settings: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update embedding settings")
