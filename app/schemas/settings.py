"""Provider settings schemas"""

from pydantic import BaseModel
from typing import Optional, Dict


class LlmConfigUpdate(BaseModel):
    """LLM provider update; an omitted api_key keeps the stored one"""
    provider: str
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    default_model: Optional[str] = None
    task_models: Optional[Dict[str, str]] = None


class EmbeddingConfigUpdate(BaseModel):
    """Embedding provider update"""
    provider: str
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    model: Optional[str] = None
    dimensions: Optional[int] = None


class LlmConfigView(BaseModel):
    provider: str
    base_url: str
    default_model: str
    task_models: Dict[str, str]
    api_key_masked: str
    has_api_key: bool
    is_configured: bool
    is_builtin: bool


class EmbeddingConfigView(BaseModel):
    provider: str
    base_url: str
    model: str
    dimensions: int
    api_key_masked: str
    has_api_key: bool
    is_configured: bool
    is_builtin: bool
