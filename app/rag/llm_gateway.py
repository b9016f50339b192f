"""Unified LLM gateway over OpenAI-compatible providers"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Type
import json
import logging
import re
import time

import httpx
import openai
from openai import OpenAI
from pydantic import BaseModel

from app.config import settings
from app.exceptions import LLMConfigurationError, LLMServiceError
from app.rag.config import rag_config
from app.rag.providers import LLMServiceConfig
from app.rag.structured import DecodeResult, decode_structured, response_schema_for

logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    UNAUTHORIZED = "unauthorized"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    MODEL_NOT_FOUND = "model_not_found"
    GENERIC = "generic"


# Only these are worth another attempt
TRANSIENT_CATEGORIES = frozenset({
    ErrorCategory.TIMEOUT,
    ErrorCategory.RATE_LIMITED,
    ErrorCategory.UPSTREAM_UNAVAILABLE,
})

ERROR_MESSAGES = {
    ErrorCategory.TIMEOUT: (
        "The LLM service timed out. Please try again later; if the problem persists, "
        "check the provider settings."
    ),
    ErrorCategory.RATE_LIMITED: (
        "The LLM service is receiving too many requests. Please wait a few seconds and try again."
    ),
    ErrorCategory.UNAUTHORIZED: (
        "The API key is invalid or has expired. Please check the LLM configuration in Settings."
    ),
    ErrorCategory.INSUFFICIENT_BALANCE: (
        "The provider account has insufficient balance. Please top up your provider account."
    ),
    ErrorCategory.UPSTREAM_UNAVAILABLE: (
        "The LLM service is temporarily unavailable and still failed after automatic retries. "
        "Please try again later."
    ),
    ErrorCategory.MODEL_NOT_FOUND: (
        "The configured model does not exist. Please check the model name in Settings."
    ),
}

GENERIC_MAX_CHARS = 200
GENERIC_TRUNCATE_TO = 150

_STATUS_5XX = re.compile(r"\b5\d\d\b")


@dataclass
class LLMResult:
    """Normalized chat completion"""
    content: Optional[str]
    model: str
    provider: str
    finish_reason: Optional[str] = None
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)
    prompt_tokens: int = 0
    completion_tokens: int = 0


def _classify_message(raw: str) -> ErrorCategory:
    lower = raw.lower()
    if "timeout" in lower or "timed out" in lower or "etimedout" in lower or "econnreset" in lower:
        return ErrorCategory.TIMEOUT
    if "insufficient" in lower or "payment" in lower or "402" in lower:
        return ErrorCategory.INSUFFICIENT_BALANCE
    if "429" in lower or "rate limit" in lower:
        return ErrorCategory.RATE_LIMITED
    if "401" in lower or "unauthorized" in lower or "invalid_api_key" in lower:
        return ErrorCategory.UNAUTHORIZED
    if _STATUS_5XX.search(lower) or "unavailable" in lower:
        return ErrorCategory.UPSTREAM_UNAVAILABLE
    if "model" in lower and ("not found" in lower or "does not exist" in lower):
        return ErrorCategory.MODEL_NOT_FOUND
    return ErrorCategory.GENERIC


def classify_error(error: Exception) -> ErrorCategory:
    """Map a provider/transport error to a user-facing category"""
    # APITimeoutError subclasses APIConnectionError, check it first
    if isinstance(error, (openai.APITimeoutError, httpx.TimeoutException)):
        return ErrorCategory.TIMEOUT
    if isinstance(error, (openai.APIConnectionError, httpx.TransportError)):
        return ErrorCategory.UPSTREAM_UNAVAILABLE

    if isinstance(error, openai.APIStatusError):
        status = error.status_code
        message = str(error).lower()
        if status == 402 or "insufficient" in message:
            return ErrorCategory.INSUFFICIENT_BALANCE
        if status == 429:
            return ErrorCategory.RATE_LIMITED
        if status in (401, 403):
            return ErrorCategory.UNAUTHORIZED
        if status == 408:
            return ErrorCategory.TIMEOUT
        if status >= 500:
            return ErrorCategory.UPSTREAM_UNAVAILABLE
        if status == 404 or ("model" in message and "not found" in message):
            return ErrorCategory.MODEL_NOT_FOUND
        return _classify_message(message)

    return _classify_message(str(error))


def user_message(category: ErrorCategory, error: Exception) -> str:
    """Provider-agnostic failure text for a category"""
    if category in ERROR_MESSAGES:
        return ERROR_MESSAGES[category]

    raw = str(error) or error.__class__.__name__
    if len(raw) > GENERIC_MAX_CHARS:
        return f"LLM call failed: {raw[:GENERIC_TRUNCATE_TO]}..."
    return f"LLM call failed: {raw}"


def _compact(message: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in message.items() if v is not None}


def normalize_message(message: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize a chat message for OpenAI-compatible APIs

    A single text part collapses to a plain string, multi-part content stays
    a list of typed parts, and tool/function messages are flattened to text.
    """
    role = message.get("role")
    content = message.get("content")
    if content is None:
        content = ""
    parts = content if isinstance(content, list) else [content]

    if role in ("tool", "function"):
        text = "\n".join(
            part if isinstance(part, str) else json.dumps(part, ensure_ascii=False)
            for part in parts
        )
        return _compact({
            "role": role,
            "name": message.get("name"),
            "tool_call_id": message.get("tool_call_id"),
            "content": text,
        })

    normalized = [{"type": "text", "text": part} if isinstance(part, str) else part for part in parts]

    if len(normalized) == 1 and normalized[0].get("type") == "text":
        body = normalized[0].get("text", "")
    else:
        body = normalized

    return _compact({
        "role": role,
        "name": message.get("name"),
        "content": body,
        "tool_calls": message.get("tool_calls"),
    })


def normalize_response_format(
    response_format: Optional[Dict[str, Any]] = None,
    response_schema: Optional[Dict[str, Any]] = None
) -> Optional[Dict[str, Any]]:
    """Explicit response_format wins; otherwise wrap a JSON schema descriptor"""
    if response_format:
        return response_format
    if not response_schema:
        return None

    json_schema = {
        "name": response_schema["name"],
        "schema": response_schema["schema"],
    }
    if isinstance(response_schema.get("strict"), bool):
        json_schema["strict"] = response_schema["strict"]

    return {"type": "json_schema", "json_schema": json_schema}


class LLMGateway:
    """Single entry point for every LLM call in the pipeline"""

    def __init__(
        self,
        config: LLMServiceConfig,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        timeout: Optional[float] = None,
        max_tokens: Optional[int] = None,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.config = config
        self.max_retries = rag_config.max_retries if max_retries is None else max_retries
        self.retry_delay = rag_config.retry_delay if retry_delay is None else retry_delay
        self.timeout = timeout or rag_config.timeout
        self.max_tokens = max_tokens or rag_config.max_tokens
        self._http_client = http_client
        self._sleep = sleep
        self._client: Optional[OpenAI] = None

    def _default_headers(self) -> Dict[str, str]:
        if self.config.provider == "openrouter":
            return {
                "HTTP-Referer": settings.APP_URL,
                "X-Title": settings.APP_NAME,
            }
        return {}

    @property
    def client(self) -> OpenAI:
        """OpenAI-compatible client for the configured provider (created on first use)"""
        if self._client is None:
            kwargs = {
                "api_key": self.config.api_key,
                "base_url": self.config.base_url.rstrip("/") or None,
                "timeout": self.timeout,
                "max_retries": 0,  # retries are classified here, not in the SDK
                "default_headers": self._default_headers(),
            }
            if self._http_client is not None:
                kwargs["http_client"] = self._http_client
            self._client = OpenAI(**kwargs)
        return self._client

    def build_payload(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        response_schema: Optional[Dict[str, Any]] = None,
        response_format: Optional[Dict[str, Any]] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Optional[Any] = None,
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """Request body for ``/chat/completions``"""
        payload: Dict[str, Any] = {
            "model": model,
            "messages": [normalize_message(m) for m in messages],
            "max_tokens": max_tokens or self.max_tokens,
        }
        if tools:
            payload["tools"] = tools
        if tool_choice:
            payload["tool_choice"] = tool_choice

        fmt = normalize_response_format(response_format, response_schema)
        if fmt:
            payload["response_format"] = fmt

        return payload

    def _ensure_usable(self) -> None:
        if self.config.is_external and not self.config.api_key:
            raise LLMConfigurationError(
                f'API key not configured for provider "{self.config.provider}". '
                f"Please configure it in Settings > LLM Configuration."
            )
        if self.config.is_external and not self.config.base_url:
            raise LLMConfigurationError(
                f'Base URL not configured for provider "{self.config.provider}". '
                f"Please configure it in Settings > LLM Configuration."
            )

    def _to_result(self, response: Any) -> LLMResult:
        choice = response.choices[0] if response.choices else None
        message = choice.message if choice else None
        usage = response.usage

        tool_calls = []
        if message is not None and message.tool_calls:
            tool_calls = [call.model_dump() for call in message.tool_calls]

        return LLMResult(
            content=message.content if message is not None else None,
            model=response.model,
            provider=self.config.provider,
            finish_reason=choice.finish_reason if choice else None,
            tool_calls=tool_calls,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
        )

    def call_llm(
        self,
        messages: List[Dict[str, Any]],
        task_type: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        response_format: Optional[Dict[str, Any]] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Optional[Any] = None,
        max_tokens: Optional[int] = None
    ) -> LLMResult:
        """
        Call the configured provider with classified retries

        Args:
            messages: Chat messages (``role``/``content`` dicts)
            task_type: Pipeline stage used for per-task model routing
            response_schema: ``{name, schema, strict}`` JSON schema descriptor
            response_format: Raw ``response_format`` (overrides response_schema)
            tools: Tool definitions
            tool_choice: Tool choice directive
            max_tokens: Completion token cap (default: from config)

        Returns:
            LLMResult

        Raises:
            LLMConfigurationError: External provider without API key (no attempt made)
            LLMServiceError: Permanent failure, or transient failure after all retries
        """
        self._ensure_usable()

        model = self.config.model_for_task(task_type)
        payload = self.build_payload(
            messages,
            model,
            response_schema=response_schema,
            response_format=response_format,
            tools=tools,
            tool_choice=tool_choice,
            max_tokens=max_tokens
        )

        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                response = self.client.chat.completions.create(**payload)
                result = self._to_result(response)
                logger.info(
                    f"[LLM] {self.config.provider}/{model} task={task_type or '-'} "
                    f"tokens={result.prompt_tokens}+{result.completion_tokens}"
                )
                return result

            except Exception as e:
                category = classify_error(e)

                if category not in TRANSIENT_CATEGORIES or attempt == attempts:
                    logger.error(
                        f"[LLM] {self.config.provider}/{model} failed after {attempt} attempt(s) "
                        f"({category.value}): {str(e)[:200]}"
                    )
                    raise LLMServiceError(category.value, user_message(category, e), attempts=attempt) from e

                logger.warning(
                    f"[LLM] Attempt {attempt} failed ({category.value}), retrying in "
                    f"{self.retry_delay}s... Error: {str(e)[:100]}"
                )
                self._sleep(self.retry_delay)

    def call_structured(
        self,
        messages: List[Dict[str, Any]],
        output_model: Type[BaseModel],
        task_type: Optional[str] = None,
        schema_name: Optional[str] = None,
        max_tokens: Optional[int] = None
    ) -> DecodeResult:
        """
        Call the LLM with a strict JSON schema and decode the answer

        Returns:
            ``Ok(model instance)`` or ``SchemaError`` for malformed output;
            call failures still raise as in ``call_llm``
        """
        result = self.call_llm(
            messages,
            task_type=task_type,
            response_schema=response_schema_for(output_model, name=schema_name),
            max_tokens=max_tokens
        )
        return decode_structured(result.content, output_model)
