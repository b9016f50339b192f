"""Schema-validated decoding of structured LLM output"""

from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

T = TypeVar("T", bound=BaseModel)

RAW_PREVIEW_CHARS = 500


@dataclass
class Ok(Generic[T]):
    """Output decoded and validated against the expected model"""
    value: T


@dataclass
class SchemaError:
    """Output was empty, not JSON, or did not match the expected model"""
    raw: Optional[str]
    reason: str

    def __str__(self) -> str:
        return f"LLM output did not match schema: {self.reason}"


DecodeResult = Union[Ok[T], SchemaError]


def response_schema_for(model: Type[BaseModel], name: Optional[str] = None, strict: bool = True) -> Dict[str, Any]:
    """JSON schema descriptor for a pydantic model, ready for ``response_format``"""
    return {
        "name": name or model.__name__,
        "schema": model.model_json_schema(),
        "strict": strict,
    }


def _strip_code_fence(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def decode_structured(raw: Optional[str], model: Type[T]) -> DecodeResult:
    """
    Decode raw completion text into ``model``

    Returns:
        ``Ok`` with the validated instance, or ``SchemaError`` carrying a
        truncated copy of the raw text
    """
    if raw is None or not str(raw).strip():
        return SchemaError(raw=raw, reason="empty response")

    preview = str(raw)[:RAW_PREVIEW_CHARS]
    try:
        value = model.model_validate_json(_strip_code_fence(str(raw)))
    except ValidationError as e:
        return SchemaError(raw=preview, reason=f"{e.error_count()} validation error(s): {e.errors()[0]['msg']}")

    return Ok(value)
