"""Test the LLM gateway against a mocked OpenAI-compatible endpoint"""

import json

import httpx
import pytest

from app.config import settings
from app.exceptions import LLMConfigurationError, LLMServiceError
from app.rag.llm_gateway import (
    ErrorCategory,
    LLMGateway,
    classify_error,
    normalize_message,
    user_message,
)
from app.rag.providers import LLMServiceConfig
from app.rag.structured import Ok, SchemaError
from app.schemas.llm import ExploreSynthesis

BASE_URL = "https://llm.test/v1"


def completion(content, model="gpt-test"):
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 1700000000,
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 11, "completion_tokens": 7, "total_tokens": 18},
    }


class FakeProvider:
    """Records requests and replays a scripted list of responses"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def calls(self):
        return len(self.requests)

    def body(self, index=0):
        return json.loads(self.requests[index].content)


def make_gateway(provider, config=None, max_retries=2):
    config = config or LLMServiceConfig(
        provider="openai",
        base_url=BASE_URL,
        api_key="sk-test",
        default_model="gpt-test",
        task_models={"chunk_merge": "gpt-merge"},
    )
    return LLMGateway(
        config,
        max_retries=max_retries,
        retry_delay=0,
        http_client=httpx.Client(transport=httpx.MockTransport(provider)),
        sleep=lambda seconds: None,
    )


def error_response(status, message="error", code=None):
    return httpx.Response(status, json={"error": {"message": message, "type": "api_error", "code": code}})


class TestCallLLM:
    def test_success_returns_normalized_result(self):
        provider = FakeProvider(httpx.Response(200, json=completion("Hello")))
        gateway = make_gateway(provider)

        result = gateway.call_llm([{"role": "user", "content": "Hi"}])

        assert result.content == "Hello"
        assert result.provider == "openai"
        assert result.prompt_tokens == 11
        assert result.completion_tokens == 7
        assert provider.calls == 1
        assert provider.requests[0].url.path.endswith("/chat/completions")

    def test_task_model_override_and_schema(self):
        provider = FakeProvider(httpx.Response(200, json=completion("{}")))
        gateway = make_gateway(provider)

        gateway.call_llm(
            [{"role": "user", "content": "Hi"}],
            task_type="chunk_merge",
            response_schema={"name": "grouping", "schema": {"type": "object"}, "strict": True},
            max_tokens=256,
        )

        body = provider.body()
        assert body["model"] == "gpt-merge"
        assert body["max_tokens"] == 256
        assert body["response_format"] == {
            "type": "json_schema",
            "json_schema": {"name": "grouping", "schema": {"type": "object"}, "strict": True},
        }

    def test_unknown_task_uses_default_model(self):
        provider = FakeProvider(httpx.Response(200, json=completion("ok")))
        gateway = make_gateway(provider)

        gateway.call_llm([{"role": "user", "content": "Hi"}], task_type="summarize")

        assert provider.body()["model"] == "gpt-test"

    def test_openrouter_attribution_headers(self):
        provider = FakeProvider(httpx.Response(200, json=completion("ok")))
        config = LLMServiceConfig(
            provider="openrouter",
            base_url=BASE_URL,
            api_key="sk-or",
            default_model="some/model",
        )
        gateway = make_gateway(provider, config=config)

        gateway.call_llm([{"role": "user", "content": "Hi"}])

        headers = provider.requests[0].headers
        assert headers["X-Title"] == settings.APP_NAME
        assert headers["HTTP-Referer"] == settings.APP_URL

    def test_invalid_key_is_not_retried(self):
        provider = FakeProvider(error_response(401, "Incorrect API key provided", "invalid_api_key"))
        gateway = make_gateway(provider)

        with pytest.raises(LLMServiceError) as exc_info:
            gateway.call_llm([{"role": "user", "content": "Hi"}])

        assert provider.calls == 1
        assert exc_info.value.category == "unauthorized"
        assert exc_info.value.attempts == 1
        assert "Incorrect API key" not in str(exc_info.value)

    def test_server_error_is_retried_then_fails(self):
        provider = FakeProvider(error_response(503, "Service Unavailable"))
        gateway = make_gateway(provider)

        with pytest.raises(LLMServiceError) as exc_info:
            gateway.call_llm([{"role": "user", "content": "Hi"}])

        assert provider.calls == 3
        assert exc_info.value.category == "upstream_unavailable"
        assert exc_info.value.attempts == 3

    def test_rate_limit_recovers_on_retry(self):
        provider = FakeProvider(
            error_response(429, "Rate limit reached"),
            httpx.Response(200, json=completion("recovered")),
        )
        gateway = make_gateway(provider)

        result = gateway.call_llm([{"role": "user", "content": "Hi"}])

        assert result.content == "recovered"
        assert provider.calls == 2

    def test_timeout_is_retried(self):
        provider = FakeProvider(httpx.ReadTimeout("timed out"))
        gateway = make_gateway(provider, max_retries=1)

        with pytest.raises(LLMServiceError) as exc_info:
            gateway.call_llm([{"role": "user", "content": "Hi"}])

        assert provider.calls == 2
        assert exc_info.value.category == "timeout"

    @pytest.mark.parametrize("status,message,category", [
        (402, "Insufficient balance", "insufficient_balance"),
        (404, "The model `nope` does not exist", "model_not_found"),
        (400, "Bad request payload", "generic"),
    ])
    def test_permanent_errors_make_one_attempt(self, status, message, category):
        provider = FakeProvider(error_response(status, message))
        gateway = make_gateway(provider)

        with pytest.raises(LLMServiceError) as exc_info:
            gateway.call_llm([{"role": "user", "content": "Hi"}])

        assert provider.calls == 1
        assert exc_info.value.category == category

    def test_external_provider_without_key_makes_no_request(self):
        provider = FakeProvider(httpx.Response(200, json=completion("never")))
        config = LLMServiceConfig(provider="openai", base_url=BASE_URL, api_key="", default_model="gpt-test")
        gateway = make_gateway(provider, config=config)

        with pytest.raises(LLMConfigurationError):
            gateway.call_llm([{"role": "user", "content": "Hi"}])

        assert provider.calls == 0


class TestCallStructured:
    def test_valid_output_is_ok(self):
        provider = FakeProvider(httpx.Response(200, json=completion('{"title": "T", "summary": "S"}')))
        gateway = make_gateway(provider)

        decoded = gateway.call_structured([{"role": "user", "content": "q"}], ExploreSynthesis, task_type="explore")

        assert isinstance(decoded, Ok)
        assert decoded.value == ExploreSynthesis(title="T", summary="S")
        assert provider.body()["response_format"]["json_schema"]["strict"] is True

    def test_fenced_output_is_accepted(self):
        raw = '```json\n{"title": "T", "summary": "S"}\n```'
        provider = FakeProvider(httpx.Response(200, json=completion(raw)))
        gateway = make_gateway(provider)

        decoded = gateway.call_structured([{"role": "user", "content": "q"}], ExploreSynthesis)

        assert isinstance(decoded, Ok)

    @pytest.mark.parametrize("raw", ["", "not json at all", '{"title": "T"}', '{"title": "T", "summary": "S", "x": 1}'])
    def test_invalid_output_is_schema_error(self, raw):
        provider = FakeProvider(httpx.Response(200, json=completion(raw)))
        gateway = make_gateway(provider)

        decoded = gateway.call_structured([{"role": "user", "content": "q"}], ExploreSynthesis)

        assert isinstance(decoded, SchemaError)
        assert str(decoded).startswith("LLM output did not match schema")


class TestNormalizeMessage:
    def test_single_text_part_collapses_to_string(self):
        message = {"role": "user", "content": [{"type": "text", "text": "hello"}]}

        assert normalize_message(message) == {"role": "user", "content": "hello"}

    def test_multiple_parts_stay_typed(self):
        image = {"type": "image_url", "image_url": {"url": "https://example.com/a.png"}}
        message = {"role": "user", "content": ["look", image]}

        assert normalize_message(message)["content"] == [{"type": "text", "text": "look"}, image]

    def test_tool_message_is_flattened(self):
        message = {"role": "tool", "tool_call_id": "call_1", "content": ["result", {"value": 1}]}

        normalized = normalize_message(message)

        assert normalized["content"] == 'result\n{"value": 1}'
        assert normalized["tool_call_id"] == "call_1"


class TestClassification:
    def test_message_heuristics(self):
        assert classify_error(RuntimeError("Request timed out")) == ErrorCategory.TIMEOUT
        assert classify_error(RuntimeError("HTTP 429 Too Many Requests")) == ErrorCategory.RATE_LIMITED
        assert classify_error(RuntimeError("502 Bad Gateway")) == ErrorCategory.UPSTREAM_UNAVAILABLE
        assert classify_error(RuntimeError("something odd")) == ErrorCategory.GENERIC

    def test_transport_errors(self):
        assert classify_error(httpx.ConnectTimeout("slow")) == ErrorCategory.TIMEOUT
        assert classify_error(httpx.ConnectError("refused")) == ErrorCategory.UPSTREAM_UNAVAILABLE

    def test_generic_message_is_truncated(self):
        message = user_message(ErrorCategory.GENERIC, RuntimeError("e" * 300))

        assert message.endswith("...")
        assert "e" * 150 in message
        assert "e" * 151 not in message

    def test_short_generic_message_is_kept(self):
        assert user_message(ErrorCategory.GENERIC, RuntimeError("boom")) == "LLM call failed: boom"
