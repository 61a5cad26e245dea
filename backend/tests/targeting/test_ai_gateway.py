"""
Tests for the AI gateway.

Providers are faked with httpx.MockTransport, so no network is touched.
"""

import json
import pytest
import httpx
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "app"))

from targeting.brain.ai_gateway import AIGateway, AIProvider, AIRequest
from targeting.config import GatewayConfig
from targeting.errors import AIUnavailableError
from targeting.knowledge.ttl_cache import TTLCache


ANSWER = {"css_selector": "h1.product__title", "confidence": 0.9}


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def make_gateway(provider, handler, api_key="test-key", cache=None):
    """Gateway whose HTTP client is served by `handler`"""
    seen = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(record))
    gateway = AIGateway(
        config=GatewayConfig(provider=provider, api_key=api_key),
        cache=cache,
        client=client
    )
    return gateway, seen


def anthropic_reply(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={
        "content": [{"type": "text", "text": json.dumps(ANSWER)}],
        "usage": {"input_tokens": 100, "output_tokens": 20},
    })


class TestProviders:
    """Each provider's request and response shape."""

    @pytest.mark.asyncio
    async def test_anthropic(self):
        gateway, seen = make_gateway("anthropic", anthropic_reply)

        data = await gateway.complete("Find the title")

        assert data == ANSWER
        assert seen[0].url == "https://api.anthropic.com/v1/messages"
        assert seen[0].headers["x-api-key"] == "test-key"
        body = json.loads(seen[0].content)
        assert body["model"] == "claude-sonnet-4-20250514"
        assert body["messages"][0]["content"] == "Find the title"
        assert gateway.total_tokens == 120

    @pytest.mark.asyncio
    async def test_openai(self):
        def reply(request):
            return httpx.Response(200, json={
                "choices": [{"message": {"content": json.dumps(ANSWER)}}],
                "usage": {"total_tokens": 42},
            })

        gateway, seen = make_gateway("openai", reply)

        data = await gateway.complete("Find the title")

        assert data == ANSWER
        assert seen[0].headers["authorization"] == "Bearer test-key"
        assert json.loads(seen[0].content)["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_gemini(self):
        def reply(request):
            return httpx.Response(200, json={
                "candidates": [{"content": {"parts": [{"text": json.dumps(ANSWER)}]}}],
                "usageMetadata": {"totalTokenCount": 7},
            })

        gateway, seen = make_gateway("gemini", reply)

        data = await gateway.complete("Find the title")

        assert data == ANSWER
        assert seen[0].url.params["key"] == "test-key"
        assert "gemini-2.0-flash:generateContent" in seen[0].url.path
        assert json.loads(seen[0].content)["generationConfig"]["responseMimeType"] == "application/json"

    @pytest.mark.asyncio
    async def test_ollama_needs_no_key(self):
        def reply(request):
            return httpx.Response(200, json={
                "response": json.dumps(ANSWER),
                "prompt_eval_count": 30,
                "eval_count": 12,
            })

        gateway, seen = make_gateway("ollama", reply, api_key=None)

        data = await gateway.complete("Find the title")

        assert data == ANSWER
        assert str(seen[0].url) == "http://localhost:11434/api/generate"
        assert json.loads(seen[0].content)["format"] == "json"
        assert gateway.total_tokens == 42

    @pytest.mark.asyncio
    async def test_schema_appended_to_prompt(self):
        gateway, seen = make_gateway("anthropic", anthropic_reply)

        await gateway.complete("Find the title", {"anyOf": [{"type": "object"}]})

        prompt = json.loads(seen[0].content)["messages"][0]["content"]
        assert prompt.startswith("Find the title")
        assert '"anyOf"' in prompt


class TestFailures:
    """complete() raises AIUnavailableError, request() never raises."""

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        gateway, _ = make_gateway("anthropic", lambda request: httpx.Response(500, text="oops"))

        with pytest.raises(AIUnavailableError):
            await gateway.complete("Find the title")

        assert gateway.failures == 1

    @pytest.mark.asyncio
    async def test_missing_key(self):
        gateway, seen = make_gateway("openai", anthropic_reply, api_key=None)

        response = await gateway.request(AIRequest(request_type="element_find", prompt="x"))

        assert response.success is False
        assert "API key" in response.error
        assert seen == []

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        gateway, _ = make_gateway("anthropic", refuse)

        response = await gateway.request(AIRequest(request_type="element_find", prompt="x"))

        assert response.success is False
        assert "ConnectError" in response.error

    @pytest.mark.asyncio
    async def test_unexpected_shape(self):
        gateway, _ = make_gateway("openai", lambda request: httpx.Response(200, json={"choices": []}))

        response = await gateway.request(AIRequest(request_type="element_find", prompt="x"))

        assert response.success is False
        assert "Unexpected response shape" in response.error

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["I could not find it", "[1, 2, 3]"])
    async def test_non_object_answer(self, text):
        def reply(request):
            return httpx.Response(200, json={"content": [{"type": "text", "text": text}], "usage": {}})

        gateway, _ = make_gateway("anthropic", reply)

        with pytest.raises(AIUnavailableError):
            await gateway.complete("Find the title")


class TestCaching:
    """Successful completions are cached until they expire."""

    @pytest.mark.asyncio
    async def test_cache_hit(self):
        gateway, seen = make_gateway("anthropic", anthropic_reply)

        await gateway.complete("Find the title")
        await gateway.complete("Find the title")

        assert len(seen) == 1
        stats = gateway.get_stats()
        assert stats["total_requests"] == 2
        assert stats["cache_hits"] == 1
        assert stats["api_calls"] == 1

    @pytest.mark.asyncio
    async def test_cache_expires(self):
        clock = FakeClock()
        cache = TTLCache(ttl_seconds=60, clock=clock)
        gateway, seen = make_gateway("anthropic", anthropic_reply, cache=cache)

        await gateway.complete("Find the title")
        clock.now = 61
        await gateway.complete("Find the title")

        assert len(seen) == 2

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self):
        gateway, seen = make_gateway("anthropic", lambda request: httpx.Response(503))

        for _ in range(2):
            with pytest.raises(AIUnavailableError):
                await gateway.complete("Find the title")

        assert len(seen) == 2
        assert len(gateway.cache) == 0

    @pytest.mark.asyncio
    async def test_clear_cache(self):
        gateway, seen = make_gateway("anthropic", anthropic_reply)

        await gateway.complete("Find the title")
        gateway.clear_cache()
        await gateway.complete("Find the title")

        assert len(seen) == 2

    def test_cache_key_depends_on_prompt(self):
        gateway = AIGateway(config=GatewayConfig(provider="ollama"))

        first = gateway.get_cache_key(AIRequest(request_type="element_find", prompt="a"))
        second = gateway.get_cache_key(AIRequest(request_type="element_find", prompt="b"))

        assert first != second
        assert gateway.provider == AIProvider.OLLAMA
