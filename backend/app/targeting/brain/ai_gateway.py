"""
AI Gateway
==========

Thin adapter between the resolver and whichever LLM provider is configured.
- Speaks to Anthropic, OpenAI, Gemini or a local Ollama over httpx
- Caches successful completions in a TTLCache
- Tracks request statistics

The resolver only needs `complete(prompt, output_schema)`; `request()` is
the non-raising form used underneath.
"""

import hashlib
import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from ..config import GatewayConfig
from ..errors import AIUnavailableError
from ..knowledge.ttl_cache import TTLCache
from .responses import extract_json

logger = logging.getLogger(__name__)

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
OPENAI_URL = "https://api.openai.com/v1/chat/completions"
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


class AIProvider(Enum):
    """Supported AI providers"""
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GEMINI = "gemini"
    OLLAMA = "ollama"


@dataclass
class AIRequest:
    """A request for AI assistance"""
    request_type: str  # element_find
    prompt: str
    context: Dict[str, Any] = field(default_factory=dict)
    max_tokens: int = 1024
    json_output: bool = True


@dataclass
class AIResponse:
    """Response from AI"""
    success: bool
    content: str
    tokens_used: int
    cached: bool = False
    latency_ms: int = 0
    error: Optional[str] = None


class AIGateway:
    """
    Gatekeeper for AI API calls.

    Responsibilities:
    - Route requests to the configured provider
    - Cache AI responses
    - Track usage metrics
    """

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        cache: Optional[TTLCache] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.config = config or GatewayConfig.from_env()
        self.provider = AIProvider(self.config.provider)
        self.cache = cache if cache is not None else TTLCache(
            ttl_seconds=self.config.cache_ttl_seconds,
            max_entries=self.config.cache_max_entries
        )
        self._client = client

        # Statistics
        self.total_requests = 0
        self.cache_hits = 0
        self.api_calls = 0
        self.failures = 0
        self.total_tokens = 0

    def get_cache_key(self, request: AIRequest) -> str:
        """Generate cache key for a request"""
        data = (
            f"{self.provider.value}|{self.config.model}|{request.request_type}|"
            f"{request.prompt}|{json.dumps(request.context, sort_keys=True, default=str)}"
        )
        return hashlib.md5(data.encode()).hexdigest()

    async def request(self, request: AIRequest) -> AIResponse:
        """
        Make an AI request with caching.

        Never raises; failures come back with success=False and an error.
        """
        self.total_requests += 1
        start_time = time.time()

        key = self.get_cache_key(request)
        cached = self.cache.get(key)
        if cached is not None:
            self.cache_hits += 1
            logger.debug(f"[AI-GATE] Cache hit for {request.request_type}")
            return AIResponse(success=True, content=cached, tokens_used=0, cached=True)

        try:
            response = await self._call_ai(request)
        except httpx.HTTPError as e:
            response = AIResponse(success=False, content="", tokens_used=0, error=f"{type(e).__name__}: {e}")
        except (KeyError, IndexError, TypeError, ValueError) as e:
            response = AIResponse(success=False, content="", tokens_used=0, error=f"Unexpected response shape: {e}")

        response.latency_ms = int((time.time() - start_time) * 1000)

        if not response.success:
            self.failures += 1
            logger.warning(f"[AI-GATE] {self.provider.value} call failed: {response.error}")
            return response

        self.api_calls += 1
        self.total_tokens += response.tokens_used
        self.cache.set(key, response.content)
        logger.info(
            f"[AI-GATE] {self.provider.value} answered {request.request_type} "
            f"in {response.latency_ms}ms ({response.tokens_used} tokens)"
        )
        return response

    async def complete(self, prompt: str, output_schema: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Ask for a structured completion.

        Raises:
            AIUnavailableError: the provider failed or did not answer with JSON
        """
        if output_schema:
            prompt = f"{prompt}\nJSON schema of the answer:\n{json.dumps(output_schema)}"
        response = await self.request(AIRequest(
            request_type="element_find",
            prompt=prompt,
            max_tokens=self.config.max_tokens
        ))
        if not response.success:
            raise AIUnavailableError(response.error or "AI request failed")
        try:
            data = extract_json(response.content)
        except ValueError as e:
            raise AIUnavailableError(str(e)) from e
        if not isinstance(data, dict):
            raise AIUnavailableError(f"Expected a JSON object, got {type(data).__name__}")
        return data

    # ==================== Providers ====================

    async def _post(self, url: str, **kwargs) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, timeout=self.config.request_timeout_seconds, **kwargs)
        async with httpx.AsyncClient(timeout=self.config.request_timeout_seconds) as client:
            return await client.post(url, **kwargs)

    async def _call_ai(self, request: AIRequest) -> AIResponse:
        """Make actual API call to AI provider"""
        if self.provider == AIProvider.ANTHROPIC:
            return await self._call_anthropic(request)
        elif self.provider == AIProvider.OPENAI:
            return await self._call_openai(request)
        elif self.provider == AIProvider.GEMINI:
            return await self._call_gemini(request)
        return await self._call_ollama(request)

    def _missing_key(self) -> Optional[AIResponse]:
        if self.config.api_key:
            return None
        return AIResponse(
            success=False,
            content="",
            tokens_used=0,
            error=f"API key for {self.provider.value} not set"
        )

    async def _call_anthropic(self, request: AIRequest) -> AIResponse:
        """Call Anthropic Claude API"""
        missing = self._missing_key()
        if missing:
            return missing

        response = await self._post(
            ANTHROPIC_URL,
            headers={
                "x-api-key": self.config.api_key,
                "anthropic-version": "2023-06-01",
                "content-type": "application/json"
            },
            json={
                "model": self.config.model,
                "max_tokens": request.max_tokens,
                "messages": [{"role": "user", "content": request.prompt}]
            }
        )
        if response.status_code != 200:
            return AIResponse(success=False, content="", tokens_used=0, error=f"API error: {response.status_code}")

        data = response.json()
        content = "".join(block.get("text", "") for block in data["content"] if block.get("type") == "text")
        usage = data.get("usage", {})
        return AIResponse(
            success=True,
            content=content,
            tokens_used=usage.get("input_tokens", 0) + usage.get("output_tokens", 0)
        )

    async def _call_openai(self, request: AIRequest) -> AIResponse:
        """Call OpenAI API"""
        missing = self._missing_key()
        if missing:
            return missing

        payload = {
            "model": self.config.model,
            "messages": [{"role": "user", "content": request.prompt}],
            "max_tokens": request.max_tokens
        }
        if request.json_output:
            payload["response_format"] = {"type": "json_object"}

        response = await self._post(
            OPENAI_URL,
            headers={
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": "application/json"
            },
            json=payload
        )
        if response.status_code != 200:
            return AIResponse(success=False, content="", tokens_used=0, error=f"API error: {response.status_code}")

        data = response.json()
        return AIResponse(
            success=True,
            content=data["choices"][0]["message"]["content"] or "",
            tokens_used=data.get("usage", {}).get("total_tokens", 0)
        )

    async def _call_gemini(self, request: AIRequest) -> AIResponse:
        """Call Google Gemini API"""
        missing = self._missing_key()
        if missing:
            return missing

        generation_config: Dict[str, Any] = {"maxOutputTokens": request.max_tokens}
        if request.json_output:
            generation_config["responseMimeType"] = "application/json"

        response = await self._post(
            GEMINI_URL.format(model=self.config.model),
            params={"key": self.config.api_key},
            json={
                "contents": [{"parts": [{"text": request.prompt}]}],
                "generationConfig": generation_config
            }
        )
        if response.status_code != 200:
            return AIResponse(success=False, content="", tokens_used=0, error=f"API error: {response.status_code}")

        data = response.json()
        parts = data["candidates"][0]["content"]["parts"]
        return AIResponse(
            success=True,
            content="".join(part.get("text", "") for part in parts),
            tokens_used=data.get("usageMetadata", {}).get("totalTokenCount", 0)
        )

    async def _call_ollama(self, request: AIRequest) -> AIResponse:
        """Call Ollama local API"""
        payload: Dict[str, Any] = {
            "model": self.config.model,
            "prompt": request.prompt,
            "stream": False
        }
        if request.json_output:
            payload["format"] = "json"

        response = await self._post(f"{self.config.ollama_url.rstrip('/')}/api/generate", json=payload)
        if response.status_code != 200:
            return AIResponse(success=False, content="", tokens_used=0, error=f"Ollama error: {response.status_code}")

        data = response.json()
        content = data.get("response", "")
        # Ollama reports eval counts rather than token usage
        tokens = data.get("prompt_eval_count", 0) + data.get("eval_count", 0)
        return AIResponse(success=True, content=content, tokens_used=tokens)

    # ==================== Management ====================

    def get_stats(self) -> Dict[str, Any]:
        """Get gateway statistics"""
        return {
            "provider": self.provider.value,
            "model": self.config.model,
            "total_requests": self.total_requests,
            "cache_hits": self.cache_hits,
            "cache_hit_rate": (self.cache_hits / max(1, self.total_requests)) * 100,
            "api_calls": self.api_calls,
            "failures": self.failures,
            "total_tokens": self.total_tokens,
            "cache": self.cache.get_stats()
        }

    def clear_cache(self):
        """Clear all cached responses"""
        self.cache.clear()
        logger.info("[AI-GATE] Cache cleared")
