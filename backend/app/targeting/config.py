"""
Targeting configuration.

Values come from environment variables. A `.env` file in the backend folder
is loaded first so local development works without exporting anything.
"""

import os
import pathlib
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Load .env from backend folder (parent of app)
env_path = pathlib.Path(__file__).parent.parent.parent / '.env'
load_dotenv(env_path)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


@dataclass
class ResolverConfig:
    """Configuration for hypothesis resolution"""
    document_max_chars: int = 500_000
    prompt_max_chars: int = 30_000
    ai_timeout_seconds: float = 20.0
    max_alternatives: int = 5
    enable_ai: bool = True
    # Keyword guesses know less about the intended element than AI or text matches
    keyword_confidence_factor: float = 0.75

    @classmethod
    def from_env(cls) -> "ResolverConfig":
        return cls(
            document_max_chars=_env_int("TARGETING_DOCUMENT_MAX_CHARS", cls.document_max_chars),
            prompt_max_chars=_env_int("TARGETING_PROMPT_MAX_CHARS", cls.prompt_max_chars),
            ai_timeout_seconds=_env_float("TARGETING_AI_TIMEOUT", cls.ai_timeout_seconds),
            max_alternatives=_env_int("TARGETING_MAX_ALTERNATIVES", cls.max_alternatives),
            enable_ai=_env_bool("TARGETING_ENABLE_AI", cls.enable_ai),
            keyword_confidence_factor=_env_float("TARGETING_KEYWORD_CONFIDENCE", cls.keyword_confidence_factor),
        )


DEFAULT_MODELS = {
    "anthropic": "claude-sonnet-4-20250514",
    "openai": "gpt-4o-mini",
    "gemini": "gemini-2.0-flash",
    "ollama": "llama3.1",
}

API_KEY_VARS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


@dataclass
class GatewayConfig:
    """Configuration for the AI completion gateway"""
    provider: str = "anthropic"
    model: Optional[str] = None
    api_key: Optional[str] = None
    ollama_url: str = "http://localhost:11434"
    request_timeout_seconds: float = 30.0
    cache_ttl_seconds: float = 3600.0
    cache_max_entries: int = 1000
    max_tokens: int = 1024

    def __post_init__(self):
        self.provider = self.provider.lower()
        if not self.model:
            self.model = DEFAULT_MODELS.get(self.provider, "")

    @classmethod
    def from_env(cls) -> "GatewayConfig":
        provider = os.getenv("TARGETING_AI_PROVIDER", "anthropic").lower()
        key_var = API_KEY_VARS.get(provider)
        return cls(
            provider=provider,
            model=os.getenv("TARGETING_AI_MODEL") or None,
            api_key=os.getenv(key_var) if key_var else None,
            ollama_url=os.getenv("OLLAMA_URL", "http://localhost:11434"),
            request_timeout_seconds=_env_float("TARGETING_AI_REQUEST_TIMEOUT", 30.0),
            cache_ttl_seconds=_env_float("TARGETING_AI_CACHE_TTL", 3600.0),
            cache_max_entries=_env_int("TARGETING_AI_CACHE_SIZE", 1000),
            max_tokens=_env_int("TARGETING_AI_MAX_TOKENS", 1024),
        )
