from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path

from pydantic import BaseModel, Field

DATA_DIR = Path(__file__).parent / "data"

_KEY_VARS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "openai_compatible": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


class ConfigurationError(Exception):
    """Required credentials or provider settings are missing."""
    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


def _env_flag(name: str) -> bool:
    return _env(name).lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    exa_api_key: str = Field(default_factory=lambda: _env("EXA_API_KEY"))
    exa_base_url: str = Field(default_factory=lambda: _env("EXA_BASE_URL", "https://api.exa.ai"))

    llm_provider: str = Field(default_factory=lambda: _env("LLM_PROVIDER", "anthropic"))
    llm_model: str = Field(default_factory=lambda: _env("LLM_MODEL"))
    anthropic_api_key: str = Field(default_factory=lambda: _env("ANTHROPIC_API_KEY"))
    openai_api_key: str = Field(default_factory=lambda: _env("OPENAI_API_KEY"))
    openai_base_url: str = Field(default_factory=lambda: _env("OPENAI_BASE_URL"))
    gemini_api_key: str = Field(default_factory=lambda: _env("GEMINI_API_KEY"))

    database_path: Path = Field(
        default_factory=lambda: Path(_env("HOOKSCOUT_DB_PATH") or DATA_DIR / "hookscout.db")
    )
    http_timeout_seconds: float = Field(default_factory=lambda: _env_float("HOOKSCOUT_HTTP_TIMEOUT", 30.0))
    discovery_strategy: str = Field(default_factory=lambda: _env("HOOKSCOUT_DISCOVERY_STRATEGY", "autoprompt"))
    strict_attribution: bool = Field(default_factory=lambda: _env_flag("HOOKSCOUT_STRICT_ATTRIBUTION"))
    log_level: str = Field(default_factory=lambda: _env("HOOKSCOUT_LOG_LEVEL", "INFO").upper())

    # Pipeline thresholds
    max_discovered_urls: int = 25
    min_document_chars: int = 100
    fetch_max_characters: int = 5000
    min_highlights_chars: int = 600
    max_hooks: int = 3
    extraction_max_output_tokens: int = 8192

    def llm_api_key(self) -> str:
        if self.llm_provider == "anthropic":
            return self.anthropic_api_key
        if self.llm_provider in ("openai", "openai_compatible"):
            return self.openai_api_key
        if self.llm_provider == "gemini":
            return self.gemini_api_key
        return ""

    def require_credentials(self) -> None:
        """Raise :class:`ConfigurationError` unless both providers are usable."""
        missing = []
        if not self.exa_api_key:
            missing.append("EXA_API_KEY")
        if self.llm_provider not in _KEY_VARS:
            raise ConfigurationError(f"Unknown LLM provider: {self.llm_provider!r}")
        if not self.llm_api_key():
            missing.append(_KEY_VARS[self.llm_provider])
        if missing:
            raise ConfigurationError(f"Server configuration error: Missing API keys ({', '.join(missing)})")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
