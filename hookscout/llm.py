"""Language-model client used by every phase that asks a model for text.

One async ``generate`` call per prompt.  Responses are returned as a list of
text parts plus a finish reason normalized to ``STOP`` / ``MAX_TOKENS`` /
``OTHER`` so callers can tell a truncated answer from a complete one
without knowing which provider produced it.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any

import httpx

log = logging.getLogger(__name__)

GEMINI_API = "https://generativelanguage.googleapis.com/v1beta"

FINISH_STOP = "STOP"
FINISH_MAX_TOKENS = "MAX_TOKENS"
FINISH_OTHER = "OTHER"

_FINISH_MAP = {
    # anthropic stop_reason
    "end_turn": FINISH_STOP,
    "stop_sequence": FINISH_STOP,
    "max_tokens": FINISH_MAX_TOKENS,
    # openai finish_reason
    "stop": FINISH_STOP,
    "length": FINISH_MAX_TOKENS,
    # gemini finishReason
    "STOP": FINISH_STOP,
    "MAX_TOKENS": FINISH_MAX_TOKENS,
}

_DEFAULT_MODELS = {
    "anthropic": "claude-haiku-4-5-20251001",
    "openai": "gpt-4o-mini",
    "openai_compatible": "gpt-4o-mini",
    "gemini": "gemini-2.5-flash",
}


class LLMCallError(Exception):
    """LLM call failed or returned an unusable response."""
    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


def normalize_finish_reason(raw: str | None) -> str:
    if not raw:
        return FINISH_OTHER
    return _FINISH_MAP.get(raw, FINISH_OTHER)


@dataclass
class LLMResponse:
    """Ordered text parts of one completion plus its normalized finish reason."""
    parts: list[str] = field(default_factory=list)
    finish_reason: str = FINISH_STOP

    @property
    def text(self) -> str:
        return "".join(self.parts)

    @property
    def truncated(self) -> bool:
        return self.finish_reason == FINISH_MAX_TOKENS


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class LLMClient:
    """Unified async LLM client supporting Anthropic, OpenAI and Gemini."""

    def __init__(
        self,
        provider: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.provider = provider or os.environ.get("LLM_PROVIDER", "anthropic")
        self.model = model or os.environ.get("LLM_MODEL", "")
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport
        self._client: Any = None
        self._init_client()

    @classmethod
    def from_settings(cls, settings) -> LLMClient:
        base_url = settings.openai_base_url if settings.llm_provider.startswith("openai") else None
        return cls(
            provider=settings.llm_provider,
            model=settings.llm_model or None,
            api_key=settings.llm_api_key() or None,
            base_url=base_url or None,
            timeout=max(settings.http_timeout_seconds, 60.0),
        )

    def _init_client(self) -> None:
        if self.provider not in _DEFAULT_MODELS:
            raise ValueError(f"Unknown LLM provider: {self.provider!r}")
        self.model = self.model or _DEFAULT_MODELS[self.provider]
        if self.provider == "anthropic":
            import anthropic
            self._client = anthropic.AsyncAnthropic(
                api_key=self._api_key or os.environ.get("ANTHROPIC_API_KEY"),
                timeout=self._timeout,
            )
        elif self.provider in ("openai", "openai_compatible"):
            import openai
            kwargs: dict[str, Any] = {"timeout": self._timeout}
            key = self._api_key or os.environ.get("OPENAI_API_KEY")
            if key:
                kwargs["api_key"] = key
            url = self._base_url or os.environ.get("OPENAI_BASE_URL")
            if url:
                kwargs["base_url"] = url
            self._client = openai.AsyncOpenAI(**kwargs)
        else:
            self._api_key = self._api_key or os.environ.get("GEMINI_API_KEY", "")
            self._base_url = self._base_url or GEMINI_API

    async def generate(
        self,
        prompt: str,
        *,
        temperature: float = 0.3,
        max_output_tokens: int = 1024,
        disable_thinking: bool = False,
    ) -> LLMResponse:
        """Send a single-turn prompt; raise :class:`LLMCallError` on any API failure."""
        try:
            if self.provider == "anthropic":
                return await self._generate_anthropic(prompt, temperature, max_output_tokens)
            if self.provider in ("openai", "openai_compatible"):
                return await self._generate_openai(prompt, temperature, max_output_tokens)
            return await self._generate_gemini(prompt, temperature, max_output_tokens, disable_thinking)
        except LLMCallError:
            raise
        except Exception as exc:
            raise LLMCallError(f"LLM API call failed: {exc}", retryable=True) from exc

    async def _generate_anthropic(self, prompt: str, temperature: float, max_tokens: int) -> LLMResponse:
        response = await self._client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        parts = [block.text for block in response.content if getattr(block, "type", "text") == "text"]
        return LLMResponse(parts=parts, finish_reason=normalize_finish_reason(response.stop_reason))

    async def _generate_openai(self, prompt: str, temperature: float, max_tokens: int) -> LLMResponse:
        response = await self._client.chat.completions.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        if not response.choices:
            raise LLMCallError("LLM returned no choices", retryable=True)
        choice = response.choices[0]
        content = choice.message.content or ""
        return LLMResponse(parts=[content] if content else [],
                           finish_reason=normalize_finish_reason(choice.finish_reason))

    async def _generate_gemini(
        self, prompt: str, temperature: float, max_tokens: int, disable_thinking: bool,
    ) -> LLMResponse:
        generation_config: dict[str, Any] = {"temperature": temperature, "maxOutputTokens": max_tokens}
        if disable_thinking:
            generation_config["thinkingConfig"] = {"thinkingBudget": 0}
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        async with httpx.AsyncClient(timeout=httpx.Timeout(self._timeout), transport=self._transport) as client:
            resp = await client.post(
                f"{self._base_url}/models/{self.model}:generateContent",
                params={"key": self._api_key},
                json=body,
            )
        if resp.status_code >= 400:
            raise LLMCallError(
                f"Gemini API error {resp.status_code}: {resp.text[:200]}",
                retryable=resp.status_code in (429, 500, 502, 503, 504),
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise LLMCallError("Gemini returned a non-JSON body", retryable=True) from exc

        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not candidates:
            raise LLMCallError("Gemini returned no candidates", retryable=True)
        candidate = candidates[0] or {}
        raw_parts = (candidate.get("content") or {}).get("parts") or []
        parts = [p.get("text", "") for p in raw_parts if isinstance(p, dict) and p.get("text")]
        finish = normalize_finish_reason(candidate.get("finishReason"))
        log.debug("Gemini returned %d part(s), finishReason=%s", len(parts), finish)
        return LLMResponse(parts=parts, finish_reason=finish)
