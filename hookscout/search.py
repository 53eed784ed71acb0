"""Thin async client for the Exa search and contents endpoints."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

log = logging.getLogger(__name__)

EXA_API = "https://api.exa.ai"
_USER_AGENT = "HookScout/1.0"


class SearchProviderError(Exception):
    """Search provider call failed (transport, non-2xx, or malformed body)."""
    def __init__(self, message: str, retryable: bool = False, status_code: int | None = None):
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


@dataclass
class SearchResult:
    url: str
    title: str = ""
    text: str = ""
    highlights: list[str] = field(default_factory=list)
    id: str = ""

    @classmethod
    def from_payload(cls, item: dict[str, Any]) -> SearchResult:
        highlights = item.get("highlights") or []
        return cls(
            url=str(item.get("url") or ""),
            title=str(item.get("title") or ""),
            text=str(item.get("text") or ""),
            highlights=[str(h) for h in highlights if isinstance(h, str) and h.strip()],
            id=str(item.get("id") or item.get("url") or ""),
        )


class SearchClient:
    """Exa client.  Every method raises :class:`SearchProviderError` on failure."""

    def __init__(
        self,
        api_key: str,
        base_url: str = EXA_API,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings) -> SearchClient:
        return cls(
            api_key=settings.exa_api_key,
            base_url=settings.exa_base_url or EXA_API,
            timeout=settings.http_timeout_seconds,
        )

    async def _post(self, path: str, body: dict[str, Any]) -> list[dict[str, Any]]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "User-Agent": _USER_AGENT,
        }
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                headers=headers,
                transport=self._transport,
            ) as client:
                resp = await client.post(f"{self._base_url}{path}", json=body)
        except httpx.HTTPError as exc:
            raise SearchProviderError(f"Exa request to {path} failed: {exc}", retryable=True) from exc

        if resp.status_code >= 400:
            raise SearchProviderError(
                f"Exa {path} returned HTTP {resp.status_code}",
                retryable=resp.status_code == 429 or resp.status_code >= 500,
                status_code=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise SearchProviderError(f"Exa {path} returned a non-JSON body") from exc
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise SearchProviderError(f"Exa {path} response has no results list")
        return [r for r in results if isinstance(r, dict)]

    async def search(
        self,
        query: str,
        *,
        num_results: int = 10,
        type: str = "neural",
        use_autoprompt: bool | None = None,
        include_domains: list[str] | None = None,
        exclude_domains: list[str] | None = None,
        contents: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        body: dict[str, Any] = {"query": query, "numResults": num_results, "type": type}
        if use_autoprompt is not None:
            body["useAutoprompt"] = use_autoprompt
        if include_domains:
            body["includeDomains"] = include_domains
        if exclude_domains:
            body["excludeDomains"] = exclude_domains
        if contents:
            body["contents"] = contents
        results = await self._post("/search", body)
        log.debug("Exa search %r -> %d result(s)", query[:80], len(results))
        return [SearchResult.from_payload(r) for r in results]

    async def fetch_contents(
        self,
        ids: list[str],
        *,
        max_characters: int = 5000,
        highlights: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        body: dict[str, Any] = {
            "ids": ids,
            "text": {"maxCharacters": max_characters, "includeHtmlTags": False},
        }
        if highlights:
            body["highlights"] = highlights
        results = await self._post("/contents", body)
        log.debug("Exa contents for %d id(s) -> %d result(s)", len(ids), len(results))
        return [SearchResult.from_payload(r) for r in results]
