from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from hookscout.config import Settings, get_settings
from hookscout.llm import LLMClient
from hookscout.models import SourceType
from hookscout.search import SearchClient, SearchProviderError
from hookscout.utils import contains_needle

log = logging.getLogger(__name__)

HIGHLIGHT_SENTENCES = 3
HIGHLIGHTS_PER_URL = 3

HIGHLIGHTS_QUERY_PROMPT = """\
You are extracting a SHORT topical search phrase for semantic retrieval.

Your output will be used as a query to highlight relevant passages from \
long-form documents. It must represent the CORE TOPIC of the input, not the \
action being taken.

RULES:
- Output 3-7 words
- Focus on the underlying subject or theme
- Remove outreach or intent language (invite, want, reach out, ask, hope)
- Remove logistics or context-setting details (events, locations, timing, institutions)
- Do NOT add new ideas or infer facts
- Do NOT include names of people
- Prefer nouns or noun phrases

INPUT:
{intent}

OUTPUT:
<topic phrase only>
"""


@dataclass
class FetchedDocument:
    url: str
    title: str
    text: str
    highlights: list[str] = field(default_factory=list)
    source_type: str = SourceType.industry_generic.value


@dataclass
class FetchResult:
    docs: list[FetchedDocument] = field(default_factory=list)
    fetched_count: int = 0
    thin_count: int = 0
    filtered_out_count: int = 0
    highlights_query: str | None = None


def classify_source_type(title: str, text: str, name: str, company: str) -> SourceType:
    """Person if the name appears, else company if the company appears, else generic."""
    haystack = f"{title or ''} {text or ''}"
    if contains_needle(haystack, name):
        return SourceType.person_specific
    if contains_needle(haystack, company):
        return SourceType.company_specific
    return SourceType.industry_generic


def _clean_phrase(raw: str) -> str:
    line = next((ln for ln in raw.splitlines() if ln.strip()), "")
    return line.strip().strip("\"'`*").strip()


async def build_highlights_query(llm: LLMClient | None, sender_intent: str | None) -> str | None:
    """Compress the intent to a 3-7 word topic phrase; the raw intent on failure."""
    intent = (sender_intent or "").strip()
    if not intent:
        return None
    if llm is None:
        return intent
    try:
        response = await llm.generate(
            HIGHLIGHTS_QUERY_PROMPT.format(intent=intent),
            temperature=0.1, max_output_tokens=50, disable_thinking=True,
        )
    except Exception as exc:
        log.warning("Highlights query generation failed, using raw intent: %s", exc)
        return intent
    phrase = _clean_phrase(response.text)
    if not phrase:
        log.warning("Highlights query came back empty, using raw intent")
        return intent
    log.debug("Highlights query %r -> %r", intent[:80], phrase)
    return phrase


async def fetch_content(
    search: SearchClient,
    llm: LLMClient | None,
    urls: Iterable[str],
    name: str,
    company: str,
    sender_intent: str | None = None,
    settings: Settings | None = None,
) -> FetchResult:
    """Fetch text and highlights for *urls* in one batch, drop thin and generic docs."""
    settings = settings or get_settings()
    ids = [u for u in urls if u]
    if not ids:
        return FetchResult()

    highlights_query = await build_highlights_query(llm, sender_intent)
    highlights = None
    if highlights_query:
        highlights = {
            "query": highlights_query,
            "numSentences": HIGHLIGHT_SENTENCES,
            "highlightsPerUrl": HIGHLIGHTS_PER_URL,
        }

    try:
        results = await search.fetch_contents(
            ids, max_characters=settings.fetch_max_characters, highlights=highlights,
        )
    except SearchProviderError as exc:
        log.warning("Content fetch failed for %d URL(s): %s", len(ids), exc)
        return FetchResult(highlights_query=highlights_query)

    substantial = [r for r in results if r.text and len(r.text) > settings.min_document_chars]
    docs: list[FetchedDocument] = []
    for r in substantial:
        source_type = classify_source_type(r.title, r.text, name, company)
        if source_type is SourceType.industry_generic:
            log.debug("Filtered generic document %s", r.url)
            continue
        docs.append(FetchedDocument(
            url=r.url,
            title=r.title,
            text=r.text,
            highlights=r.highlights[:HIGHLIGHTS_PER_URL],
            source_type=source_type.value,
        ))

    filtered_out = len(substantial) - len(docs)
    log.info(
        "Fetched %d document(s) for %s: %d substantial, %d generic filtered, %d kept",
        len(results), name, len(substantial), filtered_out, len(docs),
    )
    return FetchResult(
        docs=docs,
        fetched_count=len(results),
        thin_count=len(results) - len(substantial),
        filtered_out_count=filtered_out,
        highlights_query=highlights_query,
    )
