"""Hook extraction: primary pass, fallback pass, defensive parsing.

Outcome mapping
---------------

- at least one valid hook (from either pass) -> ``hooks_found``
- a pass ran to completion with zero hooks    -> ``no_hooks_available``
- the last pass failed to call or to parse    -> ``extraction_failed``

The fallback pass runs when the primary pass produced no hooks or when the
documents carried too little highlighted text to ground the primary pass.
If the fallback comes back empty, primary hooks (if any) are kept.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import ValidationError

from hookscout.config import Settings, get_settings
from hookscout.fetcher import FetchedDocument
from hookscout.json_extract import extract_json
from hookscout.llm import LLMClient
from hookscout.models import FallbackMode
from hookscout.prompts import build_fallback_prompt, build_primary_prompt
from hookscout.schemas import Hook
from hookscout.utils import contains_needle

log = logging.getLogger(__name__)

SUMMARY_MAX_DOCS = 6
NORMAL_EXCERPT_CHARS = 300
FALLBACK_EXCERPT_CHARS = 2200

REASON_HOOKS_ZERO = "hooks_zero"
REASON_HIGHLIGHTS_THIN = "highlights_thin"


@dataclass
class FallbackDecision:
    use_fallback: bool
    reason: str | None
    highlights_chars: int


@dataclass
class ExtractionResult:
    hooks: list[Hook] = field(default_factory=list)
    fallback_mode: FallbackMode = FallbackMode.no_hooks_available
    used_fallback: bool = False
    fallback_reason: str | None = None
    highlights_chars: int = 0

    def hooks_wire(self) -> list[dict[str, Any]]:
        return [h.to_wire() for h in self.hooks]


@dataclass
class _PassOutcome:
    hooks: list[Hook]
    failed: bool
    error: str | None = None


# ---------------------------------------------------------------------------
# Content summary
# ---------------------------------------------------------------------------


def build_content_summary(docs: list[FetchedDocument], mode: Literal["normal", "fallback"] = "normal") -> str:
    """Render up to six documents as numbered sources.

    ``normal`` prefers joined highlights and keeps 300 chars per document;
    ``fallback`` uses raw text and keeps 2200.
    """
    blocks = []
    for i, doc in enumerate(docs[:SUMMARY_MAX_DOCS], 1):
        if mode == "fallback":
            excerpt = doc.text[:FALLBACK_EXCERPT_CHARS]
        elif doc.highlights:
            excerpt = "\n".join(doc.highlights[:3])[:NORMAL_EXCERPT_CHARS]
        else:
            excerpt = doc.text[:NORMAL_EXCERPT_CHARS]
        blocks.append(f"Source {i}: {doc.title}\nURL: {doc.url}\n{excerpt}")
    return "\n\n---\n\n".join(blocks)


def total_highlights_chars(docs: list[FetchedDocument]) -> int:
    return sum(len(" ".join(d.highlights)) for d in docs if d.highlights)


def should_use_fallback(docs: list[FetchedDocument], hooks_count: int, min_highlights_chars: int = 600) -> FallbackDecision:
    chars = total_highlights_chars(docs)
    if hooks_count == 0:
        return FallbackDecision(True, REASON_HOOKS_ZERO, chars)
    if chars < min_highlights_chars:
        return FallbackDecision(True, REASON_HIGHLIGHTS_THIN, chars)
    return FallbackDecision(False, None, chars)


# ---------------------------------------------------------------------------
# Parsing & validation
# ---------------------------------------------------------------------------


def validate_hooks(raw_hooks: Any, max_hooks: int = 3) -> list[Hook]:
    """Keep the hook objects that satisfy the schema, cap, and number them."""
    if not isinstance(raw_hooks, list):
        return []
    hooks: list[Hook] = []
    for item in raw_hooks:
        if not isinstance(item, dict):
            continue
        try:
            hooks.append(Hook.model_validate(item))
        except ValidationError as exc:
            log.debug("Dropping invalid hook %r: %s", str(item.get("title", ""))[:60], exc.error_count())
        if len(hooks) >= max_hooks:
            break

    for n, hook in enumerate(hooks, 1):
        hook.id = f"hook_{n}"
    return hooks


def parse_hooks_response(text: str, truncated: bool = False, max_hooks: int = 3) -> list[Hook] | None:
    """Hooks from raw model output, or ``None`` when no ``hooks`` object is recoverable."""
    parsed = extract_json(text, root="object", repair_key="hooks", truncated=truncated)
    if not isinstance(parsed, dict) or not isinstance(parsed.get("hooks"), list):
        return None
    return validate_hooks(parsed["hooks"], max_hooks)


def _attributed(hook: Hook, name: str, company: str) -> bool:
    needles = [name, company]
    parts = name.split()
    if len(parts) > 1 and len(parts[-1]) > 2:
        needles.append(parts[-1])
    return any(contains_needle(q.quote, n) for q in hook.evidence_quotes for n in needles)


def filter_attributed(hooks: list[Hook], name: str, company: str) -> list[Hook]:
    """Drop hooks whose evidence quotes mention neither the recipient nor the company."""
    kept = [h for h in hooks if _attributed(h, name, company)]
    if len(kept) < len(hooks):
        log.info("Attribution filter removed %d of %d hook(s)", len(hooks) - len(kept), len(hooks))
    return kept


# ---------------------------------------------------------------------------
# Passes
# ---------------------------------------------------------------------------


async def _run_pass(llm: LLMClient, prompt: str, label: str, settings: Settings, name: str, company: str) -> _PassOutcome:
    try:
        response = await llm.generate(
            prompt,
            temperature=0.3,
            max_output_tokens=settings.extraction_max_output_tokens,
            disable_thinking=True,
        )
    except Exception as exc:
        log.warning("%s extraction call failed: %s", label, exc)
        return _PassOutcome(hooks=[], failed=True, error=str(exc))

    if response.truncated:
        log.warning("%s extraction hit the output token limit (%d chars)", label, len(response.text))
    hooks = parse_hooks_response(response.text, truncated=response.truncated, max_hooks=settings.max_hooks)
    if hooks is None:
        log.warning("%s extraction returned no parseable hooks object (%d chars)", label, len(response.text))
        return _PassOutcome(hooks=[], failed=True, error="unparseable response")
    if settings.strict_attribution:
        hooks = filter_attributed(hooks, name, company)
    log.info("%s extraction produced %d hook(s)", label, len(hooks))
    return _PassOutcome(hooks=hooks, failed=False)


async def extract_hooks(
    llm: LLMClient,
    docs: list[FetchedDocument],
    name: str,
    company: str,
    sender_intent: str | None = None,
    settings: Settings | None = None,
) -> ExtractionResult:
    settings = settings or get_settings()
    if not docs:
        return ExtractionResult(fallback_mode=FallbackMode.no_hooks_available)

    primary = await _run_pass(
        llm,
        build_primary_prompt(name, company, sender_intent, build_content_summary(docs, "normal"), settings.max_hooks),
        "Primary", settings, name, company,
    )
    decision = should_use_fallback(docs, len(primary.hooks), settings.min_highlights_chars)
    if not decision.use_fallback:
        return ExtractionResult(
            hooks=primary.hooks,
            fallback_mode=FallbackMode.hooks_found,
            highlights_chars=decision.highlights_chars,
        )

    log.info("Running fallback extraction for %s (reason=%s, highlights=%d chars)",
             name, decision.reason, decision.highlights_chars)
    fallback = await _run_pass(
        llm,
        build_fallback_prompt(name, company, sender_intent, build_content_summary(docs, "fallback"), settings.max_hooks),
        "Fallback", settings, name, company,
    )

    if fallback.hooks:
        hooks, mode = fallback.hooks, FallbackMode.hooks_found
    elif primary.hooks:
        hooks, mode = primary.hooks, FallbackMode.hooks_found
    elif fallback.failed:
        hooks, mode = [], FallbackMode.extraction_failed
    else:
        hooks, mode = [], FallbackMode.no_hooks_available

    return ExtractionResult(
        hooks=hooks,
        fallback_mode=mode,
        used_fallback=True,
        fallback_reason=decision.reason,
        highlights_chars=decision.highlights_chars,
    )
