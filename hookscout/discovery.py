"""Content discovery: find, score and rank candidate URLs about a recipient.

Two strategies share the same ranking tail (score, dedup, drift/bio guard,
sort, top-K):

- ``autoprompt`` (default): one broad natural-language search plus the five
  hypothesis searches.
- ``multi_angle``: four angle-specific autoprompt searches (voice, authored,
  teaching, social) built from a normalized intent, followed by an angle
  diversity pass.

Every individual search is isolated: a failed call contributes no results
and never aborts the gather.
"""
from __future__ import annotations

import asyncio
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from hookscout.config import Settings, get_settings
from hookscout.heuristics import (
    DEFAULT_WEIGHTS,
    ScoringWeights,
    deduplicate_by_url,
    ensure_angle_diversity,
    is_likely_off_topic,
    looks_like_profile_or_directory,
    score_candidate,
)
from hookscout.json_extract import extract_json
from hookscout.llm import LLMClient
from hookscout.search import SearchClient, SearchResult

log = logging.getLogger(__name__)

INCLUDE_DOMAINS = ["linkedin.com", "medium.com", "substack.com", "youtube.com"]
EXCLUDE_DOMAINS = ["wikipedia.org", "crunchbase.com"]
MULTI_ANGLE_EXCLUDE_DOMAINS = EXCLUDE_DOMAINS + [
    "*.edu/people",
    "*.edu/faculty",
    "*.edu/staff",
    "*.edu/leadership",
    "*.edu/team",
]

AUTOPROMPT_RESULTS = 20
HYPOTHESIS_RESULTS = 6
ANGLE_RESULTS = 8

OFF_TOPIC_PENALTY = 6.0
BIO_PENALTY = 2.0
DROP_REASON = "bio/directory + off-topic"

INTENT_MAX_CHARS = 280
INTENT_MAX_WORDS = 60


@dataclass
class DiscoveryCandidate:
    url: str
    title: str
    provenance: str
    score: float = 0.0
    drop_reason: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return {"url": self.url, "title": self.title, "provenance": self.provenance}


@dataclass
class DiscoveryResult:
    urls: list[DiscoveryCandidate] = field(default_factory=list)
    debug: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Topic terms
# ---------------------------------------------------------------------------

TOPICS_PROMPT = """\
Extract 3-5 key topics from this intent, including synonyms and adjacent concepts.

Intent: "{intent}"

Return VALID JSON ONLY (no markdown, no explanation):
["topic1", "topic2", "topic3", ...]

Examples:
- "cold email writing tool for students" -> ["email writing", "professional communication", \
"outreach strategies", "business correspondence", "student career skills"]
- "AI scheduling assistant" -> ["calendar management", "meeting scheduling", \
"productivity tools", "time optimization", "workflow automation"]

Return the JSON array now:
"""


def naive_topics(text: str | None) -> list[str]:
    """Whitespace-split words longer than three characters."""
    return [w for w in (text or "").lower().split() if len(w) > 3]


async def extract_key_topics(llm: LLMClient | None, sender_intent: str | None) -> list[str]:
    """3-5 topic terms for the intent; naive tokenization when the model fails."""
    intent = (sender_intent or "").strip()
    if not intent:
        return []
    if llm is None:
        return naive_topics(intent)
    try:
        response = await llm.generate(
            TOPICS_PROMPT.format(intent=intent), temperature=0.2, max_output_tokens=256, disable_thinking=True,
        )
    except Exception as exc:
        log.warning("Topic extraction failed, falling back to tokens: %s", exc)
        return naive_topics(intent)

    topics = extract_json(response.text, root="array")
    if isinstance(topics, list):
        cleaned = [t.strip() for t in topics if isinstance(t, str) and t.strip()]
        if cleaned:
            return cleaned[:5]
    log.warning("Topic extraction returned no usable array, falling back to tokens")
    return naive_topics(intent)


# ---------------------------------------------------------------------------
# Scatter / gather
# ---------------------------------------------------------------------------


async def _search_all(
    search: SearchClient,
    jobs: list[tuple[str, str, dict[str, Any]]],
) -> list[DiscoveryCandidate]:
    """Run ``(provenance, query, options)`` searches concurrently.

    Failed calls are logged and contribute nothing.  Results keep the order
    of *jobs*, then provider rank.
    """
    outcomes = await asyncio.gather(
        *(search.search(query, **options) for _, query, options in jobs),
        return_exceptions=True,
    )
    candidates: list[DiscoveryCandidate] = []
    for (provenance, query, _), outcome in zip(jobs, outcomes):
        if isinstance(outcome, BaseException):
            log.warning("%s search failed for %r: %s", provenance, query[:80], outcome)
            continue
        log.debug("%s search %r returned %d result(s)", provenance, query[:80], len(outcome))
        for r in outcome:
            if isinstance(r, SearchResult) and r.url:
                candidates.append(DiscoveryCandidate(url=r.url, title=r.title or "", provenance=provenance))
    return candidates


def _rank(
    candidates: list[DiscoveryCandidate],
    topic_terms: list[str],
    weights: ScoringWeights,
) -> tuple[list[DiscoveryCandidate], list[DiscoveryCandidate]]:
    """Score, dedup, apply the drift/bio guard.  Returns (kept, dropped), unsorted."""
    for c in candidates:
        c.score = score_candidate(c.url, c.title, topic_terms, c.provenance, weights)
    deduped = deduplicate_by_url(candidates)

    kept: list[DiscoveryCandidate] = []
    dropped: list[DiscoveryCandidate] = []
    for c in deduped:
        off_topic = is_likely_off_topic(c.title, topic_terms)
        bio_like = looks_like_profile_or_directory(c.url)
        if off_topic and bio_like:
            c.drop_reason = DROP_REASON
            dropped.append(c)
            continue
        if off_topic:
            c.score -= OFF_TOPIC_PENALTY
        if bio_like:
            c.score -= BIO_PENALTY
        kept.append(c)
    for c in dropped:
        log.debug("Dropped %s (%s)", c.url, c.drop_reason)
    return kept, dropped


def _debug(topics: Any, top: list[DiscoveryCandidate], dropped: list[DiscoveryCandidate]) -> dict[str, Any]:
    return {
        "topics": topics,
        "dropped": [{"url": c.url, "reason": c.drop_reason} for c in dropped],
        "top_scores": [{"url": c.url, "score": c.score, "provenance": c.provenance} for c in top[:10]],
        "provenance_distribution": dict(Counter(c.provenance for c in top)),
    }


# ---------------------------------------------------------------------------
# Strategy: autoprompt + hypotheses
# ---------------------------------------------------------------------------


def build_broad_query(name: str, company: str, role: str | None, topics: list[str]) -> str:
    context = name
    if role:
        context += f" is {role}"
    if company:
        context += f" at {company}"
    return f"""\
Find content where {name} shares expertise, advice, or work related to:
{", ".join(topics) if topics else company}

Prefer:
- first-person writing (posts, essays, newsletters)
- interviews, talks, podcasts, transcripts
- concrete artifacts (examples, frameworks, rules, lessons)

Avoid:
- generic biography/profile/directory pages
- pages that repeat titles/roles without substantive content

Context (may help disambiguation): {context}.""".strip()


async def discover_content(
    search: SearchClient,
    llm: LLMClient | None,
    name: str,
    company: str,
    role: str | None,
    sender_intent: str | None,
    hypotheses: list[str],
    settings: Settings | None = None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> DiscoveryResult:
    """Broad autoprompt search plus hypothesis searches, ranked and trimmed to top-K."""
    settings = settings or get_settings()
    if (sender_intent or "").strip():
        topics = await extract_key_topics(llm, sender_intent)
    else:
        topics = naive_topics(f"{role or ''} {company}")

    jobs: list[tuple[str, str, dict[str, Any]]] = [(
        "autoprompt",
        build_broad_query(name, company, role, topics),
        {
            "num_results": AUTOPROMPT_RESULTS,
            "type": "neural",
            "use_autoprompt": True,
            "include_domains": INCLUDE_DOMAINS,
            "exclude_domains": EXCLUDE_DOMAINS,
        },
    )]
    for h in hypotheses:
        jobs.append(("hypothesis", h, {
            "num_results": HYPOTHESIS_RESULTS,
            "type": "neural",
            "exclude_domains": EXCLUDE_DOMAINS,
        }))

    candidates = await _search_all(search, jobs)
    kept, dropped = _rank(candidates, topics, weights)
    kept.sort(key=lambda c: c.score, reverse=True)
    top = kept[:settings.max_discovered_urls]
    log.info(
        "Discovery for %s: %d candidate(s), %d kept, %d dropped, returning %d",
        name, len(candidates), len(kept), len(dropped), len(top),
    )
    return DiscoveryResult(urls=top, debug=_debug(topics, top, dropped))


# ---------------------------------------------------------------------------
# Strategy: multi-angle
# ---------------------------------------------------------------------------

NORMALIZE_INTENT_PROMPT = """\
Compress this outreach intent to 20-35 words, keeping only the core topic.

Rules:
- Focus on WHAT (topic/product) not HOW (outreach logistics)
- Remove: "reach out", "ask", "chat", "invite", "feedback", "advice", scheduling terms
- Keep: product/tool names, domain expertise, specific topics
- Extract key entities separately

Input: "{intent}"

Return VALID JSON ONLY:
{{
  "compressed": "20-35 word compressed version",
  "entities": ["entity1", "entity2", ...]
}}
"""

_NOISE_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (
    r"reach out to", r"get in touch", r"connect with", r"ask (?:for|about)",
    r"quick chat", r"coffee chat", r"15 minutes?", r"30 minutes?",
    r"feedback on", r"advice on", r"thoughts on", r"willing to",
    r"would you", r"could you", r"I'?m building", r"we'?re building",
    r"before (?:we|I) launch",
)]

_CAPITALIZED_RE = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\b")
_ENTITY_STOPWORDS = {"The", "A", "An", "I", "My", "We", "Our"}
_DOMAIN_TERM_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (
    r"\b(?:AI|ML|SaaS|API|CRM|ERP|fintech|edtech|healthtech)\b",
    r"\b(?:tool|platform|software|app|product|service)\b",
    r"\b(?:MBA|PhD|undergraduate|graduate|student|professor|lecturer)\b",
    r"\b(?:email|writing|communication|outreach|marketing|sales)\b",
)]


@dataclass
class NormalizedIntent:
    compressed: str
    entities: list[str] = field(default_factory=list)

    def topic_terms(self) -> list[str]:
        return [self.compressed, *self.entities]


def extract_entities(text: str) -> list[str]:
    """Capitalized phrases plus known domain terms, at most 8, first-seen order."""
    entities: dict[str, None] = {}
    for m in _CAPITALIZED_RE.findall(text or ""):
        if len(m) > 2 and m not in _ENTITY_STOPWORDS:
            entities.setdefault(m)
    for pattern in _DOMAIN_TERM_PATTERNS:
        for m in pattern.findall(text or ""):
            entities.setdefault(m.lower())
    return list(entities)[:8]


def normalize_intent_heuristic(sender_intent: str) -> NormalizedIntent:
    text = sender_intent
    for pattern in _NOISE_PATTERNS:
        text = pattern.sub("", text)
    first_sentence = re.split(r"[.!?]", text)[0]
    return NormalizedIntent(compressed=first_sentence[:200].strip(), entities=extract_entities(sender_intent))


async def normalize_intent(llm: LLMClient | None, sender_intent: str | None) -> NormalizedIntent:
    """Compress long intents to a searchable core topic plus entities."""
    intent = (sender_intent or "").strip()
    if len(intent) <= INTENT_MAX_CHARS and len(intent.split()) <= INTENT_MAX_WORDS:
        return NormalizedIntent(compressed=intent, entities=extract_entities(intent))

    if llm is not None:
        try:
            response = await llm.generate(
                NORMALIZE_INTENT_PROMPT.format(intent=intent),
                temperature=0.1, max_output_tokens=256, disable_thinking=True,
            )
            parsed = extract_json(response.text, root="object")
            if (
                isinstance(parsed, dict)
                and isinstance(parsed.get("compressed"), str) and parsed["compressed"].strip()
                and isinstance(parsed.get("entities"), list)
            ):
                return NormalizedIntent(
                    compressed=parsed["compressed"].strip(),
                    entities=[str(e) for e in parsed["entities"] if str(e).strip()][:8],
                )
            log.warning("Intent compression returned unusable JSON, using heuristic")
        except Exception as exc:
            log.warning("Intent compression failed, using heuristic: %s", exc)
    return normalize_intent_heuristic(intent)


ANGLES: tuple[str, ...] = ("voice", "authored", "teaching", "social")

_ANGLE_TEMPLATES = {
    "voice": "Find interviews, podcasts, talks, or Q&A sessions where {who} shares advice or insights "
             "about {topic}{hint}. Prefer direct quotes and transcripts.",
    "authored": "Find articles, essays, blog posts, or newsletters written by {who} about {topic}{hint}. "
                "Prefer first-person writing.",
    "teaching": "Find courses, workshops, lectures, or teaching materials where {who} teaches about "
                "{topic}{hint}. Prefer syllabi and course content.",
    "social": "Find LinkedIn posts, tweets, or professional updates from {who} about {topic}{hint}. "
              "Prefer recent short-form advice.",
}


def build_angle_queries(name: str, company: str, role: str | None, intent: NormalizedIntent) -> list[tuple[str, str]]:
    if role and company:
        who = f"{name} ({role} at {company})"
    elif company:
        who = f"{name} at {company}"
    else:
        who = name
    hint = f", particularly related to {', '.join(intent.entities[:3])}" if intent.entities else ""
    topic = intent.compressed or company or "their work"
    return [(angle, _ANGLE_TEMPLATES[angle].format(who=who, topic=topic, hint=hint)) for angle in ANGLES]


async def discover_content_multi_angle(
    search: SearchClient,
    llm: LLMClient | None,
    name: str,
    company: str,
    role: str | None,
    sender_intent: str | None,
    hypotheses: list[str] | None = None,
    settings: Settings | None = None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> DiscoveryResult:
    """Four angle searches, ranked, with at least two URLs per angle when available.

    *hypotheses* is accepted for signature parity with :func:`discover_content`
    and ignored.
    """
    settings = settings or get_settings()
    if (sender_intent or "").strip():
        intent = await normalize_intent(llm, sender_intent)
    else:
        intent = NormalizedIntent(compressed="", entities=naive_topics(f"{role or ''} {company}"))

    jobs = [
        (angle, query, {
            "num_results": ANGLE_RESULTS,
            "type": "neural",
            "use_autoprompt": True,
            "exclude_domains": MULTI_ANGLE_EXCLUDE_DOMAINS,
        })
        for angle, query in build_angle_queries(name, company, role, intent)
    ]
    candidates = await _search_all(search, jobs)
    kept, dropped = _rank(candidates, intent.topic_terms(), weights)
    top = ensure_angle_diversity(kept, min_per_angle=2)[:settings.max_discovered_urls]
    log.info(
        "Multi-angle discovery for %s: %d candidate(s), %d dropped, returning %d",
        name, len(candidates), len(dropped), len(top),
    )
    debug = _debug({"compressed": intent.compressed, "entities": intent.entities}, top, dropped)
    return DiscoveryResult(urls=top, debug=debug)


STRATEGIES = {
    "autoprompt": discover_content,
    "multi_angle": discover_content_multi_angle,
}


def get_strategy(name: str | None):
    strategy = STRATEGIES.get((name or "autoprompt").strip().lower())
    if strategy is None:
        log.warning("Unknown discovery strategy %r, using autoprompt", name)
        return discover_content
    return strategy
