"""Five targeted search queries, one per evidence type.

The LLM path is best-effort: anything it gets wrong (API error, prose
instead of JSON, missing slots, queries without the recipient's name) is
repaired slot-by-slot from deterministic templates, so callers always get
exactly five usable strings.
"""
from __future__ import annotations

import enum
import logging

from hookscout.json_extract import extract_json
from hookscout.llm import LLMClient

log = logging.getLogger(__name__)

HYPOTHESIS_COUNT = 5
DISAMBIGUATION_THRESHOLD = 0.8


class EvidenceType(str, enum.Enum):
    long_form_voice = "long_form_voice"
    short_form_voice = "short_form_voice"
    action = "action"
    presence = "presence"
    context = "context"


EVIDENCE_ORDER: tuple[EvidenceType, ...] = tuple(EvidenceType)

# Artifact keywords per slot; the first one is appended when a query lacks all of them.
ARTIFACT_KEYWORDS: dict[EvidenceType, tuple[str, ...]] = {
    EvidenceType.long_form_voice: ("interview", "podcast", "keynote", "talk", "episode", "fireside"),
    EvidenceType.short_form_voice: ("blog", "post", "essay", "newsletter", "article", "op-ed", "column"),
    EvidenceType.action: ("launch", "announcement", "initiative", "project", "program", "release"),
    EvidenceType.presence: ("speaking", "speaker", "panel", "conference", "session", "summit", "webinar"),
    EvidenceType.context: ("appointed", "joins", "new role", "promoted", "named", "transition", "profile"),
}

_TEMPLATES: dict[EvidenceType, str] = {
    EvidenceType.long_form_voice: "{name} {company} interview podcast keynote talk",
    EvidenceType.short_form_voice: "{name} {company} blog post essay newsletter",
    EvidenceType.action: "{name} {company} launch announcement initiative project",
    EvidenceType.presence: "{name} {company} speaking panel conference session",
    EvidenceType.context: "{name} {company} {role} appointed new role joins",
}

HYPOTHESIS_PROMPT = """\
You are generating search queries for Exa, a neural semantic search engine.

Exa works best when a query describes the KIND OF DOCUMENT to retrieve \
(ENTITY + DOCUMENT TYPE + THEME), not abstract topics, resume bullets or \
outreach language.

Recipient: {name}
Company: {company}
Role: {role}

Sender's intent:
{intent}

Sender's background (for relevance only):
{credibility}

Generate EXACTLY 5 queries, in this order, one per type of public signal:
1) LONG-FORM VOICE: an interview, podcast episode, keynote or talk featuring {name}.
2) SHORT-FORM VOICE: a post, essay, newsletter or article written by {name}.
3) ACTION: a launch, announcement, initiative or project {name} drove or fronted.
4) PRESENCE: a speaking slot, panel, conference session or webinar with {name}.
5) CONTEXT / INFLECTION: a news item or profile about a role change, appointment \
or career transition involving {name}.

CONSTRAINTS
- Every query MUST contain "{name}" and an explicit artifact word \
(interview, podcast, essay, launch, panel, appointed, ...).
- 6 to 14 words per query.
- No generic placeholders ("professional background", "career history").
- No assertive verbs ("led", "built", "created").
- The five queries must not be near-duplicates.{disambiguation}

Return ONLY a JSON array of 5 strings in the order above. \
No explanations. No markdown.
"""

_DISAMBIGUATION_RULE = """
- DISAMBIGUATION: identity confidence is low and "{name}" may be ambiguous. \
ALL FIVE queries MUST include "{company}"."""


def _squash(text: str) -> str:
    return " ".join(text.split())


def template_queries(name: str, company: str, role: str | None = None) -> list[str]:
    """Deterministic query per evidence type; always contains name and company."""
    role_text = (role or "").strip()
    return [
        _squash(_TEMPLATES[ev].format(name=name.strip(), company=company.strip(), role=role_text))
        for ev in EVIDENCE_ORDER
    ]


def _enforce(query: str, slot: EvidenceType, name: str, company: str, force_company: bool) -> str:
    """Post-check one LLM query: name, company (when forced) and an artifact word."""
    q = _squash(query)
    lowered = q.lower()
    if company and force_company and company.lower() not in lowered:
        q = f"{company} {q}"
    if name and name.lower() not in lowered:
        q = f"{name} {q}"
    if not any(kw in q.lower() for kw in ARTIFACT_KEYWORDS[slot]):
        q = f"{q} {ARTIFACT_KEYWORDS[slot][0]}"
    return q


async def generate_hypotheses(
    llm: LLMClient | None,
    name: str,
    company: str,
    role: str | None = None,
    sender_intent: str | None = None,
    credibility_story: str | None = None,
    identity_confidence: float | None = None,
) -> list[str]:
    """Return exactly five search queries; never raises."""
    templates = template_queries(name, company, role)
    if not (sender_intent or "").strip() or llm is None:
        return templates

    force_company = (
        identity_confidence is not None
        and identity_confidence < DISAMBIGUATION_THRESHOLD
        and bool(company.strip())
    )
    prompt = HYPOTHESIS_PROMPT.format(
        name=name,
        company=company,
        role=role or "N/A",
        intent=sender_intent.strip(),
        credibility=(credibility_story or "").strip() or "N/A",
        disambiguation=_DISAMBIGUATION_RULE.format(name=name, company=company) if force_company else "",
    )

    try:
        response = await llm.generate(prompt, temperature=0.4, max_output_tokens=1024, disable_thinking=True)
    except Exception as exc:
        log.warning("Hypothesis generation failed, using templates: %s", exc)
        return templates

    raw = extract_json(response.text, root="array")
    if not isinstance(raw, list) or not raw:
        log.warning("Hypothesis response had no usable JSON array (%d chars), using templates", len(response.text))
        return templates

    queries: list[str] = []
    for i, slot in enumerate(EVIDENCE_ORDER):
        item = raw[i] if i < len(raw) else None
        if isinstance(item, str) and item.strip():
            queries.append(_enforce(item, slot, name.strip(), company.strip(), force_company))
        else:
            queries.append(templates[i])
    if len(raw) != HYPOTHESIS_COUNT:
        log.info("Hypothesis response had %d entries, normalized to %d", len(raw), HYPOTHESIS_COUNT)
    return queries
