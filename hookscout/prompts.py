"""Hook extraction prompts and the strength-tier ladder they render."""
from __future__ import annotations

from dataclasses import dataclass

from hookscout.models import StrengthTier
from hookscout.schemas import HOOK_MAX, QUOTE_MAX, TITLE_MAX, WEAKNESS_MAX, WHY_MAX

DEFAULT_INTENT = "Not specified - general networking"


@dataclass(frozen=True)
class TierRule:
    tier: StrengthTier
    label: str
    description: str
    examples: str


# Ordered strongest first.  The model must walk down the ladder rather than
# return nothing when higher tiers have no evidence.
TIER_POLICY: tuple[TierRule, ...] = (
    TierRule(
        StrengthTier.tier1,
        "Intent-aligned",
        "A specific signal that connects directly to the sender's intent.",
        "a talk, post, project or decision on the same topic the sender cares about",
    ),
    TierRule(
        StrengthTier.tier2,
        "Adjacent",
        "Background or domain evidence that is related to the intent but not about it.",
        "their function, domain focus, a neighbouring initiative, a relevant career move",
    ),
    TierRule(
        StrengthTier.tier3,
        "Identity",
        "Bare identity or role facts that are verifiable from the sources.",
        "current role and company, team membership, a recent appointment",
    ),
)


def render_tier_ladder() -> str:
    lines = []
    for i, rule in enumerate(TIER_POLICY, 1):
        lines.append(f"{i}. {rule.tier.value} ({rule.label}): {rule.description} e.g. {rule.examples}.")
    return "\n".join(lines)


_FIELD_LIMITS = f"""\
- title: at most {TITLE_MAX} characters
- hook: at most {HOOK_MAX} characters
- whyItWorks: at most {WHY_MAX} characters
- weaknessNote: optional, at most {WEAKNESS_MAX} characters
- evidenceQuotes[].quote: at most {QUOTE_MAX} characters, copied verbatim"""

_OUTPUT_FORMAT = """\
{
  "hooks": [
    {
      "id": "hook_1",
      "title": "Short label",
      "hook": "The specific fact or signal (1-2 sentences)",
      "whyItWorks": "Why this connects to the sender's intent (1 sentence)",
      "confidence": 0.85,
      "strengthTier": "tier1",
      "weaknessNote": "Optional caveat",
      "sources": [{"label": "Source 1", "url": "..."}],
      "evidenceQuotes": [{"label": "Source 1", "quote": "verbatim text from source"}]
    }
  ]
}"""

PRIMARY_PROMPT = """\
You are extracting personalization hooks from research about {name} at {company}.

SENDER'S INTENT: {intent}

CONTENT SOURCES:
{content}

ATTRIBUTION RULE:
Every hook must be attributable to {name}, or to {company} in relation to {name}. \
Each evidence quote must come from a source that mentions {name} or {company}.

STRENGTH LADDER (use the highest tier the evidence supports; fall down the \
ladder instead of returning nothing):
{ladder}

FIELD LIMITS:
{limits}

Return at most {max_hooks} hooks, fewer only if the content is insufficient.
Do NOT invent facts not present in the sources.

Return RAW JSON ONLY. No markdown fences, no prose before or after.
{output_format}
"""

FALLBACK_PROMPT = """\
You are extracting personalization hooks about {name} at {company} based on provided content.

SENDER'S INTENT: {intent}

CONTENT SOURCES:
{content}

TASK (TWO STEPS IN ONE RESPONSE):

STEP A: Evidence Selection
For each source above, select 1-2 verbatim snippets (50-150 words each) that are \
relevant to the sender's intent. Copy the text exactly as written.

STEP B: Hook Extraction
Using ONLY the snippets you selected in Step A, extract 1-{max_hooks} hooks.

A valid hook is any specific, verifiable signal credibly attributable to the \
person's role, trajectory, professional focus, public engagement, or \
organizational association. Attribution may be direct or indirect; the signal \
does not need to be authored by the person.

Unacceptable: speculation, generic company or industry information with no \
link to {name}, assumptions without source evidence.

STRENGTH LADDER:
{ladder}

FIELD LIMITS:
{limits}

CRITICAL CONSTRAINTS:
- Do NOT invent facts not present in the snippets
- evidenceQuotes must be copied verbatim from the sources
- If insufficient evidence exists, return {{"hooks": []}}

Output only the JSON object with a "hooks" array (no Step A text, no markdown):
{output_format}
"""


def _render(template: str, name: str, company: str, sender_intent: str | None, content: str, max_hooks: int) -> str:
    return template.format(
        name=name,
        company=company,
        intent=(sender_intent or "").strip() or DEFAULT_INTENT,
        content=content,
        ladder=render_tier_ladder(),
        limits=_FIELD_LIMITS,
        max_hooks=max_hooks,
        output_format=_OUTPUT_FORMAT,
    )


def build_primary_prompt(name: str, company: str, sender_intent: str | None, content: str, max_hooks: int = 3) -> str:
    return _render(PRIMARY_PROMPT, name, company, sender_intent, content, max_hooks)


def build_fallback_prompt(name: str, company: str, sender_intent: str | None, content: str, max_hooks: int = 3) -> str:
    return _render(FALLBACK_PROMPT, name, company, sender_intent, content, max_hooks)
