"""Pydantic request/response schemas for the HookScout API and hook payloads."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hookscout.models import StrengthTier
from hookscout.utils import clip

TITLE_MAX = 80
HOOK_MAX = 220
WHY_MAX = 160
WEAKNESS_MAX = 120
QUOTE_MAX = 200


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class HookSource(_CamelModel):
    label: str = ""
    url: str

    @field_validator("label", mode="before")
    @classmethod
    def _label(cls, v: Any) -> str:
        return clip(v, 120)

    @field_validator("url", mode="before")
    @classmethod
    def _url(cls, v: Any) -> str:
        url = clip(v, 2000)
        if not url:
            raise ValueError("source url is required")
        return url


class EvidenceQuote(_CamelModel):
    label: str = ""
    quote: str

    @field_validator("label", mode="before")
    @classmethod
    def _label(cls, v: Any) -> str:
        return clip(v, 120)

    @field_validator("quote", mode="before")
    @classmethod
    def _quote(cls, v: Any) -> str:
        quote = clip(v, QUOTE_MAX)
        if not quote:
            raise ValueError("evidence quote is required")
        return quote


class Hook(_CamelModel):
    """One evidence-backed personalization angle.

    Over-long strings are clipped rather than rejected and an out-of-range
    confidence is clamped.  A hook missing any required field (title, hook
    text, why-it-works, a numeric confidence, a recognised strength tier,
    a source or an evidence quote) fails validation.
    """

    id: str = ""
    title: str
    hook: str
    why_it_works: str = Field(alias="whyItWorks")
    confidence: float
    strength_tier: StrengthTier = Field(alias="strengthTier")
    weakness_note: str | None = Field(None, alias="weaknessNote")
    sources: list[HookSource] = Field(min_length=1)
    evidence_quotes: list[EvidenceQuote] = Field(alias="evidenceQuotes", min_length=1)

    @field_validator("id", mode="before")
    @classmethod
    def _id(cls, v: Any) -> str:
        return clip(v, 40)

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, v: Any) -> str:
        title = clip(v, TITLE_MAX)
        if not title:
            raise ValueError("title is required")
        return title

    @field_validator("hook", mode="before")
    @classmethod
    def _hook(cls, v: Any) -> str:
        text = clip(v, HOOK_MAX)
        if not text:
            raise ValueError("hook text is required")
        return text

    @field_validator("why_it_works", mode="before")
    @classmethod
    def _why(cls, v: Any) -> str:
        why = clip(v, WHY_MAX)
        if not why:
            raise ValueError("whyItWorks is required")
        return why

    @field_validator("weakness_note", mode="before")
    @classmethod
    def _weakness(cls, v: Any) -> str | None:
        note = clip(v, WEAKNESS_MAX)
        return note or None

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, v: Any) -> float:
        if isinstance(v, bool):
            raise ValueError("confidence must be a number")
        try:
            value = float(v)
        except (TypeError, ValueError):
            raise ValueError("confidence must be a number") from None
        if value != value:  # NaN
            raise ValueError("confidence must be a number")
        return max(0.0, min(1.0, value))

    @field_validator("strength_tier", mode="before")
    @classmethod
    def _tier(cls, v: Any) -> str:
        tier = str(v or "").strip().lower().replace(" ", "").replace("_", "")
        if tier not in {t.value for t in StrengthTier}:
            raise ValueError(f"unknown strength tier {v!r}")
        return tier

    @field_validator("sources", "evidence_quotes", mode="before")
    @classmethod
    def _listify(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return [v]
        return v

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------


class ResearchRequest(BaseModel):
    recipient_name: str = Field(min_length=1, max_length=300)
    recipient_company: str = Field(min_length=1, max_length=300)
    recipient_role: str | None = Field(None, max_length=300)
    sender_intent: str | None = None
    credibility_story: str | None = None

    @field_validator("recipient_name", "recipient_company")
    @classmethod
    def _required_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("recipient_role", "sender_intent", "credibility_story")
    @classmethod
    def _optional_text(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class ResearchCreated(BaseModel):
    request_id: str
    status: str


class ProgressOut(BaseModel):
    phase: int = 0
    total: int = 4
    label: str = ""


class CountsOut(BaseModel):
    urls: int
    hooks: int


class JobStatusOut(BaseModel):
    request_id: str
    status: str
    phase_label: str
    progress: ProgressOut
    counts: CountsOut
    urls: list[dict[str, Any]] = []
    hypotheses: list[str] = []
    hooks: list[dict[str, Any]] = []
    partial: bool = False
    fallback_mode: str
    fallback_reason: str | None = None
    error: str | None = None
    created_at: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    updated_at: str | None = None
