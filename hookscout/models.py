from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from hookscout.utils import json_parse


class Base(DeclarativeBase):
    pass


class JobStatus(str, enum.Enum):
    queued = "queued"
    identity = "identity"
    discovery = "discovery"
    fetching = "fetching"
    extracting = "extracting"
    complete = "complete"
    failed = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.complete.value, JobStatus.failed.value})


class FallbackMode(str, enum.Enum):
    not_run = "not_run"
    hooks_found = "hooks_found"
    no_hooks_available = "no_hooks_available"
    extraction_failed = "extraction_failed"


class SourceType(str, enum.Enum):
    person_specific = "person_specific"
    company_specific = "company_specific"
    industry_generic = "industry_generic"


class StrengthTier(str, enum.Enum):
    tier1 = "tier1"  # aligned with the sender's intent
    tier2 = "tier2"  # adjacent background or domain
    tier3 = "tier3"  # bare identity / role facts


class ResearchJob(Base):
    __tablename__ = "research_jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    recipient_name: Mapped[str] = mapped_column(String(300), nullable=False)
    recipient_company: Mapped[str] = mapped_column(String(300), nullable=False)
    recipient_role: Mapped[str | None] = mapped_column(String(300), nullable=True)
    sender_intent: Mapped[str | None] = mapped_column(Text, nullable=True)
    credibility_story: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(20), default=JobStatus.queued.value)  # JobStatus
    progress_json: Mapped[str] = mapped_column(Text, default="{}")
    urls_json: Mapped[str] = mapped_column(Text, default="[]")
    hypotheses_json: Mapped[str] = mapped_column(Text, default="[]")
    hooks_json: Mapped[str] = mapped_column(Text, default="[]")
    partial: Mapped[bool] = mapped_column(Boolean, default=False)
    fallback_mode: Mapped[str] = mapped_column(String(30), default=FallbackMode.not_run.value)
    fallback_reason: Mapped[str | None] = mapped_column(String(50), nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def progress(self) -> dict[str, Any]:
        return json_parse(self.progress_json)

    @property
    def urls(self) -> list[dict[str, Any]]:
        return json_parse(self.urls_json, [])

    @property
    def hypotheses(self) -> list[str]:
        return json_parse(self.hypotheses_json, [])

    @property
    def hooks(self) -> list[dict[str, Any]]:
        return json_parse(self.hooks_json, [])
