"""ResearchJob store: create, update (single writer) and status snapshots."""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from hookscout.models import FallbackMode, JobStatus, ResearchJob
from hookscout.utils import json_dump, utcnow

log = logging.getLogger(__name__)

TOTAL_PHASES = 4

# Phase number and label for each status; the pipeline writes these into
# `progress` and the status endpoint reports the same label as `phase_label`.
PHASE_PROGRESS: dict[str, tuple[int, str]] = {
    JobStatus.queued.value: (0, "Starting research..."),
    JobStatus.identity.value: (1, "Confirming identity"),
    JobStatus.discovery.value: (2, "Discovering content sources"),
    JobStatus.fetching.value: (3, "Fetching full content"),
    JobStatus.extracting.value: (4, "Extracting personalization hooks"),
    JobStatus.complete.value: (TOTAL_PHASES, "Research complete"),
}

PHASE_LABELS: dict[str, str] = {status: label for status, (_, label) in PHASE_PROGRESS.items()}
PHASE_LABELS[JobStatus.failed.value] = "Research failed"


def phase_progress(status: JobStatus | str) -> dict[str, Any]:
    phase, label = PHASE_PROGRESS[JobStatus(status).value]
    return {"phase": phase, "total": TOTAL_PHASES, "label": label}


# Mutable fields and the column each one is written to.
_JSON_FIELDS = {
    "progress": "progress_json",
    "urls": "urls_json",
    "hypotheses": "hypotheses_json",
    "hooks": "hooks_json",
}
_PLAIN_FIELDS = (
    "status", "partial", "fallback_mode", "fallback_reason", "error",
    "started_at", "completed_at",
)


def create_job(
    session: Session,
    recipient_name: str,
    recipient_company: str,
    recipient_role: str | None = None,
    sender_intent: str | None = None,
    credibility_story: str | None = None,
) -> str:
    """Persist a new ``queued`` job and return its id."""
    job = ResearchJob(
        recipient_name=recipient_name,
        recipient_company=recipient_company,
        recipient_role=recipient_role,
        sender_intent=sender_intent,
        credibility_story=credibility_story,
        status=JobStatus.queued.value,
        progress_json=json_dump(phase_progress(JobStatus.queued)),
        fallback_mode=FallbackMode.not_run.value,
        partial=False,
        created_at=utcnow(),
        updated_at=utcnow(),
    )
    session.add(job)
    session.commit()
    log.info("Created research job %s for %s at %s", job.id, recipient_name, recipient_company)
    return job.id


def get_job(session: Session, job_id: str) -> ResearchJob | None:
    return session.execute(select(ResearchJob).where(ResearchJob.id == job_id)).scalars().first()


def update_job(session: Session, job_id: str, **fields: Any) -> bool:
    """Apply *fields* to the job in one commit.

    Returns ``False`` without touching the row when the job is unknown or
    already terminal.  Enum values are stored by value; ``progress``,
    ``urls``, ``hypotheses`` and ``hooks`` are JSON-encoded.
    """
    job = get_job(session, job_id)
    if job is None:
        log.warning("update_job: job %s not found", job_id)
        return False
    if job.is_terminal:
        log.warning("update_job: job %s is already %s, ignoring update %s", job_id, job.status, sorted(fields))
        return False

    for key, value in fields.items():
        if isinstance(value, (JobStatus, FallbackMode)):
            value = value.value
        if key in _JSON_FIELDS:
            setattr(job, _JSON_FIELDS[key], json_dump(value))
        elif key in _PLAIN_FIELDS:
            setattr(job, key, value)
        else:
            raise ValueError(f"Unknown job field: {key!r}")

    if job.status in (JobStatus.complete.value, JobStatus.failed.value) and job.completed_at is None:
        job.completed_at = utcnow()
    job.updated_at = utcnow()
    session.commit()
    return True


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def job_snapshot(job: ResearchJob) -> dict[str, Any]:
    """Read-only status view of a job, shaped like ``JobStatusOut``."""
    progress = {"phase": 0, "total": TOTAL_PHASES, "label": ""}
    progress.update(job.progress or {})
    urls = job.urls
    hooks = job.hooks
    return {
        "request_id": job.id,
        "status": job.status,
        "phase_label": PHASE_LABELS.get(job.status, job.status),
        "progress": progress,
        "counts": {"urls": len(urls), "hooks": len(hooks)},
        "urls": urls,
        "hypotheses": job.hypotheses,
        "hooks": hooks,
        "partial": bool(job.partial),
        "fallback_mode": job.fallback_mode,
        "fallback_reason": job.fallback_reason,
        "error": job.error,
        "created_at": _iso(job.created_at),
        "started_at": _iso(job.started_at),
        "completed_at": _iso(job.completed_at),
        "updated_at": _iso(job.updated_at),
    }


def get_job_status(session: Session, job_id: str) -> dict[str, Any] | None:
    job = get_job(session, job_id)
    return job_snapshot(job) if job is not None else None
