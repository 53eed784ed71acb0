"""Four-phase research pipeline for one job.

``queued -> identity -> discovery -> fetching -> extracting -> complete``,
with ``failed`` reachable from every phase.  The job row is the only shared
state: each transition is committed in its own short session before the
next phase starts, so pollers only ever see forward progress.
"""
from __future__ import annotations

import logging
from typing import Any

from hookscout.config import ConfigurationError, Settings, get_settings
from hookscout.db import session_scope
from hookscout.discovery import get_strategy
from hookscout.extractor import extract_hooks
from hookscout.fetcher import fetch_content
from hookscout.hypotheses import generate_hypotheses
from hookscout.identity import verify_identity
from hookscout.jobs import TOTAL_PHASES, get_job, phase_progress, update_job
from hookscout.llm import LLMClient
from hookscout.models import FallbackMode, JobStatus
from hookscout.search import SearchClient
from hookscout.utils import utcnow

log = logging.getLogger(__name__)


def _progress(phase: int, label: str) -> dict[str, Any]:
    return {"phase": phase, "total": TOTAL_PHASES, "label": label}


def _update(job_id: str, **fields: Any) -> bool:
    with session_scope() as session:
        return update_job(session, job_id, **fields)


def _enter(job_id: str, status: JobStatus, **fields: Any) -> None:
    _update(job_id, status=status, progress=phase_progress(status), **fields)


def _fail(job_id: str, phase: int, label: str, error: str, partial: bool) -> None:
    log.info("Job %s failed at phase %d: %s", job_id, phase, error)
    _update(job_id, status=JobStatus.failed, progress=_progress(phase, label), error=error, partial=partial)


def _load_inputs(job_id: str) -> dict[str, Any] | None:
    with session_scope() as session:
        job = get_job(session, job_id)
        if job is None:
            return None
        if job.status != JobStatus.queued.value:
            log.warning("Job %s is %s, not queued; refusing to run it again", job_id, job.status)
            return None
        return {
            "name": job.recipient_name,
            "company": job.recipient_company,
            "role": job.recipient_role,
            "sender_intent": job.sender_intent,
            "credibility_story": job.credibility_story,
        }


def build_clients(settings: Settings) -> tuple[SearchClient, LLMClient]:
    """Construct provider clients; raise :class:`ConfigurationError` when keys are missing."""
    settings.require_credentials()
    return SearchClient.from_settings(settings), LLMClient.from_settings(settings)


async def run_research(
    job_id: str,
    search: SearchClient | None = None,
    llm: LLMClient | None = None,
    settings: Settings | None = None,
) -> None:
    """Drive one queued job to a terminal state.  Never raises."""
    settings = settings or get_settings()
    inputs = _load_inputs(job_id)
    if inputs is None:
        log.warning("run_research: job %s not runnable", job_id)
        return

    if search is None or llm is None:
        try:
            default_search, default_llm = build_clients(settings)
        except (ConfigurationError, ValueError) as exc:
            log.error("Job %s cannot start: %s", job_id, exc)
            _fail(job_id, 0, "Configuration error", str(exc), partial=False)
            return
        search = search or default_search
        llm = llm or default_llm

    try:
        await _run_phases(job_id, inputs, search, llm, settings)
    except Exception as exc:
        log.exception("Job %s crashed", job_id)
        _update(job_id, status=JobStatus.failed, error=str(exc) or type(exc).__name__, partial=True)


async def _run_phases(
    job_id: str,
    inputs: dict[str, Any],
    search: SearchClient,
    llm: LLMClient,
    settings: Settings,
) -> None:
    name = inputs["name"]
    company = inputs["company"]
    role = inputs["role"]
    intent = inputs["sender_intent"]

    # Phase 1: identity
    _enter(job_id, JobStatus.identity, started_at=utcnow())
    identity = await verify_identity(search, name, company, role)
    if not identity.passed:
        _fail(job_id, 1, "Identity verification failed",
              f"Could not verify identity for {name} at {company}", partial=False)
        return

    # Phase 2: discovery
    _enter(job_id, JobStatus.discovery)
    strategy_name = (settings.discovery_strategy or "autoprompt").strip().lower()
    hypotheses: list[str] = []
    if strategy_name != "multi_angle":
        hypotheses = await generate_hypotheses(
            llm, name, company, role,
            sender_intent=intent,
            credibility_story=inputs["credibility_story"],
            identity_confidence=identity.confidence,
        )
        _update(job_id, hypotheses=hypotheses)

    discover = get_strategy(strategy_name)
    discovery = await discover(search, llm, name, company, role, intent, hypotheses, settings)
    _update(job_id, urls=[c.to_wire() for c in discovery.urls])
    log.debug("Job %s discovery debug: %s", job_id, discovery.debug)
    if not discovery.urls:
        _fail(job_id, 2, "No sources found", f"No content sources found for {name}", partial=False)
        return

    # Phase 3: fetching
    _enter(job_id, JobStatus.fetching)
    fetched = await fetch_content(
        search, llm, [c.url for c in discovery.urls], name, company, intent, settings,
    )
    if not fetched.docs:
        _fail(job_id, 3, "Content fetch failed", f"Could not fetch content for {name}", partial=True)
        return

    # Phase 4: extracting
    _enter(job_id, JobStatus.extracting)
    result = await extract_hooks(llm, fetched.docs, name, company, intent, settings)

    partial = (
        result.fallback_mode in (FallbackMode.no_hooks_available, FallbackMode.extraction_failed)
        or result.used_fallback
        or len(fetched.docs) < len(discovery.urls)
    )
    _update(
        job_id,
        status=JobStatus.complete,
        progress=phase_progress(JobStatus.complete),
        hooks=result.hooks_wire(),
        partial=partial,
        fallback_mode=result.fallback_mode,
        fallback_reason=result.fallback_reason,
    )
    log.info(
        "Job %s complete: %d hook(s), fallback_mode=%s, partial=%s",
        job_id, len(result.hooks), result.fallback_mode.value, partial,
    )
