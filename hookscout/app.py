from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Generator

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException
from sqlalchemy.orm import Session

from hookscout.config import get_settings
from hookscout.db import init_db, session_generator
from hookscout.jobs import create_job, get_job_status
from hookscout.pipeline import run_research
from hookscout.schemas import JobStatusOut, ResearchCreated, ResearchRequest

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="HookScout",
    version="0.1.0",
    description=(
        "Research a named person and extract evidence-backed personalization hooks "
        "for cold outreach. Create a research job, then poll its status. "
        "All endpoints return JSON. No authentication required."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Research", "description": "Create research jobs and poll their progress. "
                                            "Requires EXA_API_KEY and an LLM provider key."},
    ],
)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def db_session() -> Generator[Session, None, None]:
    yield from session_generator()


# ---------------------------------------------------------------------------
# Routes: Research
# ---------------------------------------------------------------------------


@app.post("/api/research", response_model=ResearchCreated, status_code=201,
          tags=["Research"], summary="Create a research job and start the pipeline in the background")
async def start_research(body: ResearchRequest, background_tasks: BackgroundTasks,
                         session: Session = Depends(db_session)):
    job_id = create_job(
        session,
        recipient_name=body.recipient_name,
        recipient_company=body.recipient_company,
        recipient_role=body.recipient_role,
        sender_intent=body.sender_intent,
        credibility_story=body.credibility_story,
    )
    background_tasks.add_task(run_research, job_id)
    return ResearchCreated(request_id=job_id, status="queued")


@app.get("/api/research/{request_id}", response_model=JobStatusOut,
         tags=["Research"], summary="Get the current status snapshot of a research job")
async def research_status(request_id: str, session: Session = Depends(db_session)):
    snapshot = get_job_status(session, request_id)
    if snapshot is None:
        raise HTTPException(404, "Research job not found")
    return snapshot


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def main():
    import uvicorn
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    log.info("LLM provider %s, discovery strategy %s, database %s",
             settings.llm_provider, settings.discovery_strategy, settings.database_path)
    uvicorn.run("hookscout.app:app", host="127.0.0.1", port=8001)


if __name__ == "__main__":
    main()
