from __future__ import annotations

import math

import pytest
from pydantic import ValidationError

from hookscout.jobs import PHASE_LABELS, create_job, get_job, get_job_status, phase_progress, update_job
from hookscout.models import FallbackMode, JobStatus
from hookscout.schemas import Hook, ResearchRequest
from hookscout.tests.fakes import make_hook


# ---------------------------------------------------------------------------
# Job store
# ---------------------------------------------------------------------------


class TestJobStore:
    def test_create_defaults(self, test_db):
        with test_db() as session:
            job_id = create_job(session, "Jane Smith", "Acme", sender_intent="pitch")
            job = get_job(session, job_id)
            assert job.status == "queued"
            assert job.fallback_mode == "not_run"
            assert job.partial is False
            assert job.progress == {"phase": 0, "total": 4, "label": PHASE_LABELS["queued"]}
            assert job.started_at is None and job.completed_at is None

    def test_ids_are_unique(self, test_db):
        with test_db() as session:
            ids = {create_job(session, "Jane Smith", "Acme") for _ in range(5)}
        assert len(ids) == 5

    def test_update_encodes_json_and_enums(self, test_db):
        with test_db() as session:
            job_id = create_job(session, "Jane Smith", "Acme")
            assert update_job(
                session, job_id,
                status=JobStatus.discovery,
                hypotheses=["q1", "q2"],
                urls=[{"url": "https://a.com", "title": "A", "provenance": "hypothesis"}],
            )
            job = get_job(session, job_id)
            assert job.status == "discovery"
            assert job.hypotheses == ["q1", "q2"]
            assert job.urls[0]["provenance"] == "hypothesis"
            assert job.completed_at is None

    def test_terminal_status_sets_completed_at_and_freezes(self, test_db):
        with test_db() as session:
            job_id = create_job(session, "Jane Smith", "Acme")
            assert update_job(session, job_id, status=JobStatus.complete, fallback_mode=FallbackMode.hooks_found)
            assert get_job(session, job_id).completed_at is not None
            assert update_job(session, job_id, status=JobStatus.failed, error="late") is False
            job = get_job(session, job_id)
            assert job.status == "complete"
            assert job.error is None

    def test_unknown_job_and_field(self, test_db):
        with test_db() as session:
            assert update_job(session, "missing", status="identity") is False
            job_id = create_job(session, "Jane Smith", "Acme")
            with pytest.raises(ValueError):
                update_job(session, job_id, recipient_name="Someone Else")

    def test_status_snapshot_for_unknown_job(self, test_db):
        with test_db() as session:
            assert get_job_status(session, "missing") is None

    def test_phase_labels_cover_every_status(self):
        assert set(PHASE_LABELS) == {s.value for s in JobStatus}

    @pytest.mark.parametrize("status", [s for s in JobStatus if s is not JobStatus.failed])
    def test_progress_label_matches_phase_label(self, test_db, status):
        with test_db() as session:
            job_id = create_job(session, "Jane Smith", "Acme")
            update_job(session, job_id, status=status, progress=phase_progress(status))
            snapshot = get_job_status(session, job_id)
        assert snapshot["progress"]["label"] == snapshot["phase_label"]
        assert snapshot["phase_label"] == PHASE_LABELS[status.value]


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class TestHookSchema:
    def test_long_fields_are_clipped(self):
        hook = Hook.model_validate(make_hook(
            1, title="t" * 200, hook="h" * 500, whyItWorks="w" * 500, weaknessNote="n" * 500,
            evidenceQuotes=[{"label": "S", "quote": "q" * 500}],
        ))
        assert len(hook.title) == 80
        assert len(hook.hook) == 220
        assert len(hook.why_it_works) == 160
        assert len(hook.weakness_note) == 120
        assert len(hook.evidence_quotes[0].quote) == 200

    @pytest.mark.parametrize("raw,expected", [(1.7, 1.0), (-0.2, 0.0), ("0.4", 0.4), (0.65, 0.65)])
    def test_confidence_is_clamped(self, raw, expected):
        assert Hook.model_validate(make_hook(1, confidence=raw)).confidence == pytest.approx(expected)

    @pytest.mark.parametrize("raw", ["high", None, math.nan, True])
    def test_non_numeric_confidence_rejected(self, raw):
        with pytest.raises(ValidationError):
            Hook.model_validate(make_hook(1, confidence=raw))

    @pytest.mark.parametrize("raw,expected", [("Tier 1", "tier1"), ("TIER_2", "tier2"), ("tier3", "tier3")])
    def test_strength_tier_normalized(self, raw, expected):
        assert Hook.model_validate(make_hook(1, strengthTier=raw)).strength_tier.value == expected

    @pytest.mark.parametrize("raw", ["gold", None, ""])
    def test_unknown_strength_tier_rejected(self, raw):
        with pytest.raises(ValidationError):
            Hook.model_validate(make_hook(1, strengthTier=raw))

    @pytest.mark.parametrize("field", ["whyItWorks", "confidence", "strengthTier"])
    def test_missing_required_field_rejected(self, field):
        raw = make_hook(1)
        del raw[field]
        with pytest.raises(ValidationError):
            Hook.model_validate(raw)

    def test_blank_why_it_works_rejected(self):
        with pytest.raises(ValidationError):
            Hook.model_validate(make_hook(1, whyItWorks="   "))

    def test_single_source_object_is_accepted(self):
        hook = Hook.model_validate(make_hook(1, sources={"label": "S", "url": "https://a.com"}))
        assert hook.sources[0].url == "https://a.com"

    def test_blank_weakness_note_is_none(self):
        assert Hook.model_validate(make_hook(1, weaknessNote="  ")).weakness_note is None


class TestResearchRequest:
    def test_strips_and_nulls_blank_optionals(self):
        req = ResearchRequest(
            recipient_name="  Jane Smith ", recipient_company="Acme",
            recipient_role=" ", sender_intent="", credibility_story=None,
        )
        assert req.recipient_name == "Jane Smith"
        assert req.recipient_role is None
        assert req.sender_intent is None
