from __future__ import annotations

import json

import pytest

from hookscout.discovery import (
    ANGLES,
    DROP_REASON,
    EXCLUDE_DOMAINS,
    INCLUDE_DOMAINS,
    MULTI_ANGLE_EXCLUDE_DOMAINS,
    NormalizedIntent,
    build_angle_queries,
    discover_content,
    discover_content_multi_angle,
    extract_entities,
    extract_key_topics,
    get_strategy,
    naive_topics,
    normalize_intent,
)
from hookscout.llm import LLMCallError
from hookscout.tests.fakes import FakeLLM, FakeSearch, search_error

NAME = "Jane Smith"
COMPANY = "Acme"
INTENT = "Pitch our cold email writing assistant for students"
TOPICS = json.dumps(["email writing", "outreach strategies", "student career skills"])
HYPOTHESES = [f"Jane Smith Acme query {i}" for i in range(5)]


def _is_broad(query: str) -> bool:
    return query.startswith("Find content where")


# ---------------------------------------------------------------------------
# Topic terms
# ---------------------------------------------------------------------------


class TestTopics:
    def test_naive_topics_keeps_words_longer_than_three(self):
        assert naive_topics("An AI tool for cold email") == ["tool", "cold", "email"]

    @pytest.mark.asyncio
    async def test_llm_topics_capped_at_five(self):
        llm = FakeLLM(json.dumps(["a1", "b2", "c3", "d4", "e5", "f6"]))
        assert await extract_key_topics(llm, INTENT) == ["a1", "b2", "c3", "d4", "e5"]
        assert llm.calls[0]["temperature"] == 0.2

    @pytest.mark.asyncio
    async def test_llm_failure_falls_back_to_tokens(self):
        llm = FakeLLM(LLMCallError("down", retryable=True))
        assert await extract_key_topics(llm, INTENT) == naive_topics(INTENT)

    @pytest.mark.asyncio
    async def test_unusable_json_falls_back_to_tokens(self):
        llm = FakeLLM('["", 3]')
        assert await extract_key_topics(llm, INTENT) == naive_topics(INTENT)

    @pytest.mark.asyncio
    async def test_empty_intent_has_no_topics(self):
        assert await extract_key_topics(FakeLLM(TOPICS), "  ") == []


# ---------------------------------------------------------------------------
# Autoprompt + hypotheses
# ---------------------------------------------------------------------------


class TestDiscoverContent:
    @pytest.mark.asyncio
    async def test_bio_pages_off_topic_are_dropped(self, settings):
        def responder(query, options):
            if not _is_broad(query):
                return []
            return [
                {"url": "https://acme.com/team", "title": "Our Team"},
                {"url": "https://acme.com/about", "title": "About email writing at Acme"},
                {"url": "https://medium.com/@jane/cold-email-tips", "title": "Cold email writing tips"},
                {"url": "https://news.example.com/q3-earnings", "title": "Quarterly earnings call"},
            ]

        result = await discover_content(
            FakeSearch(responder), FakeLLM(TOPICS), NAME, COMPANY, None, INTENT, HYPOTHESES, settings,
        )
        urls = [c.url for c in result.urls]
        assert "https://acme.com/team" not in urls
        assert result.debug["dropped"] == [{"url": "https://acme.com/team", "reason": DROP_REASON}]
        # bio-like but on-topic, and off-topic but not bio-like, are penalized not dropped
        assert "https://acme.com/about" in urls
        assert "https://news.example.com/q3-earnings" in urls
        assert urls[0] == "https://medium.com/@jane/cold-email-tips"
        assert urls[-1] == "https://news.example.com/q3-earnings"

    @pytest.mark.asyncio
    async def test_sorted_by_score_descending(self, settings):
        def responder(query, options):
            if not _is_broad(query):
                return []
            return [
                {"url": "https://example.com/a", "title": "email"},
                {"url": "https://youtube.com/watch-interview", "title": "Interview on email writing"},
            ]

        result = await discover_content(
            FakeSearch(responder), FakeLLM(TOPICS), NAME, COMPANY, None, INTENT, HYPOTHESES, settings,
        )
        scores = [c.score for c in result.urls]
        assert scores == sorted(scores, reverse=True)
        assert result.urls[0].url == "https://youtube.com/watch-interview"

    @pytest.mark.asyncio
    async def test_failed_searches_are_isolated(self, settings):
        def responder(query, options):
            if _is_broad(query):
                raise search_error("timeout")
            if query.endswith("0"):
                return [{"url": "https://blog.example.com/email-writing", "title": "Email writing essay"}]
            raise search_error("429")

        result = await discover_content(
            FakeSearch(responder), FakeLLM(TOPICS), NAME, COMPANY, None, INTENT, HYPOTHESES, settings,
        )
        assert [c.url for c in result.urls] == ["https://blog.example.com/email-writing"]
        assert result.urls[0].provenance == "hypothesis"

    @pytest.mark.asyncio
    async def test_all_searches_failing_yields_empty(self, settings):
        def responder(query, options):
            raise search_error()

        result = await discover_content(
            FakeSearch(responder), FakeLLM(TOPICS), NAME, COMPANY, None, INTENT, HYPOTHESES, settings,
        )
        assert result.urls == []

    @pytest.mark.asyncio
    async def test_top_k_cap(self, settings):
        capped = settings.model_copy(update={"max_discovered_urls": 3})

        def responder(query, options):
            if not _is_broad(query):
                return []
            return [{"url": f"https://site{i}.com/p{i}", "title": f"email writing {i}"} for i in range(10)]

        result = await discover_content(
            FakeSearch(responder), FakeLLM(TOPICS), NAME, COMPANY, None, INTENT, HYPOTHESES, capped,
        )
        assert len(result.urls) == 3

    @pytest.mark.asyncio
    async def test_duplicates_across_searches_collapse(self, settings):
        def responder(query, options):
            return [{"url": "https://medium.com/@jane/email-writing/", "title": "Email writing"}]

        result = await discover_content(
            FakeSearch(responder), FakeLLM(TOPICS), NAME, COMPANY, None, INTENT, HYPOTHESES, settings,
        )
        assert len(result.urls) == 1

    @pytest.mark.asyncio
    async def test_search_options_and_provenance(self, settings):
        search = FakeSearch()
        await discover_content(search, FakeLLM(TOPICS), NAME, COMPANY, "CTO", INTENT, HYPOTHESES, settings)
        assert len(search.search_calls) == 6
        broad_query, broad_opts = search.search_calls[0]
        assert _is_broad(broad_query)
        assert "email writing" in broad_query
        assert "Jane Smith is CTO at Acme" in broad_query
        assert broad_opts["num_results"] == 20
        assert broad_opts["use_autoprompt"] is True
        assert broad_opts["include_domains"] == INCLUDE_DOMAINS
        assert broad_opts["exclude_domains"] == EXCLUDE_DOMAINS
        for query, opts in search.search_calls[1:]:
            assert query in HYPOTHESES
            assert opts["num_results"] == 6

    @pytest.mark.asyncio
    async def test_no_intent_uses_role_and_company_without_llm(self, settings):
        llm = FakeLLM(TOPICS)
        result = await discover_content(
            FakeSearch(), llm, NAME, "Globex Corp", "Head of Sales", None, HYPOTHESES, settings,
        )
        assert llm.calls == []
        assert result.debug["topics"] == ["head", "sales", "globex", "corp"]

    @pytest.mark.asyncio
    async def test_wire_shape(self, settings):
        def responder(query, options):
            return [{"url": "https://substack.com/p/email", "title": "Email writing"}] if _is_broad(query) else []

        result = await discover_content(
            FakeSearch(responder), FakeLLM(TOPICS), NAME, COMPANY, None, INTENT, HYPOTHESES, settings,
        )
        assert result.urls[0].to_wire() == {
            "url": "https://substack.com/p/email", "title": "Email writing", "provenance": "autoprompt",
        }
        assert result.debug["provenance_distribution"] == {"autoprompt": 1}


# ---------------------------------------------------------------------------
# Multi-angle
# ---------------------------------------------------------------------------


class TestNormalizeIntent:
    @pytest.mark.asyncio
    async def test_short_intent_passes_through_without_llm(self):
        llm = FakeLLM()
        out = await normalize_intent(llm, "Cold email tool for MBA students")
        assert out.compressed == "Cold email tool for MBA students"
        assert "email" in out.entities
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_long_intent_uses_llm(self):
        long_intent = "I'm building a writing assistant. " * 20
        llm = FakeLLM(json.dumps({"compressed": "AI writing assistant for students", "entities": ["AI"]}))
        out = await normalize_intent(llm, long_intent)
        assert out == NormalizedIntent(compressed="AI writing assistant for students", entities=["AI"])

    @pytest.mark.asyncio
    async def test_long_intent_heuristic_on_failure(self):
        long_intent = "I'm building an email tool for students. Would you give feedback? " * 10
        out = await normalize_intent(FakeLLM(LLMCallError("x", retryable=True)), long_intent)
        assert out.compressed == "an email tool for students"
        assert len(out.compressed) <= 200

    def test_extract_entities_capitalized_and_domain_terms(self):
        entities = extract_entities("The course at Stanford covers SaaS sales")
        assert "Stanford" in entities
        assert "saas" in entities
        assert "sales" in entities
        assert "The" not in entities


class TestMultiAngle:
    def test_angle_queries(self):
        intent = NormalizedIntent(compressed="cold email writing", entities=["email", "students"])
        queries = build_angle_queries(NAME, COMPANY, "CTO", intent)
        assert [a for a, _ in queries] == list(ANGLES)
        for _, q in queries:
            assert "Jane Smith (CTO at Acme)" in q
            assert "particularly related to email, students" in q

    @pytest.mark.asyncio
    async def test_four_angle_searches_and_diversity(self, settings):
        def responder(query, options):
            if query.startswith("Find interviews"):
                return [
                    {"url": f"https://youtube.com/v{i}", "title": f"Interview on cold email writing {i}"}
                    for i in range(8)
                ]
            if query.startswith("Find LinkedIn"):
                return [
                    {"url": "https://x.com/s1", "title": "update"},
                    {"url": "https://y.com/s2", "title": "update"},
                ]
            return []

        capped = settings.model_copy(update={"max_discovered_urls": 4})
        search = FakeSearch(responder)
        result = await discover_content_multi_angle(
            search, FakeLLM(), NAME, COMPANY, None, "cold email writing tool", HYPOTHESES, capped,
        )
        assert len(search.search_calls) == 4
        for query, opts in search.search_calls:
            assert query not in HYPOTHESES
            assert opts["num_results"] == 8
            assert opts["exclude_domains"] == MULTI_ANGLE_EXCLUDE_DOMAINS
        provenances = [c.provenance for c in result.urls]
        assert provenances.count("social") == 2
        assert provenances.count("voice") == 2

    def test_get_strategy(self):
        assert get_strategy("multi_angle") is discover_content_multi_angle
        assert get_strategy("AUTOPROMPT") is discover_content
        assert get_strategy(None) is discover_content
        assert get_strategy("bogus") is discover_content
