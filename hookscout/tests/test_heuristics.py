from __future__ import annotations

from dataclasses import dataclass

import pytest

from hookscout.heuristics import (
    DEFAULT_WEIGHTS,
    ScoringWeights,
    count_overlap,
    deduplicate_by_url,
    ensure_angle_diversity,
    is_likely_off_topic,
    looks_like_profile_or_directory,
    normalize_url,
    path_depth,
    score_candidate,
    tokenize,
    url_similarity,
)


@dataclass
class Item:
    url: str
    score: float
    provenance: str = "autoprompt"


class TestTokens:
    def test_tokenize_lowercases_and_splits_on_punctuation(self):
        assert tokenize("Cold-Email  Tips, 2024!") == ["cold", "email", "tips", "2024"]

    def test_tokenize_handles_none_and_empty(self):
        assert tokenize(None) == []
        assert tokenize("  ") == []

    def test_overlap_counts_title_tokens(self):
        assert count_overlap("Writing cold email that works", ["email writing"]) == 2

    def test_off_topic_when_no_shared_token(self):
        assert is_likely_off_topic("Quarterly earnings call", ["email writing"])
        assert not is_likely_off_topic("On writing well", ["email writing"])

    def test_off_topic_with_no_topics(self):
        assert is_likely_off_topic("Anything at all", [])


class TestProfilePatterns:
    @pytest.mark.parametrize("url", [
        "https://acme.com/team",
        "https://acme.com/about/",
        "https://acme.com/people/jane-smith/bio",
        "https://uni.edu/faculty",
        "https://www.crunchbase.com/person/jane-smith",
        "https://en.wikipedia.org/wiki/Jane_Smith",
        "https://acme.com/leadership",
    ])
    def test_bio_like(self, url):
        assert looks_like_profile_or_directory(url)

    @pytest.mark.parametrize("url", [
        "https://medium.com/@jane/cold-email-rules-123",
        "https://acme.com/blog/teamwork-lessons",
        "https://uni.edu/faculty-news/keynote",
    ])
    def test_not_bio_like(self, url):
        assert not looks_like_profile_or_directory(url)

    def test_malformed_url_is_not_bio_like(self):
        assert not looks_like_profile_or_directory("")
        assert not looks_like_profile_or_directory(None)


class TestUrlSimilarity:
    def test_shared_segments_over_longer_path(self):
        a = "https://x.com/a/b/c/d/e"
        b = "https://x.com/a/b/c/d/f"
        assert url_similarity(a, b) == pytest.approx(0.8)

    def test_identical_paths(self):
        assert url_similarity("https://x.com/a/b", "https://y.com/a/b") == 1.0

    def test_malformed_urls_are_zero(self):
        assert url_similarity("not a url", "https://x.com/a") == 0.0
        assert url_similarity("", "") == 0.0

    def test_two_empty_paths_are_zero(self):
        assert url_similarity("https://x.com/", "https://y.com") == 0.0

    def test_path_depth(self):
        assert path_depth("https://x.com/a/b") == 2
        assert path_depth("https://x.com") == 0
        assert path_depth("garbage") == 0


class TestNormalizeUrl:
    def test_drops_tracking_params_and_trailing_slash(self):
        url = "https://Example.com/Post/?utm_source=x&id=3&utm_medium=y"
        assert normalize_url(url) == "https://example.com/post?id=3"

    def test_non_url_is_lowercased(self):
        assert normalize_url("  Not A URL ") == "not a url"


class TestDeduplicate:
    def test_exact_duplicates_keep_higher_score(self):
        items = [Item("https://x.com/a/", 1.0), Item("https://x.com/a?utm_source=z", 5.0)]
        out = deduplicate_by_url(items)
        assert len(out) == 1
        assert out[0].score == 5.0

    @pytest.mark.parametrize("order", [0, 1])
    def test_near_duplicates_keep_higher_score_regardless_of_order(self, order):
        low = Item("https://x.com/a/b/c/d/e/f", 1.0)
        high = Item("https://x.com/a/b/c/d/e/g", 4.0)
        items = [low, high] if order == 0 else [high, low]
        out = deduplicate_by_url(items)
        assert out == [high]

    def test_distinct_urls_survive(self):
        items = [Item("https://x.com/a/b", 1.0), Item("https://x.com/c/d", 2.0)]
        assert len(deduplicate_by_url(items)) == 2

    def test_query_string_distinguishes_videos(self):
        items = [
            Item("https://www.youtube.com/watch?v=AAA", 3.0),
            Item("https://www.youtube.com/watch?v=BBB", 3.0),
        ]
        assert len(deduplicate_by_url(items)) == 2

    def test_same_path_on_different_hosts_survives(self):
        items = [Item("https://x.com/a/b/c/d/e/f", 1.0), Item("https://y.com/a/b/c/d/e/f", 2.0)]
        assert len(deduplicate_by_url(items)) == 2


class TestScoreCandidate:
    def test_content_domain_marker_overlap_deep_link(self):
        score = score_candidate(
            "https://medium.com/@jane/cold-email-interview",
            "Interview: cold email secrets",
            ["cold email"],
            "autoprompt",
        )
        # domain 3 + overlap 2 + high marker 3 + deep link 1
        assert score == pytest.approx(9.0)

    def test_profile_penalty_and_hypothesis_bonus(self):
        score = score_candidate("https://acme.com/team", "Team", [], "hypothesis")
        assert score == pytest.approx(-4.0 + 0.5)

    def test_medium_marker_only_when_no_high_marker(self):
        score = score_candidate("https://acme.com/x", "Career advice", [], "autoprompt")
        assert score == pytest.approx(1.0)

    def test_overlap_is_capped(self):
        title = "a b c d e f g h"
        score = score_candidate("https://x.com/", title, [title], "autoprompt")
        assert score == pytest.approx(6.0)

    def test_voice_angle_bonus(self):
        base = score_candidate("https://x.com/", "Nothing", [], "teaching")
        voice = score_candidate("https://x.com/", "Nothing", [], "voice")
        assert voice - base == pytest.approx(1.0)

    def test_weights_are_injectable(self):
        weights = ScoringWeights(content_domain=10.0)
        default = score_candidate("https://youtube.com/", "x", [], "autoprompt")
        tuned = score_candidate("https://youtube.com/", "x", [], "autoprompt", weights)
        assert tuned - default == pytest.approx(10.0 - DEFAULT_WEIGHTS.content_domain)


class TestAngleDiversity:
    def test_guarantees_min_per_angle(self):
        items = [Item(f"https://x.com/v{i}", 10 - i, "voice") for i in range(5)]
        items += [Item("https://x.com/s0", 0.5, "social"), Item("https://x.com/s1", 0.1, "social")]
        out = ensure_angle_diversity(items, min_per_angle=2)
        top4 = {i.url for i in out[:4]}
        assert {"https://x.com/s0", "https://x.com/s1"} <= top4
        assert len(out) == len(items)

    def test_remaining_sorted_by_score(self):
        items = [Item(f"https://x.com/{i}", float(i), "voice") for i in range(5)]
        out = ensure_angle_diversity(items, min_per_angle=1)
        assert [i.score for i in out] == [4.0, 3.0, 2.0, 1.0, 0.0]
