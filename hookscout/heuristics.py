"""Lexical and URL heuristics used to rank discovery candidates.

Everything here is pure and total: no I/O, no exceptions.  Malformed URLs
degrade to neutral values (similarity 0, no deep-link bonus).

The score produced by :func:`score_candidate` is a ranking heuristic, not a
probability.  Only the relative order of candidates matters.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Protocol, TypeVar
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

# ---------------------------------------------------------------------------
# Pattern tables
# ---------------------------------------------------------------------------

# Path shapes that tend to be bios, directories, org charts, or about pages.
# Anchored where a looser match would hit useful pages ("/faculty/course-x").
_PROFILE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(re.compile(p) for p in (
    r"/bio/?$",
    r"/bios/",
    r"/profile/?$",
    r"/profiles/",
    r"/people/?$",
    r"/person/",
    r"/team/?$",
    r"/our-team",
    r"/leadership/?$",
    r"/management/?$",
    r"/executive/?$",
    r"/executives/",
    r"/board/?$",
    r"/directory/?$",
    r"/staff/?$",
    r"/faculty/?$",
    r"/about/?$",
    r"/who-we-are",
    r"crunchbase\.com/person",
    r"wikipedia\.org/wiki",
    r"imdb\.com/name",
))

CONTENT_DOMAINS: tuple[str, ...] = (
    "linkedin.com",
    "medium.com",
    "substack.com",
    "youtube.com",
    "podcasts.apple.com",
    "open.spotify.com",
    "soundcloud.com",
    "anchor.fm",
)

BLOG_INDICATORS: tuple[str, ...] = ("blog.", "/blog/", "newsletter")

HIGH_VALUE_MARKERS: tuple[str, ...] = (
    "interview", "podcast", "talk", "keynote", "lecture", "workshop",
    "fireside", "ama", "q&a", "how to", "framework", "tips", "rules", "guide",
)

MEDIUM_VALUE_MARKERS: tuple[str, ...] = (
    "writing", "communication", "email", "outreach", "career", "advice",
    "strategy", "teaches",
)

_TRACKING_PARAMS = {"utm_source", "utm_medium", "utm_campaign", "utm_content", "utm_term"}

NEAR_DUPLICATE_THRESHOLD = 0.8


@dataclass(frozen=True)
class ScoringWeights:
    """Additive weights for :func:`score_candidate`."""
    content_domain: float = 3.0
    blog_indicator: float = 3.0
    profile_penalty: float = -4.0
    topic_overlap_cap: int = 6
    high_value_marker: float = 3.0
    medium_value_marker: float = 1.0
    deep_link: float = 1.0
    hypothesis_bonus: float = 0.5
    direct_voice_bonus: float = 1.0  # multi-angle: "voice" / "authored"
    direct_voice_angles: frozenset[str] = field(default_factory=lambda: frozenset({"voice", "authored"}))


DEFAULT_WEIGHTS = ScoringWeights()


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


def tokenize(text: str | None) -> list[str]:
    """Lowercase, replace non-alphanumerics with spaces, split, drop empties."""
    return re.sub(r"[^a-z0-9\s]", " ", (text or "").lower()).split()


def _topic_tokens(topic_terms: Iterable[str]) -> set[str]:
    return set(tokenize(" ".join(t for t in topic_terms if isinstance(t, str))))


def count_overlap(title: str, topic_terms: Iterable[str]) -> int:
    """Number of title tokens that appear among the topic tokens."""
    topics = _topic_tokens(topic_terms)
    return sum(1 for tok in tokenize(title) if tok in topics)


def is_likely_off_topic(title: str, topic_terms: Iterable[str]) -> bool:
    """Title-only drift guard: no shared token with the topic terms."""
    return count_overlap(title, topic_terms) == 0


# ---------------------------------------------------------------------------
# URLs
# ---------------------------------------------------------------------------


def looks_like_profile_or_directory(url: str | None) -> bool:
    u = (url or "").lower()
    return any(p.search(u) for p in _PROFILE_PATTERNS)


def _path_segments(url: str) -> list[str] | None:
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return [seg for seg in parts.path.split("/") if seg]


def path_depth(url: str) -> int:
    segments = _path_segments(url)
    return len(segments) if segments else 0


def url_similarity(a: str, b: str) -> float:
    """Shared path segments over the longer path (0.0 when not comparable)."""
    seg_a = _path_segments(a)
    seg_b = _path_segments(b)
    if seg_a is None or seg_b is None:
        return 0.0
    longest = max(len(seg_a), len(seg_b))
    if longest == 0:
        return 0.0
    lookup = set(seg_b)
    common = sum(1 for seg in seg_a if seg in lookup)
    return common / longest


def normalize_url(url: str) -> str:
    """Lowercase, drop utm_* params and the trailing slash."""
    lowered = (url or "").strip().lower()
    try:
        parts = urlsplit(lowered)
    except ValueError:
        return lowered
    if not parts.scheme or not parts.netloc:
        return lowered
    query = urlencode([(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
                       if k not in _TRACKING_PARAMS])
    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme, parts.netloc, path, query, ""))


class _Scored(Protocol):
    url: str
    score: float


T = TypeVar("T", bound=_Scored)


def _near_duplicate(a: str, b: str) -> bool:
    # Different hosts or query strings (youtube.com/watch?v=...) are distinct pages.
    try:
        parts_a, parts_b = urlsplit(a), urlsplit(b)
    except ValueError:
        return False
    if parts_a.netloc != parts_b.netloc or parts_a.query != parts_b.query:
        return False
    return url_similarity(a, b) > NEAR_DUPLICATE_THRESHOLD


def deduplicate_by_url(items: Iterable[T]) -> list[T]:
    """Collapse exact and near-duplicate URLs, keeping the higher-scored item.

    Exact matches compare :func:`normalize_url` keys; near duplicates share
    host and query string and have a :func:`url_similarity` above 0.8.  On a
    tie the item seen first wins.
    """
    kept: dict[str, T] = {}
    for item in items:
        key = normalize_url(item.url)
        existing = kept.get(key)
        if existing is not None:
            if (item.score or 0) > (existing.score or 0):
                kept[key] = item
            continue

        near_key = next(
            (k for k in kept if _near_duplicate(key, k)),
            None,
        )
        if near_key is None:
            kept[key] = item
        elif (item.score or 0) > (kept[near_key].score or 0):
            del kept[near_key]
            kept[key] = item
    return list(kept.values())


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def _has_marker(markers: Iterable[str], title: str, url: str) -> bool:
    return any(m in title or re.sub(r"[^a-z0-9]", "", m) in url for m in markers)


def score_candidate(
    url: str,
    title: str,
    topic_terms: Iterable[str],
    provenance: str,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> float:
    """Additive discovery-time score for one candidate (before any fetch)."""
    u = (url or "").lower()
    t = (title or "").lower()
    score = 0.0

    if any(d in u for d in CONTENT_DOMAINS):
        score += weights.content_domain
    if any(ind in u for ind in BLOG_INDICATORS):
        score += weights.blog_indicator
    if looks_like_profile_or_directory(u):
        score += weights.profile_penalty

    score += min(count_overlap(title, topic_terms), weights.topic_overlap_cap)

    if _has_marker(HIGH_VALUE_MARKERS, t, u):
        score += weights.high_value_marker
    elif _has_marker(MEDIUM_VALUE_MARKERS, t, u):
        score += weights.medium_value_marker

    if path_depth(url) >= 2:
        score += weights.deep_link

    if provenance == "hypothesis":
        score += weights.hypothesis_bonus
    elif provenance in weights.direct_voice_angles:
        score += weights.direct_voice_bonus

    return score


class _Grouped(Protocol):
    provenance: str
    score: float


G = TypeVar("G", bound=_Grouped)


def ensure_angle_diversity(scored: list[G], min_per_angle: int = 2) -> list[G]:
    """Put the best ``min_per_angle`` items of every provenance group first.

    The remaining items follow in descending score order.  Round-robin order
    of the guaranteed block follows first appearance of each group.
    """
    groups: dict[str, list[G]] = {}
    for item in scored:
        groups.setdefault(item.provenance, []).append(item)
    for members in groups.values():
        members.sort(key=lambda x: x.score, reverse=True)

    diverse: list[G] = []
    for rank in range(min_per_angle):
        for members in groups.values():
            if len(members) > rank:
                diverse.append(members[rank])

    chosen = {id(x) for x in diverse}
    remaining = sorted((x for x in scored if id(x) not in chosen), key=lambda x: x.score, reverse=True)
    return diverse + remaining
