from __future__ import annotations

import logging
from dataclasses import dataclass, field

from hookscout.search import SearchClient, SearchProviderError, SearchResult
from hookscout.utils import contains_needle

log = logging.getLogger(__name__)

PASS_CONFIDENCE = 0.75
FAIL_CONFIDENCE = 0.25


@dataclass
class IdentityResult:
    """Outcome of the identity gate (coarse two-point confidence)."""
    passed: bool
    confidence: float
    results: list[SearchResult] = field(default_factory=list)
    query: str = ""

    @property
    def decision(self) -> str:
        return "PASS" if self.passed else "FAIL"


def identity_query(name: str, company: str, role: str | None = None) -> str:
    return " ".join(p.strip() for p in (name, company, role or "") if p and p.strip())


async def verify_identity(
    search: SearchClient,
    name: str,
    company: str,
    role: str | None = None,
) -> IdentityResult:
    """Search once for the recipient; PASS if any hit names them or their company."""
    query = identity_query(name, company, role)
    try:
        results = await search.search(
            query,
            num_results=3,
            type="neural",
            use_autoprompt=True,
            contents={"text": {"maxCharacters": 500}},
        )
    except SearchProviderError as exc:
        log.warning("Identity search failed for %r: %s", query, exc)
        return IdentityResult(passed=False, confidence=0.0, query=query)

    for r in results:
        haystack = f"{r.title} {r.text}"
        if contains_needle(haystack, company) or contains_needle(haystack, name):
            log.info("Identity PASS for %s at %s (%d result(s))", name, company, len(results))
            return IdentityResult(passed=True, confidence=PASS_CONFIDENCE, results=results, query=query)

    log.info("Identity FAIL for %s at %s (%d result(s))", name, company, len(results))
    return IdentityResult(passed=False, confidence=FAIL_CONFIDENCE, results=results, query=query)
