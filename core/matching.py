"""
Resolve a scraped title to the closest search hit.

Uses rapidfuzz for the normalized edit distance between titles.
"""

from __future__ import annotations

from typing import Iterable, Optional

from rapidfuzz.distance import Levenshtein

from .models import MatchResult, SearchHit


YEAR_WEIGHT = 0.1


def score_hit(hit: SearchHit, title: str, year: Optional[int]) -> float:
    """Distance between a hit and the target title/year, 0 being identical."""
    score = Levenshtein.normalized_distance(title, hit.title)

    # Year only breaks ties between similar titles
    if hit.release_year is not None and year is not None:
        score += YEAR_WEIGHT * abs(hit.release_year - year)

    return score


def best_match(
    candidates: Iterable[SearchHit],
    title: str,
    year: Optional[int] = None,
) -> Optional[MatchResult]:
    """Return the lowest-scoring candidate, or ``None`` if there are none.

    No quality threshold is applied; callers decide whether a poor match is
    good enough. Equal scores keep their input order.
    """
    scored = [MatchResult(hit=hit, score=score_hit(hit, title, year)) for hit in candidates]
    if not scored:
        return None
    return sorted(scored, key=lambda result: result.score)[0]
