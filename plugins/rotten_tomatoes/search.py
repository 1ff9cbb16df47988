"""
Rotten Tomatoes search (Algolia) and rating resolution for scraped titles.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel

from core.infra.http import RateLimitedClient
from core.matching import best_match
from core.models import MatchResult, SearchHit


logger = logging.getLogger(__name__)


SEARCH_URL = (
    "https://79frdp12pn-dsn.algolia.net/1/indexes/*/queries"
    "?x-algolia-agent=Algolia%20for%20JavaScript%20(4.24.0)%3B%20Browser%20(lite)"
    "&x-algolia-api-key=175588f6e5f8319b27702e4cc4013561"
    "&x-algolia-application-id=79FRDP12PN"
)
SEARCH_INDEX = "content_rt"
HITS_PER_PAGE = 5


class NoResultsError(Exception):
    """The search service returned an empty results envelope."""


class SearchResult(BaseModel):
    hits: List[SearchHit]


class SearchResponse(BaseModel):
    results: List[SearchResult]


class RatingRecord(BaseModel):
    slug: str
    title: str
    description: Optional[str] = None
    release_year: Optional[int] = None
    audience_score: Optional[int] = None
    score_sentiment: Optional[str] = None
    want_to_see_count: Optional[int] = None
    critics_score: Optional[int] = None
    certified_fresh: Optional[bool] = None
    new_adjusted_tm_score: Optional[int] = None

    @classmethod
    def from_hit(cls, hit: SearchHit) -> "RatingRecord":
        rating = hit.rating
        return cls(
            slug=hit.external_id,
            title=hit.title,
            description=hit.description,
            release_year=hit.release_year,
            audience_score=rating.audience_score if rating else None,
            score_sentiment=rating.score_sentiment if rating else None,
            want_to_see_count=rating.want_to_see_count if rating else None,
            critics_score=rating.critics_score if rating else None,
            certified_fresh=rating.certified_fresh if rating else None,
            new_adjusted_tm_score=rating.new_adjusted_tm_score if rating else None,
        )


class ShowRatingRecord(BaseModel):
    """Association between a scraped show and the rating it matched."""

    show_slug: str
    rating_slug: str
    match_score: float


def search_body(title: str) -> dict:
    return {
        "requests": [
            {
                "indexName": SEARCH_INDEX,
                "query": title,
                "params": f"filters=isEmsSearchable%20%3D%201&hitsPerPage={HITS_PER_PAGE}",
            }
        ]
    }


async def search_titles(client: RateLimitedClient, title: str) -> List[SearchHit]:
    """Search the ratings index for ``title`` and return the first result's hits."""
    response: SearchResponse = await client.post_json(SEARCH_URL, search_body(title), SearchResponse)
    if not response.results:
        raise NoResultsError(f"No results returned searching for {title!r}")
    return response.results[0].hits


async def fetch_rating(
    client: RateLimitedClient,
    title: str,
    year: Optional[int],
) -> Optional[MatchResult]:
    """Search for a title and resolve the best-matching hit."""
    hits = await search_titles(client, title)
    match = best_match(hits, title, year)
    if match is None:
        logger.debug(f"No rating candidates for {title!r}")
    else:
        logger.debug(
            f"Matched {title!r} ({year}) to {match.hit.external_id} with score {match.score:.3f}"
        )
    return match
