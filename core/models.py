"""
Core data models for the scraper platform.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class JobKind(str, enum.Enum):
    """Tags for the jobs the scheduler knows how to run."""

    MOVIES = "movies"


class RatingPayload(BaseModel):
    """Rating sub-object attached to a search hit."""

    model_config = ConfigDict(populate_by_name=True)

    audience_score: Optional[int] = Field(default=None, alias="audienceScore")
    score_sentiment: Optional[str] = Field(default=None, alias="scoreSentiment")
    want_to_see_count: Optional[int] = Field(default=None, alias="wantToSeeCount")
    critics_score: Optional[int] = Field(default=None, alias="criticsScore")
    certified_fresh: Optional[bool] = Field(default=None, alias="certifiedFresh")
    new_adjusted_tm_score: Optional[int] = Field(default=None, alias="newAdjustedTMScore")


class SearchHit(BaseModel):
    """A single candidate returned by the ratings search service."""

    model_config = ConfigDict(populate_by_name=True)

    title: str
    external_id: str = Field(alias="vanity")
    description: Optional[str] = None
    release_year: Optional[int] = Field(default=None, alias="releaseYear")
    rating: Optional[RatingPayload] = Field(default=None, alias="rottenTomatoes")


class MatchResult(BaseModel):
    """Best candidate for a title together with its distance score (lower is better)."""

    hit: SearchHit
    score: float = Field(ge=0.0)

