"""
Payload and record models for the Pathé cinema API.

Payload models mirror the JSON the API returns (only the fields we use);
record models are the flat rows written to the store.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


logger = logging.getLogger(__name__)


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Cinema(_Payload):
    slug: str
    city_slug: str = Field(alias="citySlug")
    name: str


class City(_Payload):
    slug: str
    name: str


class Image(_Payload):
    lg: Optional[str] = None
    md: Optional[str] = None


class ShowRecord(BaseModel):
    slug: str
    title: str
    release_at: Optional[str] = None
    movie_type: str
    duration: int


class PosterRecord(BaseModel):
    show_slug: str
    lg: Optional[str] = None
    md: Optional[str] = None


class GenreRecord(BaseModel):
    show_slug: str
    genre: str


class Show(_Payload):
    slug: str
    title: str
    release_at: List[str] = Field(default_factory=list, alias="releaseAt")
    poster_path: Optional[Image] = Field(default=None, alias="posterPath")
    movie_type: str = Field(alias="type")
    duration: int = 0
    genres: List[str] = Field(default_factory=list)

    @property
    def release_date(self) -> Optional[date]:
        """First listed release date, if it parses as an ISO date."""
        if not self.release_at:
            return None
        raw = self.release_at[0]
        try:
            return date.fromisoformat(raw[:10])
        except ValueError:
            logger.debug(f"Unparseable release date for {self.slug}: {raw!r}")
            return None

    @property
    def release_year(self) -> Optional[int]:
        release = self.release_date
        return release.year if release else None

    def flatten(self) -> Tuple[ShowRecord, PosterRecord, List[GenreRecord]]:
        show = ShowRecord(
            slug=self.slug,
            title=self.title,
            release_at=self.release_at[0] if self.release_at else None,
            movie_type=self.movie_type,
            duration=self.duration,
        )
        poster = PosterRecord(
            show_slug=self.slug,
            lg=self.poster_path.lg if self.poster_path else None,
            md=self.poster_path.md if self.poster_path else None,
        )
        genres = [GenreRecord(show_slug=self.slug, genre=genre) for genre in self.genres]
        return show, poster, genres


class Shows(_Payload):
    shows: List[Show]


class CinemaShows(_Payload):
    """Per-cinema listing; only the keys (show slugs) are used."""

    shows: Dict[str, Any]


class Showtime(_Payload):
    show_slug: Optional[str] = None
    cinema_slug: Optional[str] = None
    time: str
    reservation_url: Optional[str] = Field(default=None, alias="refCmd")
    auditorium_name: str = Field(alias="auditoriumName")
    auditorium_capacity: Optional[str] = Field(default=None, alias="auditoriumCapacity")
    end_time: Optional[str] = Field(default=None, alias="endTime")

    @field_validator("auditorium_capacity", mode="before")
    @classmethod
    def _capacity_as_text(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v


# Showtimes endpoint: {"<date>": [showtime, ...], ...}
ShowtimesByDay = Dict[str, List[Showtime]]
