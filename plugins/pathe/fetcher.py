"""
Movies job: Pathé catalog and showtimes, cross-referenced with Rotten Tomatoes.

One run fans out from three top-level listings into one rating search per
show and one showtimes request per (cinema, show) pair, joins every task and
only then writes the collected records, parents before children.
"""

import asyncio
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Dict, List, Optional, Sequence, Tuple, TypeVar

from core.infra.http import DEFAULT_COOLDOWN, DecodeError, RateLimitedClient
from core.interfaces import JobRunner, Sink
from core.models import JobKind, MatchResult
from core.plugin_loader import register
from core.records import RecordSet
from plugins.rotten_tomatoes.search import RatingRecord, ShowRatingRecord, fetch_rating

from .parser import (
    Cinema,
    CinemaShows,
    City,
    Show,
    Shows,
    Showtime,
    ShowtimesByDay,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")

BASE_URL = "https://www.pathe.nl/api"
DEFAULT_MAX_MATCH_SCORE = 0.5

# Write order: referenced tables first
TABLES: Sequence[Tuple[str, Tuple[str, ...]]] = (
    ("cities", ("slug",)),
    ("cinemas", ("slug",)),
    ("ratings", ("slug",)),
    ("shows", ("slug",)),
    ("show_ratings", ("show_slug",)),
    ("posters", ("show_slug",)),
    ("genres", ("show_slug", "genre")),
    ("showtimes", ("show_slug", "cinema_slug", "time", "auditorium_name")),
)


async def join_all(tasks: Sequence["asyncio.Task[T]"]) -> List[T]:
    """Await every task; on the first failure cancel the rest and re-raise."""
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def spawn(coro: Awaitable[T], name: str) -> "asyncio.Task[T]":
    return asyncio.create_task(coro, name=name)  # type: ignore[arg-type]


@register(JobKind.MOVIES)
class MovieFetcher(JobRunner):
    """Fetches cinemas, cities, shows, showtimes and ratings in one run."""

    name = "MovieFetcher"

    def __init__(
        self,
        sink: Optional[Sink] = None,
        *,
        client: Optional[RateLimitedClient] = None,
        search_client: Optional[RateLimitedClient] = None,
        requests_per_second: float = 10,
        max_retries: int = 3,
        cooldown: float = DEFAULT_COOLDOWN,
        max_match_score: Optional[float] = DEFAULT_MAX_MATCH_SCORE,
        base_url: str = BASE_URL,
        language: str = "nl",
    ):
        if sink is None:
            raise ValueError("MovieFetcher needs a sink to write to")
        self.sink = sink
        self._client = client
        self._search_client = search_client
        self._client_options: Dict[str, Any] = {
            "requests_per_second": requests_per_second,
            "max_retries": max_retries,
            "cooldown": cooldown,
        }
        self.max_match_score = max_match_score
        self.base_url = base_url.rstrip("/")
        self.language = language

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path}?language={self.language}"

    @asynccontextmanager
    async def _clients(self) -> AsyncIterator[Tuple[RateLimitedClient, RateLimitedClient]]:
        """Clients for one run: injected ones are reused, others live for the run."""
        async with AsyncExitStack() as stack:
            client = self._client or await stack.enter_async_context(
                RateLimitedClient(**self._client_options)
            )
            search_client = self._search_client or await stack.enter_async_context(
                RateLimitedClient(**self._client_options)
            )
            yield client, search_client

    # ---------------------------------------------- #
    # Leaf fetches
    async def fetch_cinema_shows(self, client: RateLimitedClient, cinema_slug: str) -> List[str]:
        listing: CinemaShows = await client.get_json(
            self._url(f"cinema/{cinema_slug}/shows"), CinemaShows
        )
        return list(listing.shows.keys())

    async def fetch_showtimes(
        self, client: RateLimitedClient, show_slug: str, cinema_slug: str
    ) -> List[Showtime]:
        """Showtimes of one show at one cinema.

        The endpoint answers with a body that does not decode when the show
        is not scheduled at the cinema; that means zero showtimes.
        """
        url = self._url(f"show/{show_slug}/showtimes/{cinema_slug}")
        try:
            by_day: ShowtimesByDay = await client.get_json(url, ShowtimesByDay)
        except DecodeError:
            logger.debug(f"No showtimes for {show_slug} at {cinema_slug}")
            return []

        showtimes = []
        for day in by_day.values():
            for showtime in day:
                showtimes.append(
                    showtime.model_copy(update={"show_slug": show_slug, "cinema_slug": cinema_slug})
                )
        return showtimes

    async def fetch_showtimes_cinema(self, client: RateLimitedClient, cinema_slug: str) -> List[Showtime]:
        show_slugs = await self.fetch_cinema_shows(client, cinema_slug)
        tasks = [
            spawn(self.fetch_showtimes(client, show_slug, cinema_slug), f"showtimes-{cinema_slug}-{show_slug}")
            for show_slug in show_slugs
        ]
        per_show = await join_all(tasks)
        return [showtime for showtimes in per_show for showtime in showtimes]

    async def fetch_show_rating(
        self, client: RateLimitedClient, show: Show
    ) -> Tuple[str, Optional[MatchResult]]:
        return show.slug, await fetch_rating(client, show.title, show.release_year)

    # ---------------------------------------------- #
    # Orchestration
    async def collect(
        self, client: RateLimitedClient, search_client: RateLimitedClient
    ) -> Dict[str, RecordSet]:
        """Run every fetch of one job run and assemble the record sets."""
        cinemas, cities, shows = await join_all([
            spawn(client.get_json(self._url("cinemas"), List[Cinema]), "cinemas"),
            spawn(client.get_json(self._url("cities"), List[City]), "cities"),
            spawn(client.get_json(self._url("shows"), Shows), "shows"),
        ])
        logger.info(
            f"Fetched {len(cinemas)} cinemas, {len(cities)} cities, {len(shows.shows)} shows"
        )

        records = {table: RecordSet(table, keys) for table, keys in TABLES}
        records["cities"].extend(cities)
        records["cinemas"].extend(cinemas)

        # Fan out: every rating and cinema task is started before any is awaited
        rating_tasks = []
        for show in shows.shows:
            rating_tasks.append(spawn(self.fetch_show_rating(search_client, show), f"rating-{show.slug}"))
            show_record, poster, genres = show.flatten()
            records["shows"].add(show_record)
            records["posters"].add(poster)
            records["genres"].extend(genres)

        cinema_tasks = [
            spawn(self.fetch_showtimes_cinema(client, cinema.slug), f"cinema-{cinema.slug}")
            for cinema in cinemas
        ]

        # Fan in
        results = await join_all(cinema_tasks + rating_tasks)
        for showtimes in results[: len(cinema_tasks)]:
            records["showtimes"].extend(showtimes)
        for show_slug, match in results[len(cinema_tasks):]:
            self._add_match(records, show_slug, match)

        return records

    def _add_match(
        self, records: Dict[str, RecordSet], show_slug: str, match: Optional[MatchResult]
    ) -> None:
        if match is None:
            return
        if self.max_match_score is not None and match.score > self.max_match_score:
            logger.info(
                f"Rejecting rating {match.hit.external_id} for {show_slug}: "
                f"score {match.score:.3f} > {self.max_match_score}"
            )
            return
        records["ratings"].add(RatingRecord.from_hit(match.hit))
        records["show_ratings"].add(
            ShowRatingRecord(show_slug=show_slug, rating_slug=match.hit.external_id, match_score=match.score)
        )

    async def write(self, records: Dict[str, RecordSet]) -> None:
        for table, _ in TABLES:
            await records[table].flush_to(self.sink)

    async def run(self) -> None:
        async with self._clients() as (client, search_client):
            records = await self.collect(client, search_client)
        await self.write(records)
        logger.info(
            "Ran the fetcher for movies: "
            + ", ".join(f"{table}={len(records[table])}" for table, _ in TABLES)
        )
