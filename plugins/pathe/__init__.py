"""
Pathé plugin for scraping cinema catalog and showtime data.

This plugin provides:
- The movies job runner (cinemas, cities, shows, showtimes, ratings)
- Payload/record models for the Pathé API
- Database persistence
"""

from .fetcher import MovieFetcher
from .sinks import PatheDatabaseSink

__all__ = [
    "MovieFetcher",
    "PatheDatabaseSink",
]
