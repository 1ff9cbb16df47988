"""
Rotten Tomatoes plugin: title search and rating resolution.
"""

from .search import NoResultsError, RatingRecord, ShowRatingRecord, fetch_rating, search_titles

__all__ = [
    "NoResultsError",
    "RatingRecord",
    "ShowRatingRecord",
    "fetch_rating",
    "search_titles",
]
