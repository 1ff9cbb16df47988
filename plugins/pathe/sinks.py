"""
Database sink for Pathé showtimes and ratings.
"""

from sinks.database_sink import DatabaseSink


PATHE_TABLES = """
CREATE TABLE IF NOT EXISTS cities (
    slug TEXT PRIMARY KEY,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS cinemas (
    slug TEXT PRIMARY KEY,
    city_slug TEXT NOT NULL REFERENCES cities (slug),
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS ratings (
    slug TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT,
    release_year INTEGER,
    audience_score INTEGER,
    score_sentiment TEXT,
    want_to_see_count INTEGER,
    critics_score INTEGER,
    certified_fresh BOOLEAN,
    new_adjusted_tm_score INTEGER
);

CREATE TABLE IF NOT EXISTS shows (
    slug TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    release_at TEXT,
    movie_type TEXT NOT NULL,
    duration INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS show_ratings (
    show_slug TEXT PRIMARY KEY REFERENCES shows (slug),
    rating_slug TEXT NOT NULL REFERENCES ratings (slug),
    match_score REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS posters (
    show_slug TEXT PRIMARY KEY REFERENCES shows (slug),
    lg TEXT,
    md TEXT
);

CREATE TABLE IF NOT EXISTS genres (
    show_slug TEXT NOT NULL REFERENCES shows (slug),
    genre TEXT NOT NULL,
    PRIMARY KEY (show_slug, genre)
);

CREATE TABLE IF NOT EXISTS showtimes (
    show_slug TEXT REFERENCES shows (slug),
    cinema_slug TEXT REFERENCES cinemas (slug),
    time TEXT,
    reservation_url TEXT,
    auditorium_name TEXT,
    auditorium_capacity TEXT,
    end_time TEXT,
    PRIMARY KEY (show_slug, cinema_slug, time, auditorium_name)
);
"""


class PatheDatabaseSink(DatabaseSink):
    """Database sink for the movies job tables."""

    name = "PatheDatabaseSink"

    MIGRATIONS = (PATHE_TABLES,)
