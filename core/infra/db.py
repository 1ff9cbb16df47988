"""
Database infrastructure with SQLite and async support.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import aiosqlite


logger = logging.getLogger(__name__)


def sqlite_path(db_url: str) -> Path:
    """Turn a plain path or a ``sqlite[+aiosqlite]://`` URL into a file path."""
    if db_url.startswith("sqlite"):
        # Handle sqlite+aiosqlite:///path format
        if "///" in db_url:
            return Path(db_url.split("///")[-1])
        return Path(db_url.split("//")[-1])
    return Path(db_url)


class Database:
    """Async SQLite database wrapper."""

    def __init__(self, db_path: str = "scraper.db", migrations: Sequence[str] = ()):
        self.db_path = sqlite_path(db_path)
        self._migrations = list(migrations)
        self._connection: Optional[aiosqlite.Connection] = None

    async def connect(self) -> None:
        """Connect to the database and run migrations."""
        if self._connection:
            return

        if self.db_path.parent and not self.db_path.parent.exists():
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # Open connection with a longer busy timeout
        self._connection = await aiosqlite.connect(self.db_path, timeout=30)
        self._connection.row_factory = aiosqlite.Row
        # Improve concurrency: use WAL journal mode and set busy timeout (ms)
        await self._connection.execute("PRAGMA journal_mode=WAL;")
        await self._connection.execute("PRAGMA busy_timeout=30000;")
        await self._run_migrations()

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    @asynccontextmanager
    async def transaction(self):
        """Context manager for database transactions."""
        if not self._connection:
            await self.connect()

        try:
            await self._connection.execute("BEGIN")
            yield self._connection
            await self._connection.commit()
        except Exception:
            await self._connection.rollback()
            raise

    async def execute(self, sql: str, params: Tuple[Any, ...] = ()) -> aiosqlite.Cursor:
        """Execute a SQL statement."""
        if not self._connection:
            await self.connect()
        return await self._connection.execute(sql, params)

    async def fetch_one(self, sql: str, params: Tuple[Any, ...] = ()) -> Optional[aiosqlite.Row]:
        """Fetch one row."""
        cursor = await self.execute(sql, params)
        return await cursor.fetchone()

    async def fetch_all(self, sql: str, params: Tuple[Any, ...] = ()) -> List[aiosqlite.Row]:
        """Fetch all rows."""
        cursor = await self.execute(sql, params)
        return await cursor.fetchall()

    @staticmethod
    def _upsert_sql(table: str, columns: List[str], pk_columns: Sequence[str]) -> str:
        placeholders = ", ".join("?" * len(columns))

        # Build the conflict resolution clause
        update_columns = [col for col in columns if col not in pk_columns]
        if update_columns:
            update_clause = ", ".join(f"{col} = excluded.{col}" for col in update_columns)
            conflict_clause = f"ON CONFLICT({', '.join(pk_columns)}) DO UPDATE SET {update_clause}"
        else:
            conflict_clause = f"ON CONFLICT({', '.join(pk_columns)}) DO NOTHING"

        return f"""
            INSERT INTO {table} ({', '.join(columns)})
            VALUES ({placeholders})
            {conflict_clause}
        """

    async def upsert_many(
        self,
        table: str,
        rows: Iterable[Dict[str, Any]],
        pk_columns: Sequence[str],
    ) -> int:
        """Upsert a batch of rows sharing the same columns in one transaction."""
        rows = list(rows)
        if not rows:
            return 0

        columns = list(rows[0].keys())
        sql = self._upsert_sql(table, columns, pk_columns)
        values = [tuple(row[col] for col in columns) for row in rows]

        async with self.transaction() as conn:
            await conn.executemany(sql, values)
        return len(values)

    async def log_job_run(self, jobname: str) -> None:
        """Record a successful job run in the job log."""
        async with self.transaction() as conn:
            await conn.execute("INSERT INTO joblogs (jobname) VALUES (?)", (jobname,))

    async def _run_migrations(self) -> None:
        """Run database migrations."""
        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS migrations (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS joblogs (
                jobname TEXT NOT NULL,
                run_dt TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
        """)
        await self._connection.execute(
            "CREATE INDEX IF NOT EXISTS dt_index ON joblogs(run_dt DESC)"
        )

        cursor = await self._connection.execute("SELECT MAX(version) FROM migrations")
        row = await cursor.fetchone()
        current = row[0] or 0

        for version, statement in enumerate(self._migrations, start=1):
            if version <= current:
                continue
            logger.info(f"Applying migration {version} to {self.db_path}")
            await self._connection.executescript(statement)
            await self._connection.execute(
                "INSERT INTO migrations (version) VALUES (?)", (version,)
            )
        await self._connection.commit()
