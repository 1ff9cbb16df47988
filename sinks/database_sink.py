"""
Database sink for persisting keyed record batches to SQLite.
"""

import logging
from typing import Iterable, Sequence

from pydantic import BaseModel

from core.interfaces import Sink
from core.infra.db import Database


logger = logging.getLogger(__name__)


class DatabaseSink(Sink):
    """Sink that upserts each batch into its table in a single transaction.

    Subclasses list the ``MIGRATIONS`` that create the tables they write to.
    """

    name = "DatabaseSink"

    MIGRATIONS: Sequence[str] = ()

    def __init__(self, db_url: str = "scraper.db", **kwargs):
        """Initialize DatabaseSink with configurable database URL."""
        self.db = Database(db_url, migrations=self.MIGRATIONS)

    async def __aenter__(self) -> "DatabaseSink":
        await self.db.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def write(
        self,
        table: str,
        records: Iterable[BaseModel],
        key_fields: Sequence[str],
    ) -> None:
        """Upsert a batch of records keyed by ``key_fields``."""
        rows = [record.model_dump(by_alias=False) for record in records]
        if not rows:
            logger.debug(f"No records to write to {table}")
            return

        count = await self.db.upsert_many(table, rows, list(key_fields))
        logger.info(f"Upserted {count} rows into {table}")

    async def log_run(self, jobname: str) -> None:
        await self.db.log_job_run(jobname)

    async def close(self) -> None:
        """Close the database connection."""
        await self.db.close()
