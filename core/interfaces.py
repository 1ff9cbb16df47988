"""
Core interfaces for the scraper platform.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Sequence

from pydantic import BaseModel


class JobRunner(ABC):
    """Concrete fetch behaviour behind a scheduled job.

    One runner is constructed per registered job and reused for every run.
    Runners keep no state between runs apart from the resources they own
    (for instance the sink they write to).
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for this runner."""
        pass

    @abstractmethod
    async def run(self) -> None:
        """Execute one complete job run, raising on any fatal failure."""
        pass


class Sink(ABC):
    """Abstract base class for record sinks.

    A sink receives one homogeneous batch of keyed records per call and
    upserts it into the named table.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for this sink."""
        pass

    @abstractmethod
    async def write(
        self,
        table: str,
        records: Iterable[BaseModel],
        key_fields: Sequence[str],
    ) -> None:
        """Upsert a batch of records into ``table`` keyed by ``key_fields``."""
        pass

    async def log_run(self, jobname: str) -> None:
        """Optional hook called after a successful job run."""
        pass

    async def __aenter__(self) -> Any:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        pass
