"""
Keyed record sets collected during a job run before they are written.
"""

from __future__ import annotations

import logging
from typing import Dict, Generic, Iterable, Iterator, Sequence, Tuple, TypeVar

from pydantic import BaseModel

from .interfaces import Sink


logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)


class RecordSet(Generic[R]):
    """Records for one table, deduplicated by their natural key.

    Adding a record whose key is already present replaces the earlier one.
    """

    def __init__(self, table: str, key_fields: Sequence[str]) -> None:
        if not key_fields:
            raise ValueError(f"RecordSet for {table} needs at least one key field")
        self.table = table
        self.key_fields: Tuple[str, ...] = tuple(key_fields)
        self._records: Dict[Tuple[object, ...], R] = {}

    def key_of(self, record: R) -> Tuple[object, ...]:
        return tuple(getattr(record, field) for field in self.key_fields)

    def add(self, record: R) -> None:
        self._records[self.key_of(record)] = record

    def extend(self, records: Iterable[R]) -> None:
        for record in records:
            self.add(record)

    def __contains__(self, key: Tuple[object, ...]) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[R]:
        return iter(self._records.values())

    async def flush_to(self, sink: Sink) -> None:
        """Write the collected records to ``sink`` as one batch."""
        logger.debug(f"Writing {len(self)} records to {self.table}")
        await sink.write(self.table, list(self), self.key_fields)
