"""Batch-scoped memory of records resolved or created during one run."""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

from core.normalize import name_keys
from library.models import CanonicalRecord

logger = logging.getLogger(__name__)

RunKey = tuple[str, str, str]
"""(entity type, artist scope, normalized name)"""


def record_keys(record: CanonicalRecord) -> list[RunKey]:
    """Run keys for a record's primary and alternate names."""
    return [
        (record.entity_type.value, record.scope, key)
        for key in name_keys(record.name, record.alternate_names)
    ]


class RunContext:
    """Records already matched or created in the current batch.

    Owned by whoever starts the batch and passed explicitly to each engine
    call. The check-search-insert sequence for one key runs under that key's
    lock (see claim), so two concurrent lookups for the same new name cannot
    both insert. Different keys proceed in parallel.
    """

    def __init__(self) -> None:
        self._mutex = asyncio.Lock()
        self._key_locks: dict[RunKey, asyncio.Lock] = {}
        self._records: dict[RunKey, CanonicalRecord] = {}
        self.added_ids: list[int] = []

    @asynccontextmanager
    async def claim(self, key: RunKey) -> AsyncIterator[None]:
        """Hold the lock for one key for the duration of the block."""
        async with self._mutex:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = asyncio.Lock()
        async with lock:
            yield

    def get(self, key: RunKey) -> CanonicalRecord | None:
        """Record remembered under key, if any."""
        return self._records.get(key)

    def remember(
        self,
        record: CanonicalRecord,
        extra_keys: Iterable[RunKey] = (),
        added: bool = False,
    ) -> None:
        """Remember a record under all its name keys plus any extra keys.

        Args:
            record: Record found or created in this run
            extra_keys: Additional keys, e.g. the query key when it differs from the record's names
            added: True when the record was inserted during this run
        """
        for key in [*record_keys(record), *extra_keys]:
            self._records.setdefault(key, record)
        if added and record.id is not None and record.id not in self.added_ids:
            self.added_ids.append(record.id)
            logger.debug(f"Run added {record.entity_type} {record.id} '{record.name}'")

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)
