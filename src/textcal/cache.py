"""Bounded cache of the latest extraction result per requester.

Entries are keyed by a caller-identifying string (typically derived from
the client IP).  Writes are last-write-wins.  The cache holds at most
``max_entries`` requesters, evicting the least recently written one, and
entries expire ``ttl_seconds`` after being stored (checked lazily on
read).
"""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from textcal.models.events import ExtractionResult

_DEFAULT_MAX_ENTRIES = 1024
_DEFAULT_TTL_SECONDS = 3600.0


@dataclass(frozen=True)
class LatestRecord:
    """A cached result and when it was stored."""

    stored_at: datetime
    result: ExtractionResult
    expires_at: float


class LatestResultCache:
    """Latest :class:`ExtractionResult` per requester, bounded in size and age.

    Args:
        max_entries: Maximum number of requesters kept.
        ttl_seconds: Lifetime of each entry.
        clock: Monotonic clock used for expiry (injectable for tests).
    """

    def __init__(
        self,
        max_entries: int = _DEFAULT_MAX_ENTRIES,
        ttl_seconds: float = _DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be at least 1, got {max_entries}")
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._max_entries = max_entries
        self._ttl = ttl_seconds
        self._clock = clock
        self._store: OrderedDict[str, LatestRecord] = OrderedDict()

    def __len__(self) -> int:
        return len(self._store)

    def put(self, key: str, result: ExtractionResult) -> LatestRecord:
        """Store *result* as the latest for *key*, evicting the oldest entry if full."""
        record = LatestRecord(
            stored_at=datetime.now(timezone.utc),
            result=result,
            expires_at=self._clock() + self._ttl,
        )
        self._store[key] = record
        self._store.move_to_end(key)
        while len(self._store) > self._max_entries:
            self._store.popitem(last=False)
        return record

    def get(self, key: str) -> LatestRecord | None:
        """Return the live record for *key*, or ``None`` if absent or expired."""
        record = self._store.get(key)
        if record is None:
            return None
        if self._clock() >= record.expires_at:
            del self._store[key]
            return None
        return record

    def invalidate(self, key: str) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()
