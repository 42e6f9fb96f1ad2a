"""
Bounded, newest-first operator log.
"""
from __future__ import annotations
from collections import deque
from typing import Deque, Iterable, List, Optional

from instructor.models import LogRecord


class LogBook:
    """Records are inserted at the head; beyond capacity the oldest fall off the tail."""
    def __init__(self, capacity: int = 1000):
        self._records: Deque[LogRecord] = deque(maxlen=int(capacity))

    @property
    def capacity(self) -> int:
        return self._records.maxlen

    def insert(self, record: LogRecord) -> None:
        self._records.appendleft(record)

    def extend(self, records: Iterable[LogRecord]) -> None:
        """Insert in order, so the last given record ends up at index 0."""
        for r in records:
            self._records.appendleft(r)

    def clear(self) -> None:
        self._records.clear()

    def snapshot(self, limit: Optional[int] = None) -> List[LogRecord]:
        items = list(self._records)
        return items if limit is None else items[:max(0, limit)]

    def __len__(self) -> int:
        return len(self._records)

    def __getitem__(self, idx: int) -> LogRecord:
        return self._records[idx]
